"""Secret lookups in AWS SSM Parameter Store.

Settings fall back to these when a secret is not in the environment. The
boto3 client is only built on the first lookup, so deployments that keep
every secret in the environment run without AWS credentials.
"""

from functools import lru_cache
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ticketing.utils.logging import get_logger

logger = get_logger(__name__)

_CLIENT_ERROR_MESSAGES = {
    "ParameterNotFound": "SSM parameter not found: {name}",
    "ParameterVersionNotFound": "SSM parameter version not found: {name}",
    "AccessDeniedException": "Access denied to SSM parameter {name}; ssm:GetParameter and kms:Decrypt are required",
}


class SSMServiceError(Exception):
    """A parameter could not be read."""

    def __init__(self, name: str, message: str):
        self.name = name
        super().__init__(message)


class SSMService:
    """Decrypting, memoizing reader for SecureString parameters."""

    def __init__(self, client: Any = None):
        self._client = client
        self._values: dict[str, str] = {}

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = boto3.client("ssm")
        return self._client

    def get_parameter(self, name: str, *, use_cache: bool = True) -> str:
        """Return the decrypted value stored at ``name``.

        Raises:
            SSMServiceError: The parameter is missing, unreadable, or SSM is unreachable.
        """
        if use_cache and name in self._values:
            return self._values[name]

        logger.info("Reading SSM parameter %s", name)
        try:
            value = self.client.get_parameter(Name=name, WithDecryption=True)["Parameter"]["Value"]
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            template = _CLIENT_ERROR_MESSAGES.get(code, "Failed to read SSM parameter {name}: {error}")
            raise SSMServiceError(name, template.format(name=name, error=e)) from e
        except BotoCoreError as e:
            raise SSMServiceError(name, f"SSM unreachable while reading {name}: {e}") from e

        self._values[name] = value
        return value


@lru_cache(maxsize=1)
def get_ssm_service() -> SSMService:
    return SSMService()


def reset_ssm_service() -> None:
    """Forget the shared instance along with its client and cached values."""
    get_ssm_service.cache_clear()
