"""Deployment configuration.

Settings are read from environment variables once per process. Secrets that
are absent from the environment are looked up in SSM Parameter Store under
``/tickets/<environment>/...``. Nothing here falls back to a silent default
for a required value: callers ask for it through a ``require_*`` accessor and
get a ConfigurationError when it is missing.
"""

import os
from collections.abc import Mapping
from functools import lru_cache

from pydantic import BaseModel, ConfigDict, Field

from ticketing.models.errors import ConfigurationError
from ticketing.services.ssm_service import SSMServiceError, get_ssm_service
from ticketing.utils.logging import get_logger

logger = get_logger(__name__)

SSM_PREFIX = "tickets"

# Secret field -> SSM parameter suffix
SECRET_PARAMETERS: dict[str, str] = {
    "stripe_secret_key": "stripe/secret_key",
    "stripe_webhook_secret": "stripe/webhook_secret",
    "automation_shared_secret": "automation/shared_secret",
}

# Environment variable names, first match wins. The N8N_* and NEXT_PUBLIC_*
# names are accepted so existing deployments keep working.
ENV_NAMES: dict[str, tuple[str, ...]] = {
    "environment": ("ENVIRONMENT",),
    "base_url": ("BASE_URL", "NEXT_PUBLIC_BASE_URL"),
    "stripe_secret_key": ("STRIPE_SECRET_KEY",),
    "stripe_webhook_secret": ("STRIPE_WEBHOOK_SECRET",),
    "stripe_webhook_tolerance": ("STRIPE_WEBHOOK_TOLERANCE",),
    "stripe_timeout_seconds": ("STRIPE_TIMEOUT_SECONDS",),
    "automation_webhook_url": ("AUTOMATION_WEBHOOK_URL", "N8N_WEBHOOK_URL"),
    "automation_shared_secret": ("AUTOMATION_SHARED_SECRET", "N8N_SHARED_SECRET"),
    "automation_timeout_seconds": ("AUTOMATION_TIMEOUT_SECONDS",),
    "catalog_override": ("TICKET_CATALOG",),
    "cors_allow_origins": ("CORS_ALLOW_ORIGINS",),
    "log_level": ("LOG_LEVEL",),
}


class Settings(BaseModel):
    """Process-wide configuration snapshot."""

    model_config = ConfigDict(frozen=True)

    environment: str = "dev"
    base_url: str | None = Field(default=None, description="Public site URL used for redirects")
    stripe_secret_key: str | None = None
    stripe_webhook_secret: str | None = None
    stripe_webhook_tolerance: int = Field(default=300, ge=1, description="Signature timestamp tolerance (s)")
    stripe_timeout_seconds: float = Field(default=8.0, gt=0)
    automation_webhook_url: str | None = None
    automation_shared_secret: str | None = None
    automation_timeout_seconds: float = Field(default=5.0, gt=0)
    catalog_override: str | None = Field(default=None, description="JSON object of sku -> Stripe price ID")
    cors_allow_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"]
    )
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from environment variables.

        Empty strings count as unset.
        """
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}
        for field, names in ENV_NAMES.items():
            for name in names:
                raw = env.get(name, "").strip()
                if raw:
                    values[field] = raw
                    break

        origins = values.get("cors_allow_origins")
        if isinstance(origins, str):
            values["cors_allow_origins"] = [o.strip() for o in origins.split(",") if o.strip()]

        return cls.model_validate(values)

    def require_base_url(self) -> str:
        """Base redirect URL without a trailing slash.

        Raises:
            ConfigurationError: If BASE_URL is not set.
        """
        if not self.base_url:
            raise ConfigurationError("BASE_URL")
        return self.base_url.rstrip("/")

    def require_automation_url(self) -> str:
        if not self.automation_webhook_url:
            raise ConfigurationError("AUTOMATION_WEBHOOK_URL")
        return self.automation_webhook_url

    def ssm_path(self, field: str) -> str:
        return f"/{SSM_PREFIX}/{self.environment}/{SECRET_PARAMETERS[field]}"

    def require_secret(self, field: str) -> str:
        """Resolve a secret from the environment, then SSM.

        Args:
            field: One of SECRET_PARAMETERS' keys.

        Returns:
            The secret value.

        Raises:
            ConfigurationError: If the secret is in neither place.
        """
        value = getattr(self, field)
        if value:
            return value

        path = self.ssm_path(field)
        try:
            return get_ssm_service().get_parameter(path)
        except SSMServiceError as e:
            logger.error("Secret %s unavailable: %s", field.upper(), e)
            raise ConfigurationError(
                field.upper(),
                message=f"{field.upper()} not set and not found at {path}",
            ) from e


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the process-wide settings (loaded once)."""
    return Settings.from_env()
