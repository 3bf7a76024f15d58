"""Unit tests for the error taxonomy and its HTTP mapping."""

import pytest

from ticketing.models.errors import (
    ERROR_MESSAGES,
    ERROR_RECOVERY,
    BadSignature,
    ConfigurationError,
    ErrorCode,
    ForwardingFailure,
    GatewayRejected,
    InvalidPayload,
    NoValidItems,
    UnknownSku,
    redact_secrets,
)
from ticketing_api.exceptions import get_http_status_for_error


class TestErrorCatalog:
    def test_every_code_has_message_and_recovery(self):
        for code in ErrorCode:
            assert code in ERROR_MESSAGES
            assert code in ERROR_RECOVERY

    def test_error_response_body(self):
        response = UnknownSku("LOUVRE_ADULT").to_error_response()

        assert response.success is False
        assert response.error_code == ErrorCode.UNKNOWN_SKU
        assert response.details == {"sku": "LOUVRE_ADULT"}
        assert response.model_dump(mode="json")["error_code"] == "ERR_CART_002"

    def test_default_message_used_without_override(self):
        assert InvalidPayload().message == ERROR_MESSAGES[ErrorCode.INVALID_PAYLOAD]


class TestRedaction:
    @pytest.mark.parametrize(
        "text,leaked",
        [
            ("Invalid API Key provided: sk_live_51Habc", "51Habc"),
            ("key rk_test_XYZ987 revoked", "XYZ987"),
            ("secret whsec_abcDEF was wrong", "abcDEF"),
        ],
    )
    def test_credentials_masked(self, text: str, leaked: str):
        assert leaked not in redact_secrets(text)

    def test_plain_text_untouched(self):
        assert redact_secrets("No such price: 'price_123'") == "No such price: 'price_123'"

    def test_gateway_rejected_redacts(self):
        assert "51Habc" not in GatewayRejected("bad key sk_live_51Habc").message

    def test_gateway_rejected_default_message(self):
        assert GatewayRejected().message == ERROR_MESSAGES[ErrorCode.GATEWAY_REJECTED]


class TestHttpMapping:
    @pytest.mark.parametrize(
        "error,status",
        [
            (InvalidPayload(), 400),
            (UnknownSku("X"), 400),
            (NoValidItems(), 400),
            (BadSignature("signature_mismatch"), 400),
            (ConfigurationError("BASE_URL"), 500),
            (GatewayRejected("declined"), 500),
            (ForwardingFailure(), 500),
        ],
    )
    def test_status(self, error, status: int):
        assert get_http_status_for_error(error.code) == status
