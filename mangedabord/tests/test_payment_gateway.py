import pytest
import requests

from mangedabord.core.exceptions import PaymentValidationError, UpstreamGatewayError
from mangedabord.services.payment_gateway import validate_init_payload

from conftest import API_BASE, INIT_URL, TOKEN_URL

VALID = {
    "amount": "8500",
    "description": "Commande #12",
    "success_url": "https://shop.test/success",
    "failure_url": "https://shop.test/failure",
}


def with_token(session):
    session.add("POST", TOKEN_URL, (200, {"access_token": "tok", "expires_in": 1800}))


class TestValidateInitPayload:
    """支付参数校验测试"""

    @pytest.mark.parametrize("field", ["amount", "description", "success_url", "failure_url"])
    def test_required_fields(self, field):
        payload = dict(VALID)
        payload.pop(field)
        with pytest.raises(PaymentValidationError) as exc_info:
            validate_init_payload(payload)
        assert exc_info.value.error_code == "FLASHP_INP_99"

    @pytest.mark.parametrize("amount", [-5, 0, "abc", "nan", True])
    def test_amount_must_be_positive(self, amount):
        with pytest.raises(PaymentValidationError):
            validate_init_payload(dict(VALID, amount=amount))

    def test_normalizes_payload(self):
        body = validate_init_payload(dict(VALID, customer_email="", order_id="12", extra="x"))
        assert body["amount"] == 8500.0
        assert body["order_id"] == "12"
        assert "customer_email" not in body
        assert "extra" not in body

    def test_not_a_dict(self):
        with pytest.raises(PaymentValidationError):
            validate_init_payload(None)


class TestPaymentGatewayProxy:
    """支付网关代理测试"""

    def test_init_payment(self, gateway, fake_session):
        with_token(fake_session)
        fake_session.add("POST", INIT_URL, (200, {
            "status": "SAVED", "payment_url": "https://pay.test/abc", "transaction_code": "TX-9"
        }))

        result = gateway.init_payment(VALID)

        assert result == {"paymentUrl": "https://pay.test/abc", "transactionId": "TX-9"}
        method, url, kwargs = fake_session.calls_to(INIT_URL)[0]
        assert kwargs["headers"]["Authorization"] == "Bearer tok"
        assert kwargs["json"]["amount"] == 8500.0

    def test_token_reused_between_calls(self, gateway, fake_session):
        with_token(fake_session)
        fake_session.add("POST", INIT_URL, (200, {
            "status": "SAVED", "payment_url": "https://pay.test/abc", "transaction_code": "TX-9"
        }))
        gateway.init_payment(VALID)
        gateway.init_payment(VALID)
        assert len(fake_session.calls_to(TOKEN_URL)) == 1

    @pytest.mark.parametrize("body", [
        {"status": "PENDING", "payment_url": "https://pay.test/abc"},
        {"status": "SAVED", "payment_url": ""},
        {"status": "SAVED"},
    ])
    def test_init_requires_saved_and_url(self, gateway, fake_session, body):
        with_token(fake_session)
        fake_session.add("POST", INIT_URL, (200, body))
        with pytest.raises(UpstreamGatewayError) as exc_info:
            gateway.init_payment(VALID)
        assert exc_info.value.status == 500
        assert exc_info.value.error_code == "FLASHP_ERR_99"

    def test_upstream_error_is_propagated(self, gateway, fake_session):
        with_token(fake_session)
        fake_session.add("POST", INIT_URL, (422, {
            "status": 422, "title": "Montant invalide", "code": "FLASHP_PAY_12",
            "error_details": [{"field": "amount"}],
        }))
        with pytest.raises(UpstreamGatewayError) as exc_info:
            gateway.init_payment(VALID)
        error = exc_info.value
        assert error.status == 422
        assert error.message == "Montant invalide"
        assert error.error_code == "FLASHP_PAY_12"
        assert error.error_details == [{"field": "amount"}]

    def test_silent_upstream_error_uses_defaults(self, gateway, fake_session):
        with_token(fake_session)
        fake_session.add("POST", INIT_URL, (502, None))
        with pytest.raises(UpstreamGatewayError) as exc_info:
            gateway.init_payment(VALID)
        assert exc_info.value.status == 500
        assert exc_info.value.error_code == "FLASHP_ERR_99"
        assert exc_info.value.error_details == []

    def test_network_error(self, gateway, fake_session):
        with_token(fake_session)
        fake_session.add("POST", INIT_URL, requests.Timeout("slow"))
        with pytest.raises(UpstreamGatewayError):
            gateway.init_payment(VALID)

    def test_status_lowercased(self, gateway, fake_session):
        with_token(fake_session)
        fake_session.add("GET", API_BASE + "/rest/api/v1/payments/TX-9", (200, {"status": "SUCCEEDED"}))
        assert gateway.get_status("TX-9") == "succeeded"

    def test_status_requires_transaction_id(self, gateway, fake_session):
        with pytest.raises(PaymentValidationError):
            gateway.get_status("")
        assert fake_session.calls == []
