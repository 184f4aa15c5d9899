from conftest import API_BASE, INIT_URL, TOKEN_URL

PAYLOAD = {
    "amount": 8500,
    "description": "Commande #12",
    "success_url": "https://shop.test/success",
    "failure_url": "https://shop.test/failure",
    "customer_phone": "+237690000000",
}


def with_token(session):
    session.add("POST", TOKEN_URL, (200, {"access_token": "tok", "expires_in": 1800}))


class TestHealth:
    """健康检查测试"""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "OK"}

    def test_cors_allowed_origin(self, client):
        response = client.get("/health", headers={"Origin": "http://127.0.0.1:5173"})
        assert response.headers["access-control-allow-origin"] == "http://127.0.0.1:5173"

    def test_cors_production_origin(self, client):
        response = client.get("/health", headers={"Origin": "https://mangedabord.test"})
        assert response.headers["access-control-allow-origin"] == "https://mangedabord.test"

    def test_cors_unknown_origin(self, client):
        response = client.get("/health", headers={"Origin": "https://evil.test"})
        assert "access-control-allow-origin" not in response.headers


class TestPaymentInitAPI:
    """支付初始化接口测试"""

    def test_init_success(self, client, fake_session):
        with_token(fake_session)
        fake_session.add("POST", INIT_URL, (200, {
            "status": "SAVED", "payment_url": "https://pay.test/abc", "transaction_code": "TX-9"
        }))

        response = client.post("/api/payment/init", json=PAYLOAD)

        assert response.status_code == 200
        assert response.json() == {
            "success": True, "paymentUrl": "https://pay.test/abc", "transactionId": "TX-9"
        }
        forwarded = fake_session.calls_to(INIT_URL)[0][2]["json"]
        assert forwarded["customer_phone"] == "+237690000000"
        assert "customer_email" not in forwarded

    def test_negative_amount(self, client, fake_session):
        response = client.post("/api/payment/init", json=dict(PAYLOAD, amount=-5))
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["code"] == "FLASHP_INP_99"
        assert fake_session.calls == []

    def test_missing_fields(self, client):
        response = client.post("/api/payment/init", json={"amount": 100})
        assert response.status_code == 400
        assert response.json()["code"] == "FLASHP_INP_99"

    def test_missing_body(self, client):
        response = client.post("/api/payment/init")
        assert response.status_code == 400
        assert response.json()["code"] == "FLASHP_INP_99"

    def test_non_object_body(self, client, fake_session):
        response = client.post("/api/payment/init", json=[PAYLOAD])
        assert response.status_code == 400
        assert response.json()["code"] == "FLASHP_INP_99"
        assert fake_session.calls == []

    def test_upstream_error_shape(self, client, fake_session):
        with_token(fake_session)
        fake_session.add("POST", INIT_URL, (409, {
            "status": 409, "title": "Transaction dupliquée", "code": "FLASHP_PAY_03",
            "error_details": ["order_id"],
        }))

        response = client.post("/api/payment/init", json=PAYLOAD)

        assert response.status_code == 409
        assert response.json() == {
            "success": False,
            "message": "Transaction dupliquée",
            "code": "FLASHP_PAY_03",
            "error_details": ["order_id"],
        }

    def test_not_saved_is_500(self, client, fake_session):
        with_token(fake_session)
        fake_session.add("POST", INIT_URL, (200, {"status": "REJECTED"}))
        response = client.post("/api/payment/init", json=PAYLOAD)
        assert response.status_code == 500
        assert response.json()["code"] == "FLASHP_ERR_99"

    def test_token_failure(self, client, fake_session):
        fake_session.add("POST", TOKEN_URL, (401, {"error": "unauthorized_client"}))
        response = client.post("/api/payment/init", json=PAYLOAD)
        assert response.status_code == 500
        assert response.json()["code"] == "FLASHP_AUTH_99"
        assert fake_session.calls_to(INIT_URL) == []


class TestPaymentStatusAPI:
    """支付状态接口测试"""

    def test_status(self, client, fake_session):
        with_token(fake_session)
        fake_session.add("GET", API_BASE + "/rest/api/v1/payments/TX-9", (200, {"status": "FAILED"}))

        response = client.get("/api/payment/status", params={"transaction_id": "TX-9"})

        assert response.status_code == 200
        assert response.json() == {"success": True, "status": "failed"}

    def test_missing_transaction_id(self, client):
        response = client.get("/api/payment/status")
        assert response.status_code == 400
        assert response.json()["code"] == "FLASHP_INP_99"

    def test_upstream_not_found(self, client, fake_session):
        with_token(fake_session)
        fake_session.add("GET", API_BASE + "/rest/api/v1/payments/TX-0", (404, {
            "status": 404, "title": "Transaction introuvable", "code": "FLASHP_PAY_04",
        }))
        response = client.get("/api/payment/status", params={"transaction_id": "TX-0"})
        assert response.status_code == 404
        assert response.json()["message"] == "Transaction introuvable"
        assert response.json()["error_details"] == []
