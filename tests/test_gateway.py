import asyncio
import base64
import json

import httpx
import pytest

from cleanaceh.domain.payments.gateway import PRODUCTION_BASE_URL, SANDBOX_BASE_URL, MidtransGateway
from cleanaceh.errors import GatewayError, GatewayRejected
from cleanaceh.webhook_security import compute_midtrans_signature, verify_midtrans_signature

SERVER_KEY = "SB-Mid-server-test-key"


def _gateway(handler, is_production=False, server_key=SERVER_KEY):
    return MidtransGateway(
        server_key=server_key,
        is_production=is_production,
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


def _charge(gateway):
    return asyncio.run(
        gateway.charge(
            transaction_id="CA-CA123456789-1700000000000",
            amount=209800,
            customer={"first_name": "Sari", "email": "sari@example.com", "phone": "+6281234567890"},
            items=[{"id": "svc", "price": 209800, "quantity": 1, "name": "CleanAceh - CA123456789"}],
            channel_params={"payment_type": "gopay", "gopay": {"enable_callback": True}},
        )
    )


class TestMidtransCharge:
    def test_successful_charge(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                201,
                json={
                    "status_code": "201",
                    "transaction_id": "d2c1-txn",
                    "transaction_status": "pending",
                    "payment_type": "gopay",
                    "actions": [
                        {"name": "generate-qr-code", "url": "https://api.sandbox.midtrans.com/qr"},
                        {"name": "deeplink-redirect", "url": "gojek://gopay/merchanttransfer"},
                    ],
                },
            )

        result = _charge(_gateway(handler))

        assert seen["url"] == f"{SANDBOX_BASE_URL}/v2/charge"
        assert seen["auth"] == "Basic " + base64.b64encode(f"{SERVER_KEY}:".encode()).decode()
        assert seen["body"]["transaction_details"] == {
            "order_id": "CA-CA123456789-1700000000000",
            "gross_amount": 209800,
        }
        assert seen["body"]["payment_type"] == "gopay"
        assert result.transaction_id == "d2c1-txn"
        assert result.status == "pending"
        assert result.action_url("deeplink-redirect") == "gojek://gopay/merchanttransfer"
        assert result.action_url("missing") is None

    def test_production_base_url(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            return httpx.Response(200, json={"status_code": "201", "transaction_id": "t"})

        _charge(_gateway(handler, is_production=True))

        assert seen["url"] == f"{PRODUCTION_BASE_URL}/v2/charge"

    def test_http_error_status(self):
        def handler(request):
            return httpx.Response(401, json={"status_code": "401", "status_message": "Unauthorized"})

        with pytest.raises(GatewayRejected):
            _charge(_gateway(handler))

    def test_error_reported_in_body_with_http_200(self):
        def handler(request):
            return httpx.Response(
                200, json={"status_code": "406", "status_message": "Duplicate order ID", "validation_messages": []}
            )

        with pytest.raises(GatewayRejected) as exc_info:
            _charge(_gateway(handler))

        assert "406" in exc_info.value.message
        assert "406" not in exc_info.value.public_message

    def test_network_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(GatewayError) as exc_info:
            _charge(_gateway(handler))

        assert not isinstance(exc_info.value, GatewayRejected)

    @pytest.mark.parametrize("http_status,body_status", [(500, "500"), (503, "503"), (200, "500")])
    def test_provider_side_failure_is_retryable(self, http_status, body_status):
        def handler(request):
            return httpx.Response(http_status, json={"status_code": body_status, "status_message": "Internal error"})

        with pytest.raises(GatewayError) as exc_info:
            _charge(_gateway(handler))

        assert not isinstance(exc_info.value, GatewayRejected)

    def test_missing_server_key(self):
        def handler(request):
            raise AssertionError("no request expected")

        with pytest.raises(GatewayError):
            _charge(_gateway(handler, server_key=None))


class TestMidtransSignature:
    def _notification(self, **overrides):
        body = {"order_id": "CA-CA123456789-1700000000000", "status_code": "200", "gross_amount": "209800.00"}
        body["signature_key"] = compute_midtrans_signature(
            body["order_id"], body["status_code"], body["gross_amount"], SERVER_KEY
        )
        body.update(overrides)
        return body

    def test_valid_signature(self):
        assert verify_midtrans_signature(self._notification(), SERVER_KEY)

    def test_gross_amount_is_used_verbatim(self):
        # "209800" is not "209800.00"
        assert not verify_midtrans_signature(self._notification(gross_amount="209800"), SERVER_KEY)

    def test_wrong_key(self):
        assert not verify_midtrans_signature(self._notification(), "SB-Mid-server-other")

    def test_missing_signature(self):
        body = self._notification()
        del body["signature_key"]

        assert not verify_midtrans_signature(body, SERVER_KEY)

    def test_no_server_key_configured(self):
        assert not verify_midtrans_signature(self._notification(), None)

    def test_digest_is_sha512_hex(self):
        assert len(compute_midtrans_signature("a", "200", "1.00", "k")) == 128
