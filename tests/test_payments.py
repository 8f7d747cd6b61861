import uuid

import pytest

from cleanaceh.domain.payments.reconciler import map_transaction_status
from cleanaceh.models import Notification, Order, OrderStatus, OrderStatusHistory, Payment, PaymentStatus
from cleanaceh.webhook_security import compute_midtrans_signature

PAYMENTS_URL = "/api/v1/payments"
WEBHOOK_URL = f"{PAYMENTS_URL}/webhook"
SERVER_KEY = "SB-Mid-server-test-key"


def notification(reference, transaction_status="settlement", fraud_status="accept", status_code="200", **extra):
    gross_amount = "209800.00"
    body = {
        "order_id": reference,
        "transaction_status": transaction_status,
        "fraud_status": fraud_status,
        "transaction_id": "midtrans-txn-webhook",
        "status_code": status_code,
        "gross_amount": gross_amount,
        "payment_type": "gopay",
        "signature_key": compute_midtrans_signature(reference, status_code, gross_amount, SERVER_KEY),
    }
    body.update(extra)
    return body


class TestCreatePayment:
    def test_charge_for_confirmed_order(self, client, db_session, gateway, customer_headers, make_order, gopay_method):
        order = make_order(status=OrderStatus.CONFIRMED)

        response = client.post(
            f"{PAYMENTS_URL}/create",
            json={"orderId": order.id, "paymentMethodId": gopay_method.id},
            headers=customer_headers,
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["status"] == "pending"
        assert data["amount"] == 209800
        assert data["reference"].startswith(f"CA-{order.order_number}-")
        assert data["midtransResponse"]["transactionId"] == "midtrans-txn-1"
        assert data["midtransResponse"]["deeplink"].startswith("gojek://")

        assert len(gateway.calls) == 1
        call = gateway.calls[0]
        assert call["transaction_id"] == data["reference"]
        assert call["amount"] == 209800
        assert call["channel_params"]["payment_type"] == "gopay"
        assert call["channel_params"]["gopay"]["enable_callback"] is True

        payment = db_session.query(Payment).filter_by(order_id=order.id).one()
        assert payment.gateway_transaction_id == "midtrans-txn-1"
        assert payment.payment_reference == data["reference"]

    def test_bank_transfer_sends_bank_code(self, client, db_session, gateway, customer, customer_headers, make_order):
        order = make_order(status=OrderStatus.CONFIRMED)
        method = client.post(
            f"{PAYMENTS_URL}/methods",
            json={"type": "bank_transfer", "provider": "BCA", "accountNumber": "1234567890"},
            headers=customer_headers,
        ).json()["data"]

        response = client.post(
            f"{PAYMENTS_URL}/create",
            json={"orderId": order.id, "paymentMethodId": method["id"]},
            headers=customer_headers,
        )

        assert response.status_code == 201
        assert gateway.calls[0]["channel_params"] == {"payment_type": "bank_transfer", "bank_transfer": {"bank": "bca"}}

    def test_mandiri_is_charged_as_echannel(self, client, gateway, customer_headers, make_order):
        order = make_order(status=OrderStatus.CONFIRMED)
        method = client.post(
            f"{PAYMENTS_URL}/methods",
            json={"type": "bank_transfer", "provider": "mandiri", "accountNumber": "1234567890"},
            headers=customer_headers,
        ).json()["data"]

        response = client.post(
            f"{PAYMENTS_URL}/create",
            json={"orderId": order.id, "paymentMethodId": method["id"]},
            headers=customer_headers,
        )

        assert response.status_code == 201
        params = gateway.calls[0]["channel_params"]
        assert params["payment_type"] == "echannel"
        assert "bank_transfer" not in params
        assert params["echannel"]["bill_info1"] == "Payment for:"

    def test_shopeepay_sends_callback_url(self, client, gateway, customer_headers, make_order):
        order = make_order(status=OrderStatus.CONFIRMED)
        method = client.post(
            f"{PAYMENTS_URL}/methods", json={"type": "ewallet", "provider": "ShopeePay"}, headers=customer_headers
        ).json()["data"]

        client.post(
            f"{PAYMENTS_URL}/create",
            json={"orderId": order.id, "paymentMethodId": method["id"]},
            headers=customer_headers,
        )

        params = gateway.calls[0]["channel_params"]
        assert params["payment_type"] == "shopeepay"
        assert params["shopeepay"]["callback_url"].endswith("/payment/result")

    @pytest.mark.parametrize("status", [OrderStatus.PENDING, OrderStatus.COMPLETED, OrderStatus.CANCELLED])
    def test_order_must_be_confirmed(self, client, gateway, customer_headers, make_order, gopay_method, status):
        order = make_order(status=status)

        response = client.post(
            f"{PAYMENTS_URL}/create",
            json={"orderId": order.id, "paymentMethodId": gopay_method.id},
            headers=customer_headers,
        )

        assert response.status_code == 400
        assert gateway.calls == []

    def test_second_payment_for_order_conflicts(self, client, customer_headers, make_order, gopay_method):
        order = make_order(status=OrderStatus.CONFIRMED)
        body = {"orderId": order.id, "paymentMethodId": gopay_method.id}

        assert client.post(f"{PAYMENTS_URL}/create", json=body, headers=customer_headers).status_code == 201
        assert client.post(f"{PAYMENTS_URL}/create", json=body, headers=customer_headers).status_code == 409

    def test_new_payment_allowed_after_failure(self, client, customer_headers, make_order, make_payment, gopay_method):
        order = make_order(status=OrderStatus.CONFIRMED)
        make_payment(order, status=PaymentStatus.FAILED)

        response = client.post(
            f"{PAYMENTS_URL}/create",
            json={"orderId": order.id, "paymentMethodId": gopay_method.id},
            headers=customer_headers,
        )

        assert response.status_code == 201

    def test_other_customers_order(self, client, other_customer_headers, make_order, gopay_method):
        order = make_order(status=OrderStatus.CONFIRMED)

        response = client.post(
            f"{PAYMENTS_URL}/create",
            json={"orderId": order.id, "paymentMethodId": gopay_method.id},
            headers=other_customer_headers,
        )

        assert response.status_code == 404

    def test_unknown_payment_method(self, client, customer_headers, make_order):
        order = make_order(status=OrderStatus.CONFIRMED)

        response = client.post(
            f"{PAYMENTS_URL}/create",
            json={"orderId": order.id, "paymentMethodId": str(uuid.uuid4())},
            headers=customer_headers,
        )

        assert response.status_code == 404

    def test_gateway_failure_leaves_payment_pending(
        self, client, db_session, gateway, customer_headers, make_order, gopay_method
    ):
        gateway.fail = True
        order = make_order(status=OrderStatus.CONFIRMED)

        response = client.post(
            f"{PAYMENTS_URL}/create",
            json={"orderId": order.id, "paymentMethodId": gopay_method.id},
            headers=customer_headers,
        )

        assert response.status_code == 500
        # Provider detail is not leaked
        assert "Midtrans" not in response.json()["message"]
        payment = db_session.query(Payment).filter_by(order_id=order.id).one()
        assert payment.status == PaymentStatus.PENDING
        assert payment.gateway_transaction_id is None

    def test_retry_after_gateway_failure(self, client, db_session, gateway, customer_headers, make_order, gopay_method):
        gateway.fail = True
        order = make_order(status=OrderStatus.CONFIRMED)
        client.post(
            f"{PAYMENTS_URL}/create",
            json={"orderId": order.id, "paymentMethodId": gopay_method.id},
            headers=customer_headers,
        )
        payment = db_session.query(Payment).filter_by(order_id=order.id).one()

        gateway.fail = False
        response = client.post(f"{PAYMENTS_URL}/{payment.id}/retry", headers=customer_headers)

        assert response.status_code == 200
        assert len(gateway.calls) == 2
        assert gateway.calls[1]["transaction_id"] == payment.payment_reference
        db_session.expire_all()
        assert db_session.get(Payment, payment.id).gateway_transaction_id == "midtrans-txn-2"

    def test_rejected_charge_marks_payment_failed(
        self, client, db_session, gateway, customer_headers, make_order, gopay_method
    ):
        gateway.reject = True
        order = make_order(status=OrderStatus.CONFIRMED)
        body = {"orderId": order.id, "paymentMethodId": gopay_method.id}

        response = client.post(f"{PAYMENTS_URL}/create", json=body, headers=customer_headers)

        assert response.status_code == 500
        assert "declined" in response.json()["message"]
        assert "406" not in response.json()["message"]
        payment = db_session.query(Payment).filter_by(order_id=order.id).one()
        assert payment.status == PaymentStatus.FAILED

        # The order is free for a new payment
        gateway.reject = False
        response = client.post(f"{PAYMENTS_URL}/create", json=body, headers=customer_headers)

        assert response.status_code == 201
        db_session.expire_all()
        statuses = sorted(p.status.value for p in db_session.query(Payment).filter_by(order_id=order.id))
        assert statuses == ["failed", "pending"]

    def test_rejected_payment_cannot_be_retried(
        self, client, db_session, gateway, customer_headers, make_order, gopay_method
    ):
        gateway.reject = True
        order = make_order(status=OrderStatus.CONFIRMED)
        client.post(
            f"{PAYMENTS_URL}/create",
            json={"orderId": order.id, "paymentMethodId": gopay_method.id},
            headers=customer_headers,
        )
        payment = db_session.query(Payment).filter_by(order_id=order.id).one()

        response = client.post(f"{PAYMENTS_URL}/{payment.id}/retry", headers=customer_headers)

        assert response.status_code == 400
        assert len(gateway.calls) == 1

    def test_method_deletable_after_rejected_charge(self, client, gateway, customer_headers, make_order, gopay_method):
        gateway.reject = True
        order = make_order(status=OrderStatus.CONFIRMED)
        client.post(
            f"{PAYMENTS_URL}/create",
            json={"orderId": order.id, "paymentMethodId": gopay_method.id},
            headers=customer_headers,
        )

        response = client.delete(f"{PAYMENTS_URL}/methods/{gopay_method.id}", headers=customer_headers)

        assert response.status_code == 200

    def test_late_settlement_after_rejection_is_ignored(
        self, client, db_session, gateway, customer_headers, make_order, gopay_method
    ):
        gateway.reject = True
        order = make_order(status=OrderStatus.CONFIRMED)
        client.post(
            f"{PAYMENTS_URL}/create",
            json={"orderId": order.id, "paymentMethodId": gopay_method.id},
            headers=customer_headers,
        )
        payment = db_session.query(Payment).filter_by(order_id=order.id).one()

        response = client.post(WEBHOOK_URL, json=notification(payment.payment_reference))

        assert response.status_code == 200
        db_session.expire_all()
        assert db_session.get(Payment, payment.id).status == PaymentStatus.FAILED

    def test_retry_refused_once_charged(self, client, customer_headers, make_order, make_payment):
        order = make_order(status=OrderStatus.CONFIRMED)
        payment = make_payment(order, gateway_transaction_id="midtrans-txn-existing")

        response = client.post(f"{PAYMENTS_URL}/{payment.id}/retry", headers=customer_headers)

        assert response.status_code == 400

    def test_cleaner_cannot_pay(self, client, cleaner_headers, make_order, gopay_method):
        order = make_order(status=OrderStatus.CONFIRMED)

        response = client.post(
            f"{PAYMENTS_URL}/create",
            json={"orderId": order.id, "paymentMethodId": gopay_method.id},
            headers=cleaner_headers,
        )

        assert response.status_code == 403


class TestMapTransactionStatus:
    @pytest.mark.parametrize(
        "transaction_status,fraud_status,expected",
        [
            ("settlement", None, PaymentStatus.PAID),
            ("capture", "accept", PaymentStatus.PAID),
            ("capture", "challenge", None),
            ("pending", None, PaymentStatus.PENDING),
            ("deny", None, PaymentStatus.FAILED),
            ("expire", None, PaymentStatus.FAILED),
            ("cancel", None, PaymentStatus.FAILED),
            ("refund", None, None),
        ],
    )
    def test_mapping(self, transaction_status, fraud_status, expected):
        assert map_transaction_status(transaction_status, fraud_status) == expected


class TestWebhook:
    def test_settlement_marks_payment_paid(self, client, db_session, make_order, make_payment):
        order = make_order(status=OrderStatus.CONFIRMED)
        payment = make_payment(order)

        response = client.post(WEBHOOK_URL, json=notification(payment.payment_reference))

        assert response.status_code == 200
        assert response.json() == {"message": "Webhook processed successfully"}
        db_session.expire_all()
        paid = db_session.get(Payment, payment.id)
        assert paid.status == PaymentStatus.PAID
        assert paid.paid_at is not None
        assert paid.gateway_transaction_id == "midtrans-txn-webhook"

    def test_duplicate_settlement_is_applied_once(self, client, db_session, customer, make_order, make_payment):
        order = make_order(status=OrderStatus.PENDING)
        payment = make_payment(order)
        body = notification(payment.payment_reference)

        first = client.post(WEBHOOK_URL, json=body)
        db_session.expire_all()
        paid_at = db_session.get(Payment, payment.id).paid_at
        second = client.post(WEBHOOK_URL, json=body)

        assert first.status_code == 200
        assert second.status_code == 200
        db_session.expire_all()
        assert db_session.get(Payment, payment.id).paid_at == paid_at
        assert (
            db_session.query(Notification).filter_by(user_id=customer.id, title="Payment Successful").count() == 1
        )
        # Pending order confirmed exactly once by the system
        assert db_session.get(Order, order.id).status == OrderStatus.CONFIRMED
        history = db_session.query(OrderStatusHistory).filter_by(order_id=order.id).all()
        assert len(history) == 1
        assert history[0].new_status == "confirmed"
        assert history[0].changed_by is None

    def test_pending_after_paid_is_ignored(self, client, db_session, make_order, make_payment):
        order = make_order(status=OrderStatus.CONFIRMED)
        payment = make_payment(order)
        client.post(WEBHOOK_URL, json=notification(payment.payment_reference))

        response = client.post(
            WEBHOOK_URL, json=notification(payment.payment_reference, transaction_status="pending", status_code="201")
        )

        assert response.status_code == 200
        db_session.expire_all()
        assert db_session.get(Payment, payment.id).status == PaymentStatus.PAID

    def test_failed_payment_never_becomes_paid(self, client, db_session, make_order, make_payment):
        order = make_order(status=OrderStatus.CONFIRMED)
        payment = make_payment(order, status=PaymentStatus.FAILED)

        response = client.post(WEBHOOK_URL, json=notification(payment.payment_reference))

        assert response.status_code == 200
        db_session.expire_all()
        failed = db_session.get(Payment, payment.id)
        assert failed.status == PaymentStatus.FAILED
        assert failed.paid_at is None

    @pytest.mark.parametrize("transaction_status", ["deny", "expire", "cancel"])
    def test_failure_statuses(self, client, db_session, make_order, make_payment, transaction_status):
        order = make_order(status=OrderStatus.CONFIRMED)
        payment = make_payment(order)

        response = client.post(
            WEBHOOK_URL,
            json=notification(payment.payment_reference, transaction_status=transaction_status, status_code="202"),
        )

        assert response.status_code == 200
        db_session.expire_all()
        assert db_session.get(Payment, payment.id).status == PaymentStatus.FAILED
        assert db_session.get(Order, order.id).status == OrderStatus.CONFIRMED

    def test_challenged_capture_changes_nothing(self, client, db_session, make_order, make_payment):
        order = make_order(status=OrderStatus.CONFIRMED)
        payment = make_payment(order)

        response = client.post(
            WEBHOOK_URL,
            json=notification(payment.payment_reference, transaction_status="capture", fraud_status="challenge"),
        )

        assert response.status_code == 200
        db_session.expire_all()
        assert db_session.get(Payment, payment.id).status == PaymentStatus.PENDING

    def test_unknown_reference(self, client):
        response = client.post(WEBHOOK_URL, json=notification("CA-UNKNOWN-1"))

        assert response.status_code == 404
        assert response.json() == {"message": "Payment not found"}

    def test_bad_signature(self, client, db_session, make_order, make_payment):
        order = make_order(status=OrderStatus.CONFIRMED)
        payment = make_payment(order)
        body = notification(payment.payment_reference)
        body["gross_amount"] = "1.00"

        response = client.post(WEBHOOK_URL, json=body)

        assert response.status_code == 403
        db_session.expire_all()
        assert db_session.get(Payment, payment.id).status == PaymentStatus.PENDING

    def test_missing_signature(self, client, make_order, make_payment):
        order = make_order(status=OrderStatus.CONFIRMED)
        payment = make_payment(order)
        body = notification(payment.payment_reference)
        del body["signature_key"]

        assert client.post(WEBHOOK_URL, json=body).status_code == 403

    def test_malformed_payload(self, client):
        response = client.post(
            WEBHOOK_URL, content=b"not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400

    def test_payload_without_order_id(self, client):
        response = client.post(WEBHOOK_URL, json={"transaction_status": "settlement"})

        assert response.status_code == 400


class TestPaymentHistory:
    def test_history_lists_own_payments(self, client, customer_headers, make_order, make_payment):
        make_payment(make_order(status=OrderStatus.CONFIRMED))
        make_payment(make_order(status=OrderStatus.CONFIRMED), status=PaymentStatus.PAID)

        body = client.get(f"{PAYMENTS_URL}/history", headers=customer_headers).json()

        assert body["meta"]["pagination"]["total"] == 2
        assert {row["status"] for row in body["data"]} == {"pending", "paid"}

    def test_history_status_filter(self, client, customer_headers, make_order, make_payment):
        make_payment(make_order(status=OrderStatus.CONFIRMED))
        make_payment(make_order(status=OrderStatus.CONFIRMED), status=PaymentStatus.PAID)

        body = client.get(f"{PAYMENTS_URL}/history", params={"status": "paid"}, headers=customer_headers).json()

        assert [row["status"] for row in body["data"]] == ["paid"]

    def test_payment_detail(self, client, customer_headers, make_order, make_payment):
        payment = make_payment(make_order(status=OrderStatus.CONFIRMED))

        data = client.get(f"{PAYMENTS_URL}/{payment.id}", headers=customer_headers).json()["data"]

        assert data["paymentReference"] == payment.payment_reference
        assert data["paymentMethod"]["provider"] == "GoPay"

    def test_other_customer_cannot_see_payment(self, client, other_customer_headers, make_order, make_payment):
        payment = make_payment(make_order(status=OrderStatus.CONFIRMED))

        response = client.get(f"{PAYMENTS_URL}/{payment.id}", headers=other_customer_headers)

        assert response.status_code == 404
