"""Response shaping for payments"""

from typing import Optional

from ...models import Payment, PaymentMethod
from .gateway import ChargeResult


def _value(v):
    return getattr(v, "value", v)


def format_method(method: PaymentMethod) -> dict:
    return {
        "id": method.id,
        "type": _value(method.type),
        "provider": method.provider,
        "accountNumber": method.account_number,
        "accountName": method.account_name,
        "isActive": method.is_active,
        "createdAt": method.created_at,
    }


def format_charge(payment: Payment, charge: ChargeResult) -> dict:
    return {
        "paymentId": payment.id,
        "orderId": payment.order_id,
        "reference": payment.payment_reference,
        "amount": payment.amount,
        "status": _value(payment.status),
        "midtransResponse": {
            "transactionId": charge.transaction_id,
            "transactionStatus": charge.status,
            "paymentType": charge.payment_type,
            "redirectUrl": charge.redirect_url,
            "deeplink": charge.action_url("deeplink-redirect"),
            "qrString": charge.action_url("generate-qr-code"),
        },
    }


def _method_summary(method: Optional[PaymentMethod], with_account: bool = False) -> dict:
    data = {
        "type": _value(method.type) if method else None,
        "provider": method.provider if method else None,
    }
    if with_account:
        data["accountNumber"] = method.account_number if method else None
    return data


def format_payment(payment: Payment, detailed: bool = False) -> dict:
    order = payment.order
    data = {
        "id": payment.id,
        "orderId": payment.order_id,
        "orderNumber": order.order_number if order else None,
        "serviceName": order.service.name if order and order.service else None,
        "serviceDate": order.service_date if order else None,
        "amount": payment.amount,
        "status": _value(payment.status),
        "paymentMethod": _method_summary(payment.payment_method, with_account=detailed),
        "paidAt": payment.paid_at,
        "createdAt": payment.created_at,
    }
    if detailed:
        data["paymentReference"] = payment.payment_reference
        data["gatewayTransactionId"] = payment.gateway_transaction_id
    return data
