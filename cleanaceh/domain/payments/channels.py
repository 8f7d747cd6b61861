"""
Midtrans Core API channels for saved payment methods.

Only providers listed here can be saved, so every stored method maps to a
charge Midtrans accepts. Mandiri bills go through `echannel`, the other
banks through `bank_transfer` virtual accounts.
"""

from typing import Optional

from ...config import FRONTEND_URL
from ...models import PaymentMethod, PaymentMethodType

# lowercase key -> display name stored on the method
EWALLET_PROVIDERS = {
    "gopay": "GoPay",
    "shopeepay": "ShopeePay",
}

BANK_PROVIDERS = {
    "bca": "BCA",
    "bni": "BNI",
    "bri": "BRI",
    "cimb": "CIMB",
    "permata": "Permata",
    "mandiri": "Mandiri",
}

ECHANNEL_BANKS = {"mandiri"}

PROVIDERS_BY_TYPE = {
    PaymentMethodType.EWALLET: EWALLET_PROVIDERS,
    PaymentMethodType.BANK_TRANSFER: BANK_PROVIDERS,
}


def normalize_provider(method_type: PaymentMethodType, provider: str) -> Optional[str]:
    """Display name for a supported provider, None when Midtrans cannot charge it"""
    providers = PROVIDERS_BY_TYPE[PaymentMethodType(method_type)]
    return providers.get((provider or "").strip().lower())


def payment_type_for(method: PaymentMethod) -> str:
    key = (method.provider or "").lower()
    if PaymentMethodType(method.type) == PaymentMethodType.EWALLET:
        return key
    return "echannel" if key in ECHANNEL_BANKS else "bank_transfer"


def channel_params_for(method: PaymentMethod) -> dict:
    """Charge parameters Midtrans needs for the payment method's channel"""
    payment_type = payment_type_for(method)
    params = {"payment_type": payment_type}
    if payment_type in EWALLET_PROVIDERS:
        params[payment_type] = {"callback_url": f"{FRONTEND_URL}/payment/result"}
        if payment_type == "gopay":
            params["gopay"]["enable_callback"] = True
    elif payment_type == "echannel":
        params["echannel"] = {"bill_info1": "Payment for:", "bill_info2": "CleanAceh cleaning service"}
    else:
        params["bank_transfer"] = {"bank": method.provider.lower()}
    return params
