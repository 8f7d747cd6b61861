"""
Webhook Security Module

Signature verification for payment gateway notifications. Midtrans signs each
notification with sha512(order_id + status_code + gross_amount + server_key)
and sends the hex digest as `signature_key`.
"""

import hashlib
import hmac
import logging
from typing import Optional

logger = logging.getLogger(__name__)


def constant_time_compare(a: Optional[str], b: Optional[str]) -> bool:
    """
    Compare two strings in constant time to prevent timing attacks.
    Uses hmac.compare_digest which is designed for this purpose.
    """
    if not a or not b:
        return False
    return hmac.compare_digest(a, b)


def compute_midtrans_signature(order_id: str, status_code: str, gross_amount: str, server_key: str) -> str:
    raw = f"{order_id}{status_code}{gross_amount}{server_key}"
    return hashlib.sha512(raw.encode("utf-8")).hexdigest()


def verify_midtrans_signature(notification: dict, server_key: Optional[str]) -> bool:
    """
    Check a notification body against its `signature_key`.

    gross_amount is used exactly as sent (Midtrans formats it as "209800.00").
    """
    if not server_key:
        logger.error("❌ Cannot verify Midtrans signature: server key not configured")
        return False

    signature = notification.get("signature_key")
    if not signature:
        logger.warning(f"🚫 Midtrans notification without signature_key for order_id={notification.get('order_id')}")
        return False

    expected = compute_midtrans_signature(
        str(notification.get("order_id", "")),
        str(notification.get("status_code", "")),
        str(notification.get("gross_amount", "")),
        server_key,
    )
    if not constant_time_compare(signature, expected):
        logger.warning(f"🚫 Invalid Midtrans signature for order_id={notification.get('order_id')}")
        return False

    logger.debug(f"✅ Midtrans signature verified for order_id={notification.get('order_id')}")
    return True
