"""Response shaping for orders. Keys are camelCase to match the web client."""

from typing import Optional

from ...models import Order, User, UserAddress
from ...shared.validators import format_hhmm


def _status(value) -> Optional[str]:
    return getattr(value, "value", value)


def _person(user: Optional[User], user_id: Optional[str], detailed: bool = False) -> dict:
    data = {
        "id": user_id,
        "name": user.full_name if user else None,
        "phone": user.phone if user else None,
        "profilePicture": user.profile_picture_url if user else None,
    }
    if detailed:
        data["email"] = user.email if user else None
    return data


def _address(address: Optional[UserAddress], detailed: bool = False) -> Optional[dict]:
    if not address:
        return None
    data = {
        "label": address.label,
        "fullAddress": address.full_address,
        "city": address.city,
    }
    if detailed:
        data["postalCode"] = address.postal_code
    return data


def _pricing(order: Order) -> dict:
    return {
        "basePrice": order.base_price,
        "additionalServicesPrice": order.additional_services_price,
        "platformFee": order.platform_fee,
        "taxAmount": order.tax_amount,
        "totalPrice": order.total_price,
    }


def _timestamps(order: Order) -> dict:
    return {
        "confirmedAt": order.confirmed_at,
        "startedAt": order.started_at,
        "completedAt": order.completed_at,
        "cancelledAt": order.cancelled_at,
    }


def format_created_order(order: Order) -> dict:
    cleaner_user = order.cleaner.user if order.cleaner else None
    return {
        "id": order.id,
        "orderNumber": order.order_number,
        "status": _status(order.status),
        "service": {
            "id": order.service_id,
            "name": order.service.name if order.service else None,
            "description": order.service.description if order.service else None,
        },
        "cleaner": {
            "id": order.cleaner_id,
            "name": cleaner_user.full_name if cleaner_user else None,
            "phone": cleaner_user.phone if cleaner_user else None,
        },
        "serviceDate": order.service_date,
        "startTime": format_hhmm(order.start_time),
        "endTime": format_hhmm(order.end_time),
        "address": _address(order.address),
        "serviceAddress": order.service_address,
        "pricing": _pricing(order),
        "additionalServices": order.additional_services or [],
        "specialInstructions": order.special_instructions,
        "createdAt": order.created_at,
    }


def format_order_summary(order: Order, viewer_type: str) -> dict:
    """List row. Customers see the cleaner, cleaners see the customer, admins see both."""
    cleaner_user = order.cleaner.user if order.cleaner else None
    show_cleaner = viewer_type in ("customer", "admin")
    show_customer = viewer_type in ("cleaner", "admin")
    return {
        "id": order.id,
        "orderNumber": order.order_number,
        "status": _status(order.status),
        "service": {
            "id": order.service_id,
            "name": order.service.name if order.service else None,
            "description": order.service.description if order.service else None,
            "category": order.service.category if order.service else None,
        },
        "cleaner": _person(cleaner_user, order.cleaner_id) if show_cleaner else None,
        "customer": _person(order.customer, order.customer_id) if show_customer else None,
        "serviceDate": order.service_date,
        "startTime": format_hhmm(order.start_time),
        "endTime": format_hhmm(order.end_time),
        "address": _address(order.address),
        "serviceAddress": order.service_address,
        "totalPrice": order.total_price,
        "createdAt": order.created_at,
        **_timestamps(order),
    }


def format_order_detail(order: Order) -> dict:
    cleaner_user = order.cleaner.user if order.cleaner else None
    service = order.service
    return {
        "id": order.id,
        "orderNumber": order.order_number,
        "status": _status(order.status),
        "service": {
            "id": order.service_id,
            "name": service.name if service else None,
            "description": service.description if service else None,
            "category": service.category if service else None,
            "basePrice": service.base_price if service else None,
        },
        "cleaner": _person(cleaner_user, order.cleaner_id, detailed=True),
        "customer": _person(order.customer, order.customer_id, detailed=True),
        "serviceDate": order.service_date,
        "startTime": format_hhmm(order.start_time),
        "endTime": format_hhmm(order.end_time),
        "address": _address(order.address, detailed=True),
        "serviceAddress": order.service_address,
        "pricing": _pricing(order),
        "additionalServices": order.additional_services or [],
        "specialInstructions": order.special_instructions,
        "statusHistory": [
            {
                "oldStatus": h.old_status,
                "newStatus": h.new_status,
                "notes": h.notes,
                "changedBy": h.actor.full_name if h.actor else None,
                "createdAt": h.created_at,
            }
            for h in order.status_history
        ],
        "payments": [
            {
                "id": p.id,
                "amount": p.amount,
                "status": _status(p.status),
                "reference": p.payment_reference,
                "paidAt": p.paid_at,
            }
            for p in order.payments
        ],
        "timestamps": {"createdAt": order.created_at, **_timestamps(order)},
    }


def format_status_change(order: Order) -> dict:
    return {
        "id": order.id,
        "status": _status(order.status),
        "updatedAt": order.updated_at,
        "timestamps": _timestamps(order),
    }


def format_recent_order(order: Order) -> dict:
    return {
        "id": order.id,
        "orderNumber": order.order_number,
        "status": _status(order.status),
        "serviceName": order.service.name if order.service else None,
        "serviceDate": order.service_date,
        "totalPrice": order.total_price,
        "createdAt": order.created_at,
    }
