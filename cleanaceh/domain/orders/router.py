"""Order router - FastAPI endpoints for order operations"""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_customer
from ...database import get_db
from ...models import OrderStatus, User
from ...shared.responses import create_pagination, send_paginated, send_success
from .formatters import (
    format_created_order,
    format_order_detail,
    format_order_summary,
    format_recent_order,
    format_status_change,
)
from .schemas import OrderCancel, OrderCreate, OrderStatusUpdate
from .service import OrderService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["Orders"])


def get_order_service(db: Session = Depends(get_db)) -> OrderService:
    """Dependency injection for OrderService"""
    return OrderService(db)


@router.post("", status_code=201)
async def create_order(
    data: OrderCreate,
    current_user: User = Depends(require_customer),
    service: OrderService = Depends(get_order_service),
):
    """Book a cleaner"""
    order = service.create_order(data, current_user)
    return send_success(format_created_order(order), "Order created successfully", 201)


@router.get("")
async def list_orders(
    page: Optional[int] = Query(1, ge=1),
    limit: Optional[int] = Query(10, ge=1, le=50),
    status: Optional[list[OrderStatus]] = Query(None),
    sortBy: Literal["created_at", "service_date", "total_price"] = Query("created_at"),
    sortOrder: Literal["asc", "desc"] = Query("desc"),
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """Orders belonging to the caller (customer or assigned cleaner); admins see all"""
    pagination = create_pagination(page, limit)
    orders, total = service.list_orders(current_user, pagination, status, sortBy, sortOrder)
    viewer = current_user.user_type.value
    return send_paginated(
        [format_order_summary(o, viewer) for o in orders],
        pagination,
        total,
        "Orders retrieved successfully",
    )


@router.get("/stats")
async def get_order_stats(
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """Counts per status plus the five most recent orders"""
    stats = service.get_stats(current_user)
    stats["recentOrders"] = [format_recent_order(o) for o in stats["recentOrders"]]
    return send_success(stats, "Order statistics retrieved successfully")


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    order = service.get_order(order_id, current_user)
    return send_success(format_order_detail(order), "Order retrieved successfully")


@router.put("/{order_id}/status")
async def update_order_status(
    order_id: str,
    data: OrderStatusUpdate,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    order = service.update_status(order_id, data.status, current_user, data.notes)
    return send_success(
        format_status_change(order), f"Order status changed to {data.status.value}"
    )


@router.post("/{order_id}/cancel")
async def cancel_order(
    order_id: str,
    data: Optional[OrderCancel] = None,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """Cancel an order and disclose any late-cancellation fee"""
    result = service.cancel_order(order_id, current_user, data.reason if data else None)
    return send_success(
        {
            "id": result.order.id,
            "status": OrderStatus.CANCELLED.value,
            "cancellationFee": result.fee,
            "reason": result.reason,
        },
        "Order cancelled successfully",
    )
