from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from storefront.domain.orders import OrderService
from storefront.persistence.db import get_session

router = APIRouter(tags=["orders"])


class OrderStatusUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str
    is_paid: bool | None = Field(default=None, alias="isPaid")
    paid_at: datetime | None = Field(default=None, alias="paidAt")
    is_delivered: bool | None = Field(default=None, alias="isDelivered")
    delivered_at: datetime | None = Field(default=None, alias="deliveredAt")
    notes: str | None = None
    tracking_number: str | None = Field(default=None, alias="trackingNumber")
    shipping_carrier: str | None = Field(default=None, alias="shippingCarrier")


class PaymentResultRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    provider: str | None = None
    transaction_id: str | None = Field(default=None, alias="transactionId")
    status: str | None = None
    amount: float | None = Field(default=None, ge=0)
    currency: str | None = None
    paid_at: datetime | None = Field(default=None, alias="paidAt")
    receipt_url: str | None = Field(default=None, alias="receiptUrl")


def get_order_service(request: Request, session: Session = Depends(get_session)) -> OrderService:
    return OrderService(session, request.app.state.settings)


@router.get("/orders")
def list_orders(
    user_id: str | None = Query(default=None, alias="userId"),
    status: str | None = Query(default=None),
    limit: int | None = Query(default=None, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    service: OrderService = Depends(get_order_service),
):
    orders = service.list_orders(user_id=user_id, status=status, limit=limit, offset=offset)
    return {"success": True, "data": orders}


@router.post("/orders", status_code=201)
def create_order(
    payload: Any = Body(default=None),
    service: OrderService = Depends(get_order_service),
):
    return {"success": True, "data": service.create_order(payload)}


@router.get("/orders/{order_id}")
def get_order(order_id: str, service: OrderService = Depends(get_order_service)):
    return {"success": True, "data": service.get_order(order_id)}


@router.patch("/orders/{order_id}/status")
def update_order_status(
    order_id: str,
    req: OrderStatusUpdateRequest,
    service: OrderService = Depends(get_order_service),
):
    order = service.update_status(
        order_id,
        req.status,
        is_paid=req.is_paid,
        paid_at=req.paid_at,
        is_delivered=req.is_delivered,
        delivered_at=req.delivered_at,
        notes=req.notes,
        tracking_number=req.tracking_number,
        shipping_carrier=req.shipping_carrier,
    )
    return {"success": True, "data": order}


@router.post("/orders/{order_id}/pay")
def pay_order(
    order_id: str,
    req: PaymentResultRequest,
    service: OrderService = Depends(get_order_service),
):
    payment = req.model_dump(by_alias=True, exclude_none=True)
    return {"success": True, "data": service.mark_paid(order_id, payment)}
