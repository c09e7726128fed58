"""Razorpay routes: order creation and the payment webhook."""

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from sonic.auth import get_current_user
from sonic.database import get_db
from sonic.models import CreateOrderRequest, CreateOrderResponse
from sonic.models_db import User
from sonic.services.payments import PLAN_PRICES, map_payment_status, record_payment
from sonic.services.razorpay_gateway import get_gateway

logger = logging.getLogger(__name__)

router = APIRouter()

HANDLED_EVENTS = ("payment.captured", "payment.failed")


@router.post("/users/payment/order", response_model=CreateOrderResponse)
async def create_order(body: CreateOrderRequest, current_user: User = Depends(get_current_user)):
    """Create the Razorpay order the browser checkout pays against."""
    gateway = get_gateway()
    order = gateway.create_order(body.plan, current_user.id)
    return CreateOrderResponse(
        order_id=order["id"],
        amount=order["amount"],
        currency=order.get("currency", "INR"),
        key_id=gateway.key_id,
    )


@router.post("/webhook/razorpay")
async def razorpay_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(None),
    db: Session = Depends(get_db),
):
    """Record captured and failed payments reported by Razorpay."""
    payload = (await request.body()).decode("utf-8")
    if not x_razorpay_signature:
        raise HTTPException(status_code=400, detail="Missing Razorpay signature")

    if not get_gateway().verify_webhook(payload, x_razorpay_signature):
        raise HTTPException(status_code=400, detail="Invalid signature")

    event = json.loads(payload)
    event_type = event.get("event")
    if event_type not in HANDLED_EVENTS:
        logger.debug("Ignoring Razorpay event %s", event_type)
        return {"status": "ignored"}

    entity = event.get("payload", {}).get("payment", {}).get("entity", {})
    notes = entity.get("notes") or {}
    user = db.query(User).filter(User.id == notes.get("user_id")).first()
    plan = notes.get("plan")
    if user is None or plan not in PLAN_PRICES:
        logger.warning("Razorpay payment %s has no matching user or plan", entity.get("id"))
        return {"status": "ignored"}

    created_at = entity.get("created_at")
    record_payment(
        db,
        user,
        razorpay_payment_id=entity["id"],
        amount=entity.get("amount", 0) / 100,
        plan=plan,
        receipt_id=entity.get("order_id") or entity["id"],
        status=map_payment_status(entity.get("status")),
        currency=entity.get("currency", "INR"),
        razorpay_order_id=entity.get("order_id"),
        payment_date=datetime.fromtimestamp(created_at, timezone.utc) if created_at else None,
    )
    return {"status": "ok"}
