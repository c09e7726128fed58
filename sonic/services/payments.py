"""Payment records and subscription activation."""

import calendar
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from sonic.models_db import Payment, User

logger = logging.getLogger(__name__)

# Plan prices in rupees
PLAN_PRICES = {"monthly": 499, "yearly": 4999}

_STATUS_MAP = {"success": "completed", "completed": "completed", "captured": "completed", "failed": "failed"}


def map_payment_status(incoming: Optional[str]) -> str:
    """Map a checkout/webhook status onto pending/completed/failed."""
    return _STATUS_MAP.get((incoming or "").lower(), "pending")


def generate_order_id() -> str:
    return f"order_{uuid.uuid4().hex[:14]}"


def add_months(start: datetime, months: int) -> datetime:
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def subscription_end_for(plan: str, start: datetime) -> datetime:
    return add_months(start, 1 if plan == "monthly" else 12)


def activate_subscription(user: User, plan: str, now: Optional[datetime] = None) -> None:
    now = now or datetime.now(timezone.utc)
    user.subscription_status = "paid"
    user.role = "premium"
    user.subscription_end_date = subscription_end_for(plan, now)


def find_payment(db: Session, razorpay_payment_id: str) -> Optional[Payment]:
    return db.query(Payment).filter(Payment.razorpay_payment_id == razorpay_payment_id).first()


def record_payment(
    db: Session,
    user: User,
    *,
    razorpay_payment_id: str,
    amount: float,
    plan: str,
    receipt_id: str,
    status: str,
    currency: str = "INR",
    razorpay_order_id: Optional[str] = None,
    payment_date: Optional[datetime] = None,
) -> Payment:
    """Append a payment row and, when it completed, activate the subscription.

    Payment rows are never updated afterwards; a repeated payment id returns
    the row already stored.
    """
    existing = find_payment(db, razorpay_payment_id)
    if existing:
        logger.info("Payment %s already recorded", razorpay_payment_id)
        return existing

    payment = Payment(
        user_id=user.id,
        razorpay_payment_id=razorpay_payment_id,
        razorpay_order_id=razorpay_order_id or generate_order_id(),
        amount=amount,
        currency=currency or "INR",
        plan=plan,
        receipt_id=receipt_id,
        status=status,
        payment_date=payment_date or datetime.now(timezone.utc),
    )
    db.add(payment)

    if status == "completed":
        activate_subscription(user, plan)
        logger.info("User %s upgraded to %s plan until %s", user.id, plan, user.subscription_end_date)
    else:
        logger.info("Recorded %s payment %s for user %s", status, razorpay_payment_id, user.id)

    db.commit()
    db.refresh(payment)
    db.refresh(user)
    return payment


def latest_payment(db: Session, user: User) -> Optional[Payment]:
    return (
        db.query(Payment)
        .filter(Payment.user_id == user.id)
        .order_by(Payment.payment_date.desc())
        .first()
    )
