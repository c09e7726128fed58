"""User routes: profile, subscription, payment records."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from sonic.auth import get_current_user
from sonic.database import get_db
from sonic.models import (
    PaymentEnvelope,
    PaymentInfo,
    PaymentResult,
    SavePaymentRequest,
    SubscriptionInfo,
    SubscriptionStatus,
    UpdateProfileRequest,
    UpdateSubscriptionRequest,
    UserEnvelope,
)
from sonic.models_db import Payment, User
from sonic.services.accounts import user_to_response
from sonic.services.payments import latest_payment, map_payment_status, record_payment
from sonic.services.razorpay_gateway import get_gateway

logger = logging.getLogger(__name__)

router = APIRouter()


def _payment_result(payment: Payment, user: User) -> PaymentResult:
    return PaymentResult(
        payment=PaymentInfo(
            id=payment.id,
            razorpay_payment_id=payment.razorpay_payment_id,
            amount=payment.amount,
            currency=payment.currency,
            plan=payment.plan,
            status=payment.status,
            payment_date=payment.payment_date,
            receipt_id=payment.receipt_id,
        ),
        user=SubscriptionInfo(
            id=user.id,
            subscription_status=user.subscription_status,
            subscription_end_date=user.subscription_end_date,
            role=user.role,
        ),
    )


@router.get("/users/profile", response_model=UserEnvelope)
async def get_profile(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return UserEnvelope(user=user_to_response(db, current_user))


@router.put("/users/profile", response_model=UserEnvelope)
async def update_profile(
    body: UpdateProfileRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if body.email and body.email != current_user.email:
        taken = db.query(User).filter(User.email == body.email, User.id != current_user.id).first()
        if taken:
            raise HTTPException(status_code=400, detail="Email is already in use")
        current_user.email = body.email
    if body.name:
        current_user.name = body.name
    if body.profile_picture:
        current_user.profile_picture = body.profile_picture

    db.commit()
    db.refresh(current_user)
    return UserEnvelope(user=user_to_response(db, current_user))


@router.delete("/users/profile")
async def delete_account(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Delete the account and its payment records. Conversations are kept."""
    user_id = current_user.id
    db.query(Payment).filter(Payment.user_id == user_id).delete(synchronize_session=False)
    db.delete(current_user)
    db.commit()
    logger.info("Deleted user %s", user_id)
    return {"success": True, "message": "Account deleted successfully"}


@router.put("/users/subscription", response_model=UserEnvelope)
async def update_subscription(
    body: UpdateSubscriptionRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    current_user.subscription_status = body.subscription_status.value
    if body.subscription_end_date:
        current_user.subscription_end_date = body.subscription_end_date
    # Role follows the subscription
    current_user.role = "premium" if body.subscription_status == SubscriptionStatus.PAID else "normal"

    db.commit()
    db.refresh(current_user)
    return UserEnvelope(user=user_to_response(db, current_user))


@router.post("/users/payment/save", response_model=PaymentEnvelope)
async def save_payment(
    body: SavePaymentRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Record a checkout result; a completed payment activates the plan."""
    if body.razorpay_signature and body.razorpay_order_id:
        gateway = get_gateway()
        if not gateway.verify_payment(body.razorpay_order_id, body.transaction_id, body.razorpay_signature):
            raise HTTPException(status_code=400, detail="Invalid payment signature")

    payment = record_payment(
        db,
        current_user,
        razorpay_payment_id=body.transaction_id,
        amount=body.amount,
        plan=body.plan,
        receipt_id=body.receipt_id,
        status=map_payment_status(body.status),
        currency=body.currency,
        razorpay_order_id=body.razorpay_order_id,
        payment_date=body.created_at,
    )
    message = (
        "Payment saved and subscription updated successfully"
        if payment.status == "completed"
        else f"Payment saved with status {payment.status}"
    )
    return PaymentEnvelope(message=message, data=_payment_result(payment, current_user))


@router.get("/users/payments", response_model=PaymentEnvelope)
async def get_payment_details(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if current_user.subscription_status != SubscriptionStatus.PAID.value:
        return PaymentEnvelope(success=False, message="No payment details available for free users")

    payment = latest_payment(db, current_user)
    if payment is None:
        return PaymentEnvelope(success=False, message="No payment records found")

    return PaymentEnvelope(
        message="Latest payment details retrieved successfully",
        data=_payment_result(payment, current_user),
    )
