"""
Razorpay integration for subscription checkout.

Razorpay Checkout runs in the browser; the server creates the order, then
verifies the signature Razorpay hands back (or sends to the webhook) before
trusting a payment.

Usage:
    gateway = get_gateway()
    order = gateway.create_order("monthly", user_id)
    gateway.verify_payment(order_id, payment_id, signature)
"""

import logging
import os
import uuid
from typing import Optional

import razorpay
from razorpay.errors import SignatureVerificationError
from fastapi import HTTPException

from sonic.services.payments import PLAN_PRICES

logger = logging.getLogger(__name__)


class RazorpayGateway:
    def __init__(self, key_id: str, key_secret: str, webhook_secret: Optional[str] = None):
        self.key_id = key_id
        self._client = razorpay.Client(auth=(key_id, key_secret))
        self._webhook_secret = webhook_secret

    def create_order(self, plan: str, user_id: str) -> dict:
        """Create an order for `plan`; the amount is sent in paise."""
        if plan not in PLAN_PRICES:
            raise ValueError(f"Unknown plan: {plan}")
        receipt = uuid.uuid4().hex[:32]
        order = self._client.order.create({
            "amount": PLAN_PRICES[plan] * 100,
            "currency": "INR",
            "receipt": receipt,
            "notes": {"user_id": user_id, "plan": plan},
        })
        logger.info("Created Razorpay order %s for user %s (%s)", order.get("id"), user_id, plan)
        return order

    def verify_payment(self, order_id: str, payment_id: str, signature: str) -> bool:
        try:
            self._client.utility.verify_payment_signature({
                "razorpay_order_id": order_id,
                "razorpay_payment_id": payment_id,
                "razorpay_signature": signature,
            })
            return True
        except SignatureVerificationError:
            logger.warning("Payment signature mismatch for %s", payment_id)
            return False

    def verify_webhook(self, body: str, signature: str) -> bool:
        if not self._webhook_secret:
            raise HTTPException(status_code=500, detail="Razorpay webhook not configured")
        try:
            self._client.utility.verify_webhook_signature(body, signature, self._webhook_secret)
            return True
        except SignatureVerificationError:
            logger.warning("Webhook signature mismatch")
            return False


gateway = None


def get_gateway() -> RazorpayGateway:
    global gateway
    if gateway is None:
        key_id = os.getenv("RAZORPAY_KEY_ID")
        key_secret = os.getenv("RAZORPAY_KEY_SECRET")
        if not key_id or not key_secret:
            raise HTTPException(status_code=500, detail="Razorpay not configured")
        gateway = RazorpayGateway(key_id, key_secret, os.getenv("RAZORPAY_WEBHOOK_SECRET"))
    return gateway
