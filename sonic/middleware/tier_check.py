"""Subscription checks for premium-only features."""

from fastapi import HTTPException

from sonic.models_db import User
from sonic.services.token_ledger import has_active_subscription

ROLE_LEVELS = {"normal": 0, "premium": 1}


def is_premium(user: User) -> bool:
    return ROLE_LEVELS.get(user.role, 0) >= ROLE_LEVELS["premium"] and has_active_subscription(user)


def ensure_premium(user: User, feature: str) -> None:
    """Raise 403 unless `user` holds an active premium subscription."""
    if not is_premium(user):
        raise HTTPException(
            status_code=403,
            detail={
                "message": f"Premium subscription required for {feature}",
                "requiresPremium": True,
            },
        )
