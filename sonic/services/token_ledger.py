"""Per-user token balance for free-tier AI usage.

Every AI chat call costs CHAT_TOKEN_COST tokens unless the user holds an
active paid subscription. Logging in grants DAILY_TOKEN_GRANT once per
calendar day (server local time).
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy.orm import Session

from sonic.models_db import User

logger = logging.getLogger(__name__)

CHAT_TOKEN_COST = 20
DAILY_TOKEN_GRANT = 50
STARTING_TOKENS = 100


class ChargeResult(str, Enum):
    OK = "ok"
    INSUFFICIENT = "insufficient"


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes for values written as UTC
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def has_active_subscription(user: User, now: Optional[datetime] = None) -> bool:
    if user.subscription_status != "paid":
        return False
    if user.subscription_end_date is None:
        return True
    now = now or datetime.now(timezone.utc)
    return _as_utc(user.subscription_end_date) > _as_utc(now)


def charge(db: Session, user: User, cost: int = CHAT_TOKEN_COST) -> ChargeResult:
    """Deduct `cost` tokens in one conditional UPDATE.

    The balance check and the decrement happen in the same statement, so
    concurrent calls cannot drive a balance below zero.
    """
    if has_active_subscription(user):
        logger.debug("User %s has a paid subscription, no token charge", user.id)
        return ChargeResult.OK

    updated = (
        db.query(User)
        .filter(User.id == user.id, User.tokens >= cost)
        .update({User.tokens: User.tokens - cost}, synchronize_session=False)
    )
    db.commit()
    db.refresh(user)

    if updated != 1:
        logger.info("User %s has %d tokens, needs %d", user.id, user.tokens, cost)
        return ChargeResult.INSUFFICIENT

    logger.info("Charged %d tokens to user %s, %d remaining", cost, user.id, user.tokens)
    return ChargeResult.OK


def refund(db: Session, user: User, cost: int = CHAT_TOKEN_COST) -> None:
    """Give back a charge whose AI call never produced a result."""
    if has_active_subscription(user):
        return
    db.query(User).filter(User.id == user.id).update(
        {User.tokens: User.tokens + cost}, synchronize_session=False
    )
    db.commit()
    db.refresh(user)
    logger.info("Refunded %d tokens to user %s", cost, user.id)


def grant_daily_tokens(user: User, now: Optional[datetime] = None) -> int:
    """Add the daily grant if none was given on `now`'s calendar day.

    Mutates `user` in memory; the caller commits. Returns the amount granted.
    """
    now = now or datetime.now()
    last = user.last_token_grant_date
    if last is not None and last.date() == now.date():
        return 0
    user.tokens = (user.tokens or 0) + DAILY_TOKEN_GRANT
    user.last_token_grant_date = now
    return DAILY_TOKEN_GRANT
