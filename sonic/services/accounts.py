"""User account projections shared by the auth and user routes."""

from sqlalchemy.orm import Session

from sonic.models import OwnedProject, UserResponse
from sonic.models_db import Conversation, User

NEW_CHAT_TITLE = "New Chat"


def owned_projects(db: Session, user: User) -> list[OwnedProject]:
    rows = (
        db.query(Conversation.conversation_id, Conversation.title, Conversation.created_at)
        .filter(Conversation.owner_id == user.id)
        .order_by(Conversation.created_at.asc())
        .all()
    )
    return [
        OwnedProject(conversation_id=cid, title=title or NEW_CHAT_TITLE, created_at=created_at)
        for cid, title, created_at in rows
    ]


def user_to_response(db: Session, user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        tokens=user.tokens,
        role=user.role,
        profile_picture=user.profile_picture,
        subscription_status=user.subscription_status,
        subscription_end_date=user.subscription_end_date,
        created_at=user.created_at,
        last_login=user.last_login,
        projects=owned_projects(db, user),
    )
