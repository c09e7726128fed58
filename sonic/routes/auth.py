"""Auth routes: email/password and Google sign-in, daily token grant."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from sonic.auth import create_access_token, get_current_user, hash_password, verify_password
from sonic.database import get_db
from sonic.models import AuthResponse, GoogleAuthRequest, LoginRequest, RegisterRequest
from sonic.models_db import DEFAULT_PROFILE_PICTURE, User
from sonic.services.accounts import user_to_response
from sonic.services.token_ledger import DAILY_TOKEN_GRANT, STARTING_TOKENS, grant_daily_tokens

logger = logging.getLogger(__name__)

router = APIRouter()


def _auth_response(db: Session, user: User, tokens_granted: int = 0) -> AuthResponse:
    return AuthResponse(
        token=create_access_token(user.id),
        tokens_granted=tokens_granted,
        user=user_to_response(db, user),
    )


@router.post("/auth/register", response_model=AuthResponse, status_code=201)
async def register(body: RegisterRequest, db: Session = Depends(get_db)):
    """Create a new account with the starting token balance."""
    if db.query(User).filter(User.email == body.email).first():
        raise HTTPException(status_code=400, detail="User already exists")

    user = User(
        name=body.name,
        email=body.email,
        password_hash=hash_password(body.password),
        profile_picture=body.profile_picture or DEFAULT_PROFILE_PICTURE,
        tokens=STARTING_TOKENS,
        last_login=datetime.now(timezone.utc),
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info("Registered user %s", user.id)
    return _auth_response(db, user)


@router.post("/auth/login", response_model=AuthResponse)
async def login(body: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == body.email).first()
    if not user or not verify_password(body.password, user.password_hash):
        raise HTTPException(status_code=400, detail="Invalid credentials")

    tokens_granted = grant_daily_tokens(user)
    user.last_login = datetime.now(timezone.utc)
    db.commit()
    db.refresh(user)

    if tokens_granted:
        logger.info("Granted %d daily tokens to user %s", tokens_granted, user.id)
    return _auth_response(db, user, tokens_granted)


@router.post("/auth/google", response_model=AuthResponse)
async def google_auth(body: GoogleAuthRequest, db: Session = Depends(get_db)):
    """Sign in with a Google profile, linking it to an existing email if one matches."""
    user = db.query(User).filter(User.google_id == body.google_id).first()

    if user is None:
        user = db.query(User).filter(User.email == body.email).first()
        if user is not None:
            user.google_id = body.google_id
            if body.profile_picture:
                user.profile_picture = body.profile_picture
            logger.info("Linked Google account to user %s", user.id)
        else:
            # New Google users get the day's grant on top of the starting balance
            user = User(
                google_id=body.google_id,
                email=body.email,
                name=body.name,
                profile_picture=body.profile_picture or DEFAULT_PROFILE_PICTURE,
                tokens=STARTING_TOKENS + DAILY_TOKEN_GRANT,
                last_token_grant_date=datetime.now(),
                last_login=datetime.now(timezone.utc),
            )
            db.add(user)
            db.commit()
            db.refresh(user)
            logger.info("Registered Google user %s", user.id)
            return _auth_response(db, user, DAILY_TOKEN_GRANT)

    tokens_granted = grant_daily_tokens(user)
    user.last_login = datetime.now(timezone.utc)
    db.commit()
    db.refresh(user)
    return _auth_response(db, user, tokens_granted)


@router.post("/auth/logout")
async def logout(current_user: User = Depends(get_current_user)):
    # Tokens are stateless; the client discards its copy
    return {"success": True, "message": "Logged out successfully"}
