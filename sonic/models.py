"""Pydantic models for Sonic API requests and responses."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from sonic.conversation.models import CodeFile, Visibility


def _check_url(value: Optional[str]) -> Optional[str]:
    if value is not None and not value.startswith(("http://", "https://")):
        raise ValueError("Profile picture must be a valid URL")
    return value


EmailAddress = Annotated[EmailStr, AfterValidator(str.lower)]
PictureUrl = Annotated[str, AfterValidator(_check_url)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Enums ---

class SubscriptionStatus(str, Enum):
    FREE = "free"
    PAID = "paid"


class Role(str, Enum):
    NORMAL = "normal"
    PREMIUM = "premium"


Plan = Literal["monthly", "yearly"]


# --- Auth ---

class RegisterRequest(CamelModel):
    name: str = Field(..., max_length=255)
    email: EmailAddress
    password: str = Field(..., min_length=6, max_length=128)
    profile_picture: Optional[PictureUrl] = None

    @field_validator("name")
    @classmethod
    def name_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v


class LoginRequest(BaseModel):
    email: EmailAddress
    password: str = Field(..., min_length=1)


class GoogleAuthRequest(CamelModel):
    google_id: str = Field(..., min_length=1)
    email: EmailAddress
    name: str = Field(..., min_length=1)
    profile_picture: Optional[PictureUrl] = None


class OwnedProject(CamelModel):
    conversation_id: str
    title: str
    created_at: datetime


class UserResponse(CamelModel):
    id: str
    name: str
    email: str
    tokens: int
    role: Role
    profile_picture: str
    subscription_status: SubscriptionStatus
    subscription_end_date: Optional[datetime] = None
    created_at: datetime
    last_login: Optional[datetime] = None
    projects: list[OwnedProject] = []


class AuthResponse(CamelModel):
    success: bool = True
    token: str
    tokens_granted: int = 0
    user: UserResponse


# --- Users ---

class UpdateProfileRequest(CamelModel):
    name: Optional[str] = None
    email: Optional[EmailAddress] = None
    profile_picture: Optional[PictureUrl] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Name cannot be empty")
        return v.strip() if v else v


class UpdateSubscriptionRequest(CamelModel):
    subscription_status: SubscriptionStatus
    subscription_end_date: Optional[datetime] = None


class UserEnvelope(BaseModel):
    success: bool = True
    user: UserResponse


# --- Payments ---

class SavePaymentRequest(BaseModel):
    """Checkout callback payload as posted by the web client."""
    amount: float = Field(..., gt=0, alias="rupees")
    transaction_id: str = Field(..., min_length=1)
    plan: Plan
    receipt_id: str = Field(..., min_length=1)
    currency: str = "INR"
    status: Optional[str] = None
    created_at: Optional[datetime] = None
    razorpay_order_id: Optional[str] = None
    razorpay_signature: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class PaymentInfo(CamelModel):
    id: str
    razorpay_payment_id: str
    amount: float
    currency: str
    plan: str
    status: str
    payment_date: datetime
    receipt_id: str


class SubscriptionInfo(CamelModel):
    id: Optional[str] = None
    subscription_status: SubscriptionStatus
    subscription_end_date: Optional[datetime] = None
    role: Role


class PaymentResult(BaseModel):
    payment: PaymentInfo
    user: SubscriptionInfo


class PaymentEnvelope(BaseModel):
    success: bool = True
    message: str
    data: Optional[PaymentResult] = None


class CreateOrderRequest(BaseModel):
    plan: Plan


class CreateOrderResponse(CamelModel):
    success: bool = True
    order_id: str
    amount: int
    currency: str
    key_id: str


# --- Projects ---

class ProjectSummary(CamelModel):
    id: str
    thumbnail: Optional[str] = None
    # The web client reads the upvote counter in snake case
    chai_count: int = Field(0, serialization_alias="chai_count")
    title: Optional[str] = None
    description: Optional[str] = None
    features: list[str] = []
    main_color_theme: Optional[str] = None
    secondary_color_theme: Optional[str] = None
    created_at: datetime


class ProjectDetailData(ProjectSummary):
    owner: str
    files: list[dict] = []
    chat_history: list[dict] = []
    code: list[CodeFile] = Field(default_factory=list, alias="Code")
    visibility: Visibility


class ProjectChatData(CamelModel):
    id: str
    chat_history: list[dict] = []
    code: list[CodeFile] = Field(default_factory=list, alias="Code")


class ProjectUpdateRequest(CamelModel):
    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    thumbnail: Optional[str] = None
    chai_count: Optional[int] = Field(None, ge=0)
    main_color_theme: Optional[str] = None
    secondary_color_theme: Optional[str] = None


class VisibilityRequest(BaseModel):
    visibility: Visibility
