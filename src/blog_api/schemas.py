from datetime import datetime
from typing import Annotated, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from blog_api.validation import ISO8601Date, RequiredStr, one_of

ActiveFlag = one_of("yes", "no")


class _Model(BaseModel):
    # Wire names are camelCase; Python code builds models by field name.
    model_config = ConfigDict(populate_by_name=True)


class Identity(BaseModel):
    """Caller identity decoded from a valid access token."""

    model_config = ConfigDict(frozen=True)

    username: str
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class SuccessResponse(_Model):
    success: bool = True


# =========================
# Auth
# =========================

class LoginRequest(_Model):
    username: RequiredStr = Field(..., max_length=255)
    password: str = Field(..., min_length=1)
    captcha_token: RequiredStr = Field(..., alias="captchaToken")


class TokenResponse(BaseModel):
    token: str = Field(..., description="JWT access token, valid for one hour")


class VerifyTokenRequest(_Model):
    token: RequiredStr


class VerifyTokenResponse(BaseModel):
    valid: bool
    identity: Optional[Identity] = None


class CreateUserRequest(_Model):
    username: RequiredStr = Field(..., max_length=255)
    password: str = Field(..., min_length=8, max_length=72, description="Password (8-72 chars)")


class CreateUserResponse(_Model):
    message: str
    user_id: int = Field(..., alias="userId")


# =========================
# Pages
# =========================

class PageSummary(_Model):
    page_id: int = Field(..., alias="pageId")
    path: str
    title: str
    description: Optional[str] = None
    published_date: Optional[str] = Field(None, alias="publishedDate")
    active: str


class PageDetail(PageSummary):
    content: Optional[str] = None
    category_id: Optional[int] = Field(None, alias="categoryId")
    category_name: Optional[str] = Field(None, alias="categoryName")


class PageWrite(_Model):
    """Body for creating or replacing a page."""

    title: RequiredStr
    content: RequiredStr
    description: RequiredStr
    set_active: ActiveFlag = Field(..., alias="setActive")
    category_id: int = Field(..., alias="categoryId")
    path: RequiredStr
    published_date: ISO8601Date = Field(..., alias="publishedDate")


class PageCreated(SuccessResponse):
    page_id: int = Field(..., alias="pageId")


# =========================
# Contacts
# =========================

class ContactRequest(_Model):
    first_name: RequiredStr = Field(..., alias="firstName")
    last_name: RequiredStr = Field(..., alias="lastName")
    email: EmailStr
    comments: Annotated[RequiredStr, Field(max_length=500)]
    captcha_token: RequiredStr = Field(..., alias="captchaToken")


class ContactSubmission(_Model):
    first_name: str = Field(..., alias="firstName")
    last_name: str = Field(..., alias="lastName")
    email: str
    comments: str
    created_at: Optional[Union[datetime, str]] = None


class ContactSaved(SuccessResponse):
    message: str = "Contact information saved successfully"

