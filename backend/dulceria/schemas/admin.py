"""
Admin dashboard request schemas.

Partial-update schemas leave every field optional; routers pass only the
fields the client actually sent (``model_dump(exclude_unset=True)``).
"""

from typing import Any, Optional

from pydantic import Field, field_validator

from dulceria.schemas.checkout import CamelModel


class LoginRequest(CamelModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=255)


class SetupRequest(CamelModel):
    """Request schema for creating an admin account."""

    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=8, max_length=255)
    name: str = Field(..., min_length=1, max_length=255)
    setup_key: str = Field(..., min_length=1, max_length=255)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        email = v.strip().lower()
        local, _, domain = email.partition("@")
        if not local or "." not in domain:
            raise ValueError("Invalid email format")
        return email


class LoginResponse(CamelModel):
    token: str
    admin: dict[str, str]


class StatusUpdateRequest(CamelModel):
    status: str = Field(..., min_length=1, max_length=20)


class NotesUpdateRequest(CamelModel):
    admin_notes: Optional[str] = Field(None, max_length=5000)


class QuoteRequest(CamelModel):
    """Quote for a custom order; the price is in minor currency units."""

    quoted_price: int = Field(..., ge=0)
    message: Optional[str] = Field(None, max_length=5000)


class ContactRequest(CamelModel):
    subject: Optional[str] = Field(None, max_length=255)
    message: str = Field(..., min_length=1, max_length=5000)


class ProductCreate(CamelModel):
    """Request schema for creating a catalog product."""

    id: str = Field(..., min_length=1, max_length=100, pattern=r"^[a-z0-9][a-z0-9-]*$")
    name: str = Field(..., min_length=1, max_length=255)
    description: str = Field("", max_length=5000)
    price: int = Field(..., ge=0, description="Whole currency units")
    batch: int = Field(1, ge=0)
    category: str = Field(..., min_length=1, max_length=100)
    image: Optional[str] = Field(None, max_length=500)
    is_custom: bool = False
    trending: bool = False
    active: bool = True


class ProductUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    price: Optional[int] = Field(None, ge=0)
    batch: Optional[int] = Field(None, ge=0)
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    image: Optional[str] = Field(None, max_length=500)
    is_custom: Optional[bool] = None
    trending: Optional[bool] = None
    active: Optional[bool] = None


class CategoryCreate(CamelModel):
    slug: str = Field(..., min_length=1, max_length=100, pattern=r"^[a-z0-9][a-z0-9-]*$")
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    sort_order: int = 0
    active: bool = True


class CategoryUpdate(CamelModel):
    slug: Optional[str] = Field(
        None, min_length=1, max_length=100, pattern=r"^[a-z0-9][a-z0-9-]*$"
    )
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    sort_order: Optional[int] = None
    active: Optional[bool] = None


class PromoCreate(CamelModel):
    """Percentage values are 0-100; fixed values are whole currency units."""

    code: str = Field(..., min_length=1, max_length=50)
    discount_type: str = Field(..., pattern=r"^(?i:percentage|fixed)$")
    discount_value: int = Field(..., ge=0)
    active: bool = True

    @field_validator("discount_value")
    @classmethod
    def validate_percentage(cls, v: int, info: Any) -> int:
        if str(info.data.get("discount_type", "")).lower() == "percentage" and v > 100:
            raise ValueError("Percentage discount cannot exceed 100")
        return v


class PromoUpdate(CamelModel):
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    discount_type: Optional[str] = Field(None, pattern=r"^(?i:percentage|fixed)$")
    discount_value: Optional[int] = Field(None, ge=0)
    active: Optional[bool] = None


class SiteSettingUpdate(CamelModel):
    value: str = Field(..., max_length=20000)
