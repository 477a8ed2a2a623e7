"""Customer schemas"""

from pydantic import EmailStr, Field, field_validator
from typing import Literal, Optional
from datetime import datetime

from logitrack.schemas.response import CamelModel
from logitrack.schemas.user import PHONE_PATTERN


class CustomerBase(CamelModel):
    name: str = Field(..., min_length=1, max_length=150)
    phone: str = Field(..., pattern=PHONE_PATTERN)
    email: Optional[EmailStr] = None
    company_name: Optional[str] = Field(None, max_length=150)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    customer_type: Literal["individual", "business"] = "individual"

    @field_validator('name')
    @classmethod
    def name_not_blank(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Customer name is required')
        return v

    @field_validator('email', mode='before')
    @classmethod
    def normalize_email(cls, v):
        if isinstance(v, str):
            return v.strip().lower() or None
        return v


class CustomerCreate(CustomerBase):
    pass


class CustomerUpdate(CustomerBase):
    is_active: Optional[bool] = None


class CustomerResponse(CustomerBase):
    id: int
    customer_code: str
    is_active: bool
    created_by_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
