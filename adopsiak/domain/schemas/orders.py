from __future__ import annotations

import re
from typing import Annotated, Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, EmailStr, Field, StringConstraints, field_validator

from ...models import AdopsiakOrder

E164 = r"^\+[1-9]\d{1,14}$"

Required = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
Phone = Annotated[str, StringConstraints(strip_whitespace=True, pattern=E164)]


class OrderIn(BaseModel):
    city_or_municipality: Required
    shipping_address: Required
    delegate_name: Required
    delegate_phone1: Phone
    delegate_phone2: Optional[str] = None          # E.164 or empty
    libraries_count: int = Field(default=0, ge=0)
    kindergartens_count: int = Field(default=0, ge=0)
    total_institutions: int = Field(default=0, ge=0)
    delivery_date: Optional[str] = None
    protocol_text: Optional[str] = None
    protocol_email_recipient: Optional[str] = None  # email or empty
    email: EmailStr

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("delegate_phone2")
    @classmethod
    def optional_phone(cls, v: Optional[str]) -> Optional[str]:
        v = (v or "").strip()
        if not v:
            return None
        if not re.match(E164, v):
            raise ValueError("Invalid phone format (e.g., +48600700800)")
        return v

    @field_validator("protocol_email_recipient")
    @classmethod
    def optional_email(cls, v: Optional[str]) -> Optional[str]:
        v = (v or "").strip()
        if not v:
            return None
        try:
            return validate_email(v, check_deliverability=False).normalized
        except EmailNotValidError as exc:
            raise ValueError("Invalid email") from exc

    @field_validator("delivery_date", "protocol_text")
    @classmethod
    def empty_to_none(cls, v: Optional[str]) -> Optional[str]:
        v = (v or "").strip()
        return v or None


class OrderOut(BaseModel):
    id: int
    city_or_municipality: str
    shipping_address: str
    delegate_name: str
    delegate_phone1: str
    delegate_phone2: Optional[str] = None
    libraries_count: int
    kindergartens_count: int
    total_institutions: int
    delivery_date: Optional[str] = None
    protocol_text: Optional[str] = None
    protocol_email_recipient: Optional[str] = None
    email: str
    created_at: int  # epoch ms

    @classmethod
    def from_model(cls, o: AdopsiakOrder) -> "OrderOut":
        return cls(
            id=o.id,
            city_or_municipality=o.city_or_municipality,
            shipping_address=o.shipping_address,
            delegate_name=o.delegate_name,
            delegate_phone1=o.delegate_phone1,
            delegate_phone2=o.delegate_phone2,
            libraries_count=o.libraries_count,
            kindergartens_count=o.kindergartens_count,
            total_institutions=o.total_institutions,
            delivery_date=o.delivery_date,
            protocol_text=o.protocol_text,
            protocol_email_recipient=o.protocol_email_recipient,
            email=o.email,
            created_at=o.created_at,
        )
