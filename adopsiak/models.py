from __future__ import annotations

import uuid
from typing import Optional

import sqlalchemy as sa
from sqlalchemy import CheckConstraint, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------- Base & naming ----------
class Base(DeclarativeBase):
    # Keep index/constraint names stable for cleaner migrations
    metadata = sa.MetaData(
        naming_convention={
            "ix": "ix_%(column_0_label)s",
            "uq": "uq_%(table_name)s_%(column_0_name)s",
            "ck": "ck_%(table_name)s_%(constraint_name)s",
            "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
            "pk": "pk_%(table_name)s",
        }
    )


# ---------- EMAIL VERIFICATION (one active code per identifier) ----------
class Verification(Base):
    __tablename__ = "verification"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    # "<namespace>:<normalized email>", e.g. "adopsiak:a@b.com"
    identifier: Mapped[str] = mapped_column(sa.Text, nullable=False, unique=True)
    # hex HMAC of "email|code"; the raw code is never stored
    value: Mapped[str] = mapped_column(sa.Text, nullable=False)

    # all timestamps are epoch milliseconds
    expires_at: Mapped[int] = mapped_column(sa.BigInteger, nullable=False)
    created_at: Mapped[int] = mapped_column(sa.BigInteger, nullable=False)
    updated_at: Mapped[int] = mapped_column(sa.BigInteger, nullable=False)

    __table_args__ = (
        Index("ix_verification_expires_at", "expires_at"),
    )


# ---------- ADOPSIAK ORDERS ----------
class AdopsiakOrder(Base):
    __tablename__ = "adopsiak_orders"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    city_or_municipality: Mapped[str] = mapped_column(sa.Text, nullable=False)
    shipping_address: Mapped[str] = mapped_column(sa.Text, nullable=False)
    delegate_name: Mapped[str] = mapped_column(sa.Text, nullable=False)
    delegate_phone1: Mapped[str] = mapped_column(sa.Text, nullable=False)
    delegate_phone2: Mapped[Optional[str]] = mapped_column(sa.Text, nullable=True)

    libraries_count: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0, server_default=sa.text("0"))
    kindergartens_count: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0, server_default=sa.text("0"))
    total_institutions: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0, server_default=sa.text("0"))

    delivery_date: Mapped[Optional[str]] = mapped_column(sa.Text, nullable=True)  # ISO date as entered
    protocol_text: Mapped[Optional[str]] = mapped_column(sa.Text, nullable=True)
    protocol_email_recipient: Mapped[Optional[str]] = mapped_column(sa.Text, nullable=True)

    # normalized (trimmed, lower-cased) submitter email
    email: Mapped[str] = mapped_column(sa.Text, nullable=False)
    created_at: Mapped[int] = mapped_column(sa.BigInteger, nullable=False)  # epoch ms

    __table_args__ = (
        CheckConstraint("libraries_count >= 0", name="adopsiak_orders_libraries_nonneg"),
        CheckConstraint("kindergartens_count >= 0", name="adopsiak_orders_kindergartens_nonneg"),
        CheckConstraint("total_institutions >= 0", name="adopsiak_orders_total_nonneg"),
        Index("ix_adopsiak_orders_email_created", "email", "created_at"),
    )
