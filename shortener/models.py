"""SQLAlchemy ORM models for the link shortener.

This module defines the database schema using SQLAlchemy declarative models
with named unique constraints and the indexes the analytics queries rely on.

Data Model Layout
=================
::
    links table
    ├─ id (SERIAL PRIMARY KEY)
    ├─ code (VARCHAR(64) UNIQUE links_code_key)
    ├─ original_url (TEXT NOT NULL)
    ├─ custom_alias (VARCHAR(64) UNIQUE links_custom_alias_key, NULL for generated codes)
    └─ created_at (TIMESTAMPTZ, DEFAULT NOW())

    clicks table
    ├─ id (SERIAL PRIMARY KEY)
    ├─ link_id (INTEGER REFERENCES links(id) ON DELETE CASCADE, INDEXED)
    ├─ user_agent (TEXT)
    ├─ ip_address (VARCHAR(45))
    └─ clicked_at (TIMESTAMPTZ, DEFAULT NOW(), INDEXED)

Class Relationship Diagram
=========================
::
    LinkRecord 1 ──── * ClickRecord

Key Behaviours
===============
- Constraint names are fixed so a unique violation can be traced to the
  code column or the alias column.
- custom_alias holds the code for links created with a caller-chosen alias.
- created_at and clicked_at are timezone-aware and default to NOW().

Classes:
    LinkRecord:  A short code mapped to its original URL.
    ClickRecord:  One redirect resolved through a link.
"""

import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from shortener.database import Base
from shortener.errors import ALIAS_CONSTRAINT, CODE_CONSTRAINT

__all__ = ["LinkRecord", "ClickRecord"]


class LinkRecord(Base):
    __tablename__ = "links"
    __table_args__ = (
        UniqueConstraint("code", name=CODE_CONSTRAINT),
        UniqueConstraint("custom_alias", name=ALIAS_CONSTRAINT),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(64), nullable=False)
    original_url: Mapped[str] = mapped_column(Text, nullable=False)
    custom_alias: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<LinkRecord(id={self.id}, code='{self.code}')>"


class ClickRecord(Base):
    __tablename__ = "clicks"
    __table_args__ = (
        Index("ix_clicks_link_id", "link_id"),
        Index("ix_clicks_clicked_at", "clicked_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    link_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("links.id", ondelete="CASCADE"), nullable=False
    )
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    clicked_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<ClickRecord(id={self.id}, link_id={self.link_id})>"
