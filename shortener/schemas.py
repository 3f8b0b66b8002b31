"""Pydantic schemas for domain values and request/response validation.

This module defines the Link, Click and Analytics values that flow between the
stores, the cache and the services, plus the HTTP payloads of the API.

Schema Hierarchy
=================
::
    Link (Domain, cached as JSON under link:{code})
    ├─ id: int | None (store-assigned)
    ├─ code: str
    ├─ original_url: str
    ├─ provenance: CodeProvenance
    ├─ custom_alias: str | None (computed: code when provenance is CUSTOM)
    └─ created_at: datetime (UTC)

    Click (Domain)
    ├─ id: int | None
    ├─ link_id: int
    ├─ user_agent: str
    ├─ ip_address: str
    └─ clicked_at: datetime (UTC)

    Analytics (Domain + Output)
    ├─ link_id, short_url, total_clicks
    ├─ by_day / by_month / by_user_agent: dict[str, int]
    └─ recent_clicks: list[Click] | None

    ShortenRequest (Input)   ShortenResponse (Output)   HealthResponse (Output)

Key Behaviours
===============
- Domain models are built from ORM rows with from_attributes.
- Timestamps are normalised to timezone-aware UTC.
- ShortenRequest deliberately accepts a missing URL; validation happens in the
  allocator so a missing or malformed URL maps to 400, not 422.

Classes:
    Link, Click, Analytics:  Domain values.
    ShortenRequest, ShortenResponse, HealthResponse:  API payloads.
"""

import datetime

from pydantic import BaseModel, Field, computed_field, field_validator

from shortener.enums import CodeProvenance, HealthStatus

__all__ = [
    "Link",
    "Click",
    "Analytics",
    "ShortenRequest",
    "ShortenResponse",
    "HealthResponse",
    "utcnow",
]


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _as_utc(value: datetime.datetime) -> datetime.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc)


class Link(BaseModel):
    id: int | None = None
    code: str
    original_url: str
    provenance: CodeProvenance = CodeProvenance.GENERATED
    created_at: datetime.datetime = Field(default_factory=utcnow)

    model_config = {"from_attributes": True}

    @computed_field  # type: ignore[prop-decorator]
    @property
    def custom_alias(self) -> str | None:
        return self.code if self.provenance == CodeProvenance.CUSTOM else None

    @field_validator("created_at")
    @classmethod
    def normalise_created_at(cls, v: datetime.datetime) -> datetime.datetime:
        return _as_utc(v)

    @classmethod
    def from_record(cls, record) -> "Link":
        """Build a Link from a ``LinkRecord`` row."""
        provenance = CodeProvenance.CUSTOM if record.custom_alias else CodeProvenance.GENERATED
        return cls(
            id=record.id,
            code=record.code,
            original_url=record.original_url,
            provenance=provenance,
            created_at=record.created_at,
        )


class Click(BaseModel):
    id: int | None = None
    link_id: int
    user_agent: str = ""
    ip_address: str = ""
    clicked_at: datetime.datetime = Field(default_factory=utcnow)

    model_config = {"from_attributes": True}

    @field_validator("user_agent", "ip_address", mode="before")
    @classmethod
    def none_as_empty(cls, v: str | None) -> str:
        return v or ""

    @field_validator("clicked_at")
    @classmethod
    def normalise_clicked_at(cls, v: datetime.datetime) -> datetime.datetime:
        return _as_utc(v)


class Analytics(BaseModel):
    link_id: int
    short_url: str
    total_clicks: int
    by_day: dict[str, int]
    by_month: dict[str, int]
    by_user_agent: dict[str, int]
    recent_clicks: list[Click] | None = None


class ShortenRequest(BaseModel):
    original_url: str | None = None
    custom_alias: str | None = None


class ShortenResponse(BaseModel):
    short_url: str
    original_url: str


class HealthResponse(BaseModel):
    status: HealthStatus
    database: HealthStatus
    cache: HealthStatus
