"""Shared enums for the link shortener.

This module defines all status and state enums used across the codebase.
Using enums instead of string literals provides type safety and prevents typos.
"""

from enum import StrEnum

__all__ = ["HealthStatus", "RequestStatus", "CacheStatus", "CodeProvenance", "StorageBackend"]


class HealthStatus(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DISABLED = "disabled"


class RequestStatus(StrEnum):
    """Request status values for metrics and logging."""

    SUCCESS = "success"
    VALIDATION_ERROR = "validation_error"
    CONFLICT = "conflict"
    ERROR = "error"
    NOT_FOUND = "not_found"


class CacheStatus(StrEnum):
    """Cache status values for metrics."""

    HIT = "true"
    MISS = "false"


class CodeProvenance(StrEnum):
    """Where a link's short code came from.

    Generated codes and custom aliases share one namespace; the provenance
    only records which path produced the code.
    """

    GENERATED = "generated"
    CUSTOM = "custom"


class StorageBackend(StrEnum):
    """Backends selectable through ``STORAGE_BACKEND``."""

    POSTGRES = "postgres"
    MEMORY = "memory"
