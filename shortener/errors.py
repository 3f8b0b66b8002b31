"""Error taxonomy for link allocation, redirect resolution and analytics.

Every domain error carries a machine-readable ``code`` and the HTTP status the
API layer maps it to, so routes translate errors without a lookup table.

Error Map
=========
::
    ShortenerError
    ├─ AliasExistsError          409  alias_exists
    ├─ LinkNotFoundError         404  link_not_found
    ├─ URLRequiredError          400  url_required
    ├─ InvalidURLError           400  invalid_url
    ├─ InvalidAliasError         400  invalid_alias
    ├─ AllocationExhaustedError  503  allocation_exhausted
    ├─ TransientError            500  transient_error
    └─ ConstraintViolationError  500  constraint_violation

    CacheMiss  (not an error; signals an absent cache key)
"""

__all__ = [
    "ShortenerError",
    "AliasExistsError",
    "LinkNotFoundError",
    "URLRequiredError",
    "InvalidURLError",
    "InvalidAliasError",
    "AllocationExhaustedError",
    "TransientError",
    "ConstraintViolationError",
    "CacheMiss",
    "CODE_CONSTRAINT",
    "ALIAS_CONSTRAINT",
]

# Unique constraint names declared on the links table.
CODE_CONSTRAINT = "links_code_key"
ALIAS_CONSTRAINT = "links_custom_alias_key"


class ShortenerError(Exception):
    code: str = "internal_error"
    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class AliasExistsError(ShortenerError):
    code = "alias_exists"
    status_code = 409
    default_message = "custom alias already exists"


class LinkNotFoundError(ShortenerError):
    code = "link_not_found"
    status_code = 404
    default_message = "link not found"


class URLRequiredError(ShortenerError):
    code = "url_required"
    status_code = 400
    default_message = "original_url is required"


class InvalidURLError(ShortenerError):
    code = "invalid_url"
    status_code = 400
    default_message = "invalid URL format"


class InvalidAliasError(ShortenerError):
    code = "invalid_alias"
    status_code = 400
    default_message = "invalid custom alias"


class AllocationExhaustedError(ShortenerError):
    code = "allocation_exhausted"
    status_code = 503
    default_message = "could not allocate a unique short code"


class TransientError(ShortenerError):
    """Store or cache connectivity failure (including timeouts)."""

    code = "transient_error"
    status_code = 500
    default_message = "temporary storage failure"


class ConstraintViolationError(ShortenerError):
    """A unique constraint rejected an insert.

    ``constraint`` names the violated constraint so callers can tell a code
    collision from an alias collision.
    """

    code = "constraint_violation"
    status_code = 500
    default_message = "unique constraint violated"

    def __init__(self, constraint: str | None, message: str | None = None) -> None:
        self.constraint = constraint
        super().__init__(message or f"unique constraint violated: {constraint or 'unknown'}")

    @property
    def is_namespace_collision(self) -> bool:
        """True when the violated constraint guards the code/alias namespace."""
        return self.constraint in (CODE_CONSTRAINT, ALIAS_CONSTRAINT)


class CacheMiss(Exception):
    """Raised by a cache ``get`` when the key is absent or expired."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"cache miss: {key}")
