# providers/exceptions.py
from __future__ import annotations

import re
from typing import Optional

# Vendor codes CJ uses for "too many requests"
RATE_LIMIT_CODES = {"1600200", "1600201", "429"}

_NOT_FOUND_RE = re.compile(
    r"not\s+found|not\s+exist|does\s+not\s+exist|removed|offline|off\s+the\s+shelf|delisted",
    re.I,
)


class SupplierError(Exception):
    """Base for everything raised while talking to a supplier."""


class AuthError(SupplierError):
    """Bad credentials or the auth endpoint refused us. Fatal for a sync run."""


class RateLimitExceeded(SupplierError):
    """Provider returned/indicated a rate-limit (HTTP 429 or vendor-specific code)."""


class AuthRateLimitExceeded(RateLimitExceeded, AuthError):
    """Client-side auth cooldown violated; calling the endpoint again risks lockout."""


class SupplierUnavailable(SupplierError):
    """Network failure, timeout or 5xx. Try again later."""


class SupplierAPIError(SupplierError):
    """Provider answered with a non-success envelope."""

    def __init__(self, message: str, code=None, status: Optional[int] = None):
        self.message = message or ""
        self.code = code
        self.status = status
        super().__init__(f"{self.message} (code: {code})")

    @property
    def is_not_found(self) -> bool:
        """Data error: the item is gone on the supplier side, not worth retrying."""
        if self.status == 404:
            return True
        return bool(_NOT_FOUND_RE.search(self.message))


class SupplierDataError(SupplierError):
    """Supplier payload cannot be used (missing name, bad price...)."""


class PriceParseError(SupplierDataError, ValueError):
    def __init__(self, raw):
        self.raw = raw
        super().__init__(f"invalid supplier price {raw!r}")


class PersistenceError(Exception):
    """Catalog write failed for one item."""


class BudgetExceeded(SupplierError):
    """Our own call ceiling was reached; stop and keep partial results."""


def is_rate_limit_code(code) -> bool:
    return str(code) in RATE_LIMIT_CODES
