"""
Error taxonomy for settings resolution, bulk mutation and translation fan-out.

Absence of a setting or schema is not an error: lookups return None.
"""

from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.exc import DBAPIError, IntegrityError, PendingRollbackError

UNIQUE_VIOLATION = "23505"
IN_FAILED_TRANSACTION = "25P02"


class SiteConfigError(Exception):
    """Base class for every error raised by sitecfg."""


class ScopeValidationError(SiteConfigError, ValueError):
    """A write is missing a required scope coordinate (e.g. tenant_id)."""


class LanguageConfigError(SiteConfigError, ValueError):
    """A language management request conflicts with the tenant configuration."""


class UniquenessRace(SiteConfigError):
    """A concurrent writer inserted the same scope triple and the row could not be located."""

    def __init__(self, key: str, cause: Optional[BaseException] = None):
        super().__init__(f"Uniqueness conflict on '{key}' could not be resolved")
        self.key = key
        self.cause = cause


class TransactionPoisoned(SiteConfigError):
    """The store refuses further statements until the transaction ends."""

    def __init__(self, cause: BaseException):
        super().__init__(f"Transaction aborted by the store: {cause}")
        self.cause = cause


class StoreUnavailable(SiteConfigError):
    """The relational store could not be reached."""


class TranslationProviderError(SiteConfigError):
    """The external translation provider failed for one language."""

    def __init__(self, language: str, message: str):
        super().__init__(f"[{language}] {message}")
        self.language = language


@dataclass
class KeyFailure:
    key: str
    error: BaseException


class AggregateMutationError(SiteConfigError):
    """
    A settings batch was rolled back.

    `root_key` / `root_cause` identify the first real failure; later
    'transaction aborted' errors are never reported as the cause.
    """

    def __init__(self, root_key: str, root_cause: BaseException, failures: List[KeyFailure], skipped: List[str]):
        super().__init__(f"Settings batch rolled back; root cause at key '{root_key}': {root_cause}")
        self.root_key = root_key
        self.root_cause = root_cause
        self.failures = failures
        self.skipped = skipped

    def to_dict(self) -> dict:
        return {
            "root_key": self.root_key,
            "root_cause": str(self.root_cause),
            "failed_keys": [f.key for f in self.failures],
            "skipped_keys": list(self.skipped),
        }


def _sqlstate(exc: BaseException) -> Optional[str]:
    orig = getattr(exc, "orig", None) or exc
    for attr in ("sqlstate", "pgcode"):
        code = getattr(orig, attr, None)
        if code:
            return str(code)
    return None


def is_unique_violation(exc: BaseException) -> bool:
    """True for a uniqueness constraint conflict (PostgreSQL 23505 or SQLite UNIQUE)."""
    if not isinstance(exc, IntegrityError):
        return False
    if _sqlstate(exc) == UNIQUE_VIOLATION:
        return True
    message = str(getattr(exc, "orig", exc))
    return "UNIQUE constraint failed" in message or "duplicate key value" in message


def is_transaction_poisoned(exc: BaseException) -> bool:
    """True when the current transaction can no longer execute statements."""
    if isinstance(exc, (TransactionPoisoned, PendingRollbackError)):
        return True
    if isinstance(exc, DBAPIError):
        if _sqlstate(exc) == IN_FAILED_TRANSACTION:
            return True
        return "current transaction is aborted" in str(getattr(exc, "orig", exc))
    return False
