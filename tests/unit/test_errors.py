from sqlalchemy.exc import DataError, IntegrityError, PendingRollbackError

from sitecfg.core.errors import (
    AggregateMutationError,
    KeyFailure,
    TransactionPoisoned,
    is_transaction_poisoned,
    is_unique_violation,
)


class FakePgError(Exception):
    def __init__(self, message, sqlstate):
        super().__init__(message)
        self.sqlstate = sqlstate


def test_unique_violation_detection():
    sqlite_error = IntegrityError("INSERT ...", {}, Exception("UNIQUE constraint failed: index 'uq_site_settings_key_scope'"))
    pg_error = IntegrityError("INSERT ...", {}, FakePgError("duplicate", "23505"))
    not_null = IntegrityError("INSERT ...", {}, Exception("NOT NULL constraint failed: site_settings.setting_key"))

    assert is_unique_violation(sqlite_error)
    assert is_unique_violation(pg_error)
    assert not is_unique_violation(not_null)
    assert not is_unique_violation(ValueError("UNIQUE constraint failed"))


def test_transaction_poisoned_detection():
    aborted = DataError("UPDATE ...", {}, FakePgError("current transaction is aborted, commands ignored", "25P02"))
    by_message = DataError("UPDATE ...", {}, Exception("current transaction is aborted"))
    ordinary = DataError("UPDATE ...", {}, Exception("value too long for type character varying(10)"))

    assert is_transaction_poisoned(aborted)
    assert is_transaction_poisoned(by_message)
    assert is_transaction_poisoned(PendingRollbackError("rolled back"))
    assert is_transaction_poisoned(TransactionPoisoned(Exception("dead")))
    assert not is_transaction_poisoned(ordinary)
    assert not is_transaction_poisoned(RuntimeError("boom"))


def test_aggregate_error_reports_root_cause():
    root = ValueError("bad value")
    error = AggregateMutationError("site_name", root, [KeyFailure("site_name", root)], ["site_logo"])

    assert "site_name" in str(error)
    assert error.to_dict() == {
        "root_key": "site_name",
        "root_cause": "bad value",
        "failed_keys": ["site_name"],
        "skipped_keys": ["site_logo"],
    }
