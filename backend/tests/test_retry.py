# Overview: Pytest coverage for the shared retry helper.

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from restobill.services.concurrency import is_lock_contention, run_with_retry
from restobill.validation import DependencyError, NotFoundError


def _operational(message):
    return OperationalError("UPDATE subscriptions SET version_id=?", {}, Exception(message))


class _Flaky:
    """Raises the queued errors in order, then returns 'done'."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "done"


class TestLockContention:
    @pytest.mark.parametrize("message", [
        "database is locked",
        "Deadlock found when trying to get lock",
        "Lock wait timeout exceeded; try restarting transaction",
        "could not obtain lock on row in relation \"invoices\"",
    ])
    def test_recognised(self, message):
        assert is_lock_contention(_operational(message))

    @pytest.mark.parametrize("message", [
        "unable to open database file",
        "could not connect to server: Connection refused",
        "disk I/O error",
    ])
    def test_storage_failures_are_not_contention(self, message):
        assert not is_lock_contention(_operational(message))


class TestRunWithRetry:
    def test_lock_contention_retried(self, db_session):
        func = _Flaky(_operational("database is locked"), _operational("database is locked"))

        assert run_with_retry(func, backoff_base=0) == "done"
        assert func.calls == 3

    def test_lock_contention_exhausted(self, db_session):
        func = _Flaky(*[_operational("database is locked")] * 3)

        with pytest.raises(DependencyError):
            run_with_retry(func, backoff_base=0)
        assert func.calls == 3

    def test_storage_unavailable_not_retried(self, db_session):
        func = _Flaky(_operational("unable to open database file"))

        with pytest.raises(DependencyError) as excinfo:
            run_with_retry(func, backoff_base=0)
        assert func.calls == 1
        assert isinstance(excinfo.value.__cause__, OperationalError)

    def test_stale_data_retried_then_reraised(self, db_session):
        func = _Flaky(*[StaleDataError("version mismatch")] * 3)

        with pytest.raises(StaleDataError):
            run_with_retry(func, backoff_base=0)
        assert func.calls == 3

    def test_other_errors_propagate_immediately(self, db_session):
        func = _Flaky(NotFoundError("Subscription not found"))

        with pytest.raises(NotFoundError):
            run_with_retry(func, backoff_base=0)
        assert func.calls == 1
