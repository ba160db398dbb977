# Overview: Period-keyed record stores; upsert-by-derived-key for submissions and financial records.

"""
Period-Keyed Record Store

One pattern, two instances:

- SubmissionStore: key = "<productId>:<fieldName>:<periodStart>"
- FinancialRecordStore: key = periodStart[:7] ("YYYY-MM")

`upsert` is lookup, then merge-id, then replace:

1. derive the canonical key from the draft
2. look up the row stored under that key (row-locked where supported)
3. build the replacement: every draft field, the existing id (or a fresh
   one) and a new `updated_at`
4. write the replacement under the key and commit

The key column is UNIQUE. If two writers both see "absent" and both insert,
the second commit fails, is rolled back and retried; the retry finds the
first writer's row and overwrites it. Writes are full replacements: nothing
from the previous value survives except the id.

The stores do not validate values; see validation.py.
"""

from __future__ import annotations

from ..models import FinancialRecord, Submission
from ..models.auth import new_id
from ..models.metrics import FINANCIAL_METRICS, KEY_SEPARATOR
from ..time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry


def submission_key(product_id: str, field_name: str, period_start: str) -> str:
    return KEY_SEPARATOR.join((product_id, field_name, period_start))


def financial_key(period_start: str) -> str:
    return (period_start or "")[:7]


def replacement_values(draft: dict, fields, existing_id: str | None) -> dict:
    """
    The value written by an upsert: every field of `draft`, the id of the
    record being replaced (fresh when there is none) and a new timestamp.
    """
    values = {name: draft.get(name) for name in fields}
    values["id"] = existing_id or new_id()
    values["updated_at"] = utcnow()
    return values


class PeriodKeyedStore:
    model = None
    key_column: str = ""
    draft_fields: tuple[str, ...] = ()

    def __init__(self, db):
        self.db = db

    @property
    def session(self):
        return self.db.session

    def derive_key(self, draft: dict) -> str:
        raise NotImplementedError

    def _lookup(self, key: str, *, lock: bool = False):
        query = self.session.query(self.model).filter(getattr(self.model, self.key_column) == key)
        if lock:
            query = lock_for_update(query)
        return query.first()

    def upsert(self, draft: dict):
        key = self.derive_key(draft)

        def _write():
            existing = self._lookup(key, lock=True)
            values = replacement_values(
                draft, self.draft_fields, existing.id if existing is not None else None
            )
            values[self.key_column] = key

            if existing is None:
                record = self.model(**values)
                self.session.add(record)
            else:
                record = existing
                for name, value in values.items():
                    setattr(record, name, value)

            self.session.commit()
            return record

        return run_with_retry(_write)


class SubmissionStore(PeriodKeyedStore):
    model = Submission
    key_column = "record_key"
    draft_fields = (
        "product_id",
        "field_name",
        "value",
        "user_email",
        "period_type",
        "period_start",
    )

    def derive_key(self, draft: dict) -> str:
        return submission_key(draft["product_id"], draft["field_name"], draft["period_start"])

    def get(self, product_id: str, field_name: str, period_start: str) -> Submission | None:
        return self._lookup(submission_key(product_id, field_name, period_start))

    def list_by_product(self, product_id: str, period_type: str, period_start: str) -> list[Submission]:
        return (
            self.session.query(Submission)
            .filter_by(product_id=product_id, period_type=period_type, period_start=period_start)
            .all()
        )

    def list_by_period(self, period_type: str, period_start: str) -> list[Submission]:
        return (
            self.session.query(Submission)
            .filter_by(period_type=period_type, period_start=period_start)
            .all()
        )


class FinancialRecordStore(PeriodKeyedStore):
    model = FinancialRecord
    key_column = "period_month"
    draft_fields = ("period_start", "period_end", *FINANCIAL_METRICS, "updated_by")

    def derive_key(self, draft: dict) -> str:
        return financial_key(draft["period_start"])

    def get(self, period: str) -> FinancialRecord | None:
        """Accepts "YYYY-MM" or a full "YYYY-MM-DD" date."""
        return self._lookup(financial_key(period))

    def list_all(self) -> list[FinancialRecord]:
        return (
            self.session.query(FinancialRecord)
            .order_by(FinancialRecord.period_start.desc())
            .all()
        )
