from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .auth import new_id

PERIOD_WEEKLY = "weekly"
PERIOD_MONTHLY = "monthly"
PERIOD_TYPES = (PERIOD_WEEKLY, PERIOD_MONTHLY)

# Separator for submission identity keys. Product ids and field names may not
# contain it and ISO dates never do.
KEY_SEPARATOR = ":"

FINANCIAL_METRICS = (
    "revenue",
    "expenses",
    "operating_income",
    "operating_margin",
    "net_profit",
    "cash_balance",
    "accounts_receivable",
    "days_to_get_paid",
)


class Submission(db.Model):
    """
    One KPI value for a (product, field, period) bucket.

    `record_key` is the identity key. `period_type` is carried alongside but
    is not part of the key, so a weekly and a monthly write for the same
    start date land on the same row.
    """
    __tablename__ = "submissions"
    __table_args__ = (
        db.UniqueConstraint("record_key", name="uq_submissions_record_key"),
        db.Index("ix_submissions_period", "period_type", "period_start"),
        db.Index("ix_submissions_product_period", "product_id", "period_type", "period_start"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    record_key = db.Column(db.String(400), nullable=False)

    product_id = db.Column(db.String(64), nullable=False)
    field_name = db.Column(db.String(128), nullable=False)
    value = db.Column(db.Text, nullable=False, default="")

    # Last writer
    user_email = db.Column(db.String(255), nullable=False)

    period_type = db.Column(db.String(16), nullable=False)
    period_start = db.Column(db.String(10), nullable=False)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "fieldName": self.field_name,
            "value": self.value,
            "userEmail": self.user_email,
            "periodType": self.period_type,
            "periodStart": self.period_start,
            "updatedAt": to_utc_z(self.updated_at),
        }


class FinancialRecord(db.Model):
    """
    Monthly financial figures.

    Keyed by `period_month` ("YYYY-MM"): any two period starts in the same
    calendar month address the same record.
    """
    __tablename__ = "financial_records"
    __table_args__ = (
        db.UniqueConstraint("period_month", name="uq_financial_records_period_month"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    period_month = db.Column(db.String(7), nullable=False)

    period_start = db.Column(db.String(10), nullable=False)
    period_end = db.Column(db.String(10), nullable=False)

    revenue = db.Column(db.Float, nullable=False, default=0)
    expenses = db.Column(db.Float, nullable=False, default=0)
    operating_income = db.Column(db.Float, nullable=False, default=0)
    operating_margin = db.Column(db.Float, nullable=False, default=0)
    net_profit = db.Column(db.Float, nullable=False, default=0)
    cash_balance = db.Column(db.Float, nullable=False, default=0)
    accounts_receivable = db.Column(db.Float, nullable=False, default=0)
    days_to_get_paid = db.Column(db.Float, nullable=False, default=0)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_by = db.Column(db.String(255), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "periodStart": self.period_start,
            "periodEnd": self.period_end,
            "revenue": self.revenue,
            "expenses": self.expenses,
            "operatingIncome": self.operating_income,
            "operatingMargin": self.operating_margin,
            "netProfit": self.net_profit,
            "cashBalance": self.cash_balance,
            "accountsReceivable": self.accounts_receivable,
            "daysToGetPaid": self.days_to_get_paid,
            "updatedAt": to_utc_z(self.updated_at),
            "updatedBy": self.updated_by,
        }
