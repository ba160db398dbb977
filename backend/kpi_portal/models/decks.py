from __future__ import annotations

from ..extensions import db
from ..time_utils import utcnow, to_utc_z
from .auth import new_id

STATUS_PENDING = "pending"
STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"
DECK_STATUSES = (STATUS_PENDING, STATUS_IN_PROGRESS, STATUS_COMPLETED, STATUS_FAILED)

# Allowed status transitions. pending -> completed is the direct completion
# path; pending -> failed covers cancellation before the job starts.
DECK_TRANSITIONS = {
    STATUS_PENDING: {STATUS_IN_PROGRESS, STATUS_COMPLETED, STATUS_FAILED},
    STATUS_IN_PROGRESS: {STATUS_COMPLETED, STATUS_FAILED},
    STATUS_COMPLETED: set(),
    STATUS_FAILED: set(),
}


class DeckGeneration(db.Model):
    """
    A requested slide deck for one reporting period.

    Rows are never deleted. `status` and `slides_url` are set by the
    generation job; `failure_reason` explains a failed, cancelled or stale
    generation.
    """
    __tablename__ = "deck_generations"
    __table_args__ = (
        db.Index("ix_deck_generations_created_at", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    generated_by = db.Column(db.String(255), nullable=False)

    period_type = db.Column(db.String(16), nullable=False)
    period_start = db.Column(db.String(10), nullable=False)

    slides_url = db.Column(db.String(512), nullable=True)
    status = db.Column(db.String(16), nullable=False, default=STATUS_PENDING)
    failure_reason = db.Column(db.Text, nullable=True)
    task_id = db.Column(db.String(36), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    @property
    def is_finished(self) -> bool:
        return self.status in (STATUS_COMPLETED, STATUS_FAILED)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "generatedBy": self.generated_by,
            "periodType": self.period_type,
            "periodStart": self.period_start,
            "slidesUrl": self.slides_url,
            "status": self.status,
            "failureReason": self.failure_reason,
            "createdAt": to_utc_z(self.created_at),
        }
