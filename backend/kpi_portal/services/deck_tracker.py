# Overview: Deck generation tracker; append-only generation records and their status transitions.

from __future__ import annotations

from datetime import datetime

from ..models import DeckGeneration
from ..models.auth import new_id
from ..models.decks import (
    DECK_TRANSITIONS,
    STATUS_FAILED,
    STATUS_IN_PROGRESS,
    STATUS_PENDING,
)
from ..time_utils import utcnow
from ..validation import ConflictError
from .concurrency import lock_for_update

DEFAULT_RECENT_LIMIT = 10
STALE_REASON = "Generation may be incomplete: job did not finish"

GENERATION_FIELDS = (
    "generated_by",
    "period_type",
    "period_start",
    "slides_url",
    "status",
    "failure_reason",
    "task_id",
)


class InvalidTransitionError(ConflictError):
    """Raised when a generation cannot move to the requested status."""


class DeckGenerationTracker:
    def __init__(self, db):
        self.db = db

    @property
    def session(self):
        return self.db.session

    def create(self, draft: dict) -> DeckGeneration:
        generation = DeckGeneration(
            id=new_id(),
            generated_by=draft["generated_by"],
            period_type=draft["period_type"],
            period_start=draft["period_start"],
            slides_url=draft.get("slides_url"),
            status=draft.get("status") or STATUS_PENDING,
            failure_reason=draft.get("failure_reason"),
            task_id=draft.get("task_id"),
            created_at=utcnow(),
        )
        self.session.add(generation)
        self.session.commit()
        return generation

    def get(self, generation_id: str) -> DeckGeneration | None:
        return self.session.get(DeckGeneration, generation_id)

    def update(self, generation_id: str, fields: dict) -> DeckGeneration | None:
        """Merge: only the supplied fields change."""
        generation = self.get(generation_id)
        if generation is None:
            return None
        for key in GENERATION_FIELDS:
            if key in fields:
                setattr(generation, key, fields[key])
        self.session.commit()
        return generation

    def _locked(self, generation_id: str) -> DeckGeneration | None:
        query = self.session.query(DeckGeneration).filter_by(id=generation_id)
        return lock_for_update(query).populate_existing().first()

    def transition(
        self,
        generation_id: str,
        status: str,
        *,
        allowed_from: tuple[str, ...] | None = None,
        **fields,
    ) -> DeckGeneration | None:
        """
        Move a generation to `status`, enforcing the state machine:

            pending -> in_progress -> completed | failed
            pending -> completed | failed

        The row is re-read under a row lock and written in the same
        transaction. `allowed_from` narrows the source statuses further
        (cancel only applies to pending generations).
        """
        generation = self._locked(generation_id)
        if generation is None:
            self.session.rollback()
            return None

        current = generation.status
        allowed = status in DECK_TRANSITIONS.get(current, set())
        if allowed_from is not None and current not in allowed_from:
            allowed = False
        if not allowed:
            self.session.rollback()
            raise InvalidTransitionError(f"Cannot move generation from {current} to {status}")

        for key in GENERATION_FIELDS:
            if key in fields:
                setattr(generation, key, fields[key])
        generation.status = status
        self.session.commit()
        return generation

    def list_recent(self, limit: int = DEFAULT_RECENT_LIMIT) -> list[DeckGeneration]:
        return (
            self.session.query(DeckGeneration)
            .order_by(DeckGeneration.created_at.desc())
            .limit(max(limit, 0))
            .all()
        )

    def fail_stale(self, older_than: datetime) -> int:
        """Fail pending/in-progress generations created before `older_than`."""
        query = self.session.query(DeckGeneration).filter(
            DeckGeneration.status.in_((STATUS_PENDING, STATUS_IN_PROGRESS)),
            DeckGeneration.created_at < older_than,
        )
        stale = lock_for_update(query).populate_existing().all()
        for generation in stale:
            generation.status = STATUS_FAILED
            generation.failure_reason = STALE_REASON
        if stale:
            self.session.commit()
        return len(stale)
