# Overview: Background deck generation jobs; queued on Celery, cancellable, with stale-record reaping.

"""
Deck Job Runner

A generation request creates a `pending` DeckGeneration and submits a job.
The job is the `generate_deck` Celery task, queued with a countdown of
DECK_GENERATION_DELAY_SECONDS; a worker runs it inside an application
context:

    pending -> in_progress -> completed (slides_url set)
                           -> failed    (failure_reason set, exception logged)

The Celery task id is stored on the generation. A job that has not started
yet can be cancelled: the generation becomes `failed` with reason
"Cancelled" and the task is revoked. A revoked task that still reaches a
worker finds the row already failed and does nothing.

Anything left `pending` or `in_progress` longer than
DECK_GENERATION_TIMEOUT_SECONDS (lost worker, purged queue) is reaped to
`failed` ("Generation may be incomplete").

With CELERY["task_always_eager"] the task runs synchronously inside `submit`.
"""

from __future__ import annotations

from datetime import timedelta

from kombu.exceptions import OperationalError as BrokerError

from ..extensions import db
from ..models.auth import new_id
from ..models.decks import STATUS_COMPLETED, STATUS_FAILED, STATUS_IN_PROGRESS, STATUS_PENDING
from ..tasks import generate_deck
from ..time_utils import utcnow
from .deck_tracker import InvalidTransitionError

CANCELLED_REASON = "Cancelled"
QUEUE_FAILED_REASON = "Could not queue deck generation"


class DeckJobRunner:
    def __init__(self, app, tracker, submissions, financials, builder=None):
        self.app = app
        self.tracker = tracker
        self.submissions = submissions
        self.financials = financials
        self.builder = builder or self.build_deck

    @property
    def logger(self):
        return self.app.logger

    @property
    def celery(self):
        return self.app.extensions["celery"]

    def submit(self, generation_id: str) -> None:
        delay = float(self.app.config.get("DECK_GENERATION_DELAY_SECONDS", 2.0))
        task_id = new_id()
        self.tracker.update(generation_id, {"task_id": task_id})

        try:
            generate_deck.apply_async(args=[generation_id], countdown=delay, task_id=task_id)
        except BrokerError:
            self.logger.exception("Could not queue deck generation %s", generation_id)
            self._finish(generation_id, STATUS_FAILED, failure_reason=QUEUE_FAILED_REASON)
            return

        self.logger.info("Deck generation %s queued as task %s (countdown %.1fs)", generation_id, task_id, delay)

    def run(self, generation_id: str) -> None:
        try:
            generation = self.tracker.transition(generation_id, STATUS_IN_PROGRESS)
        except InvalidTransitionError as e:
            # cancelled or reaped before a worker picked it up
            self.logger.info("Deck generation %s not started: %s", generation_id, e)
            return
        if generation is None:
            self.logger.warning("Deck generation %s vanished before it started", generation_id)
            return

        try:
            slides_url = self.builder(generation)
        except Exception as e:
            self.logger.exception("Deck generation %s failed", generation_id)
            db.session.rollback()
            self._finish(generation_id, STATUS_FAILED, failure_reason=str(e) or e.__class__.__name__)
            return

        if self._finish(generation_id, STATUS_COMPLETED, slides_url=slides_url, failure_reason=None):
            self.logger.info("Deck generation %s completed: %s", generation_id, slides_url)

    def _finish(self, generation_id: str, status: str, **fields):
        """Final transition; a row already finished elsewhere (cancel, reap) is left as is."""
        try:
            return self.tracker.transition(generation_id, status, **fields)
        except InvalidTransitionError as e:
            self.logger.info("Deck generation %s not marked %s: %s", generation_id, status, e)
            return None

    def build_deck(self, generation) -> str:
        """
        Collect the period's data and return the slides URL.

        Rendering is done by the slides service the URL points at; this only
        gathers what it will read.
        """
        submissions = self.submissions.list_by_period(generation.period_type, generation.period_start)
        financial = self.financials.get(generation.period_start)
        self.logger.info(
            "Deck generation %s: %d submissions, financial record %s",
            generation.id,
            len(submissions),
            "present" if financial is not None else "missing",
        )
        return self.app.config["SLIDES_URL_TEMPLATE"].format(id=generation.id)

    def cancel(self, generation_id: str):
        """
        Cancel a job that has not started. Returns the failed generation,
        None when unknown; raises InvalidTransitionError once it has started.
        """
        generation = self.tracker.transition(
            generation_id,
            STATUS_FAILED,
            allowed_from=(STATUS_PENDING,),
            failure_reason=CANCELLED_REASON,
        )
        if generation is None:
            return None

        if generation.task_id:
            self.celery.AsyncResult(generation.task_id).revoke()
        self.logger.info("Deck generation %s cancelled", generation_id)
        return generation

    def reap_stale(self) -> int:
        timeout = float(self.app.config.get("DECK_GENERATION_TIMEOUT_SECONDS", 300))
        count = self.tracker.fail_stale(utcnow() - timedelta(seconds=timeout))
        if count:
            self.logger.warning("Marked %d stale deck generation(s) as failed", count)
        return count
