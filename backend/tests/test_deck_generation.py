"""
Deck generation tests.

Verifies:
- Tracker create / merge update / recent listing order and limit
- State machine enforcement
- Job runner: queueing on Celery, completion, failure, cancellation, stale reaping
"""

import logging
from datetime import timedelta

import pytest
from sqlalchemy import text

from kpi_portal.extensions import db
from kpi_portal.models import DeckGeneration
from kpi_portal.services.deck_jobs import CANCELLED_REASON, DeckJobRunner
from kpi_portal.services.deck_tracker import STALE_REASON, InvalidTransitionError
from kpi_portal.tasks import GENERATE_DECK_TASK
from kpi_portal.time_utils import utcnow


def _draft(**overrides):
    draft = {
        "generated_by": "admin@x.com",
        "period_type": "weekly",
        "period_start": "2025-01-06",
        "slides_url": None,
        "status": "pending",
    }
    draft.update(overrides)
    return draft


class TestTracker:
    def test_create_assigns_id_and_timestamp(self, stores):
        generation = stores.generations.create(_draft())

        assert generation.id
        assert generation.created_at is not None
        assert generation.status == "pending"
        assert generation.slides_url is None

    def test_update_merges(self, stores):
        generation = stores.generations.create(_draft())

        updated = stores.generations.update(generation.id, {"slides_url": "https://x/1"})

        assert updated.slides_url == "https://x/1"
        assert updated.status == "pending"
        assert updated.period_start == "2025-01-06"

    def test_update_unknown_returns_none(self, stores):
        assert stores.generations.update("missing", {"status": "completed"}) is None

    def test_list_recent_respects_limit_and_order(self, stores):
        base = utcnow()
        for i in range(12):
            generation = stores.generations.create(_draft())
            generation.created_at = base + timedelta(seconds=i)
        db.session.commit()

        recent = stores.generations.list_recent(5)

        assert len(recent) == 5
        stamps = [g.created_at for g in recent]
        assert stamps == sorted(stamps, reverse=True)
        assert all(a > b for a, b in zip(stamps, stamps[1:]))

    def test_list_recent_default_limit(self, stores):
        for _ in range(12):
            stores.generations.create(_draft())

        assert len(stores.generations.list_recent()) == 10

    @pytest.mark.parametrize(
        "path",
        [
            ["in_progress", "completed"],
            ["in_progress", "failed"],
            ["completed"],
            ["failed"],
        ],
    )
    def test_allowed_transitions(self, stores, path):
        generation = stores.generations.create(_draft())

        for status in path:
            generation = stores.generations.transition(generation.id, status)

        assert generation.status == path[-1]

    @pytest.mark.parametrize(
        "path,illegal",
        [
            (["completed"], "in_progress"),
            (["failed"], "completed"),
            (["in_progress"], "pending"),
            (["in_progress", "completed"], "failed"),
        ],
    )
    def test_illegal_transitions(self, stores, path, illegal):
        generation = stores.generations.create(_draft())
        for status in path:
            stores.generations.transition(generation.id, status)

        with pytest.raises(InvalidTransitionError):
            stores.generations.transition(generation.id, illegal)

    def test_fail_stale_only_touches_old_unfinished(self, stores):
        old = utcnow() - timedelta(hours=1)
        stale_pending = stores.generations.create(_draft())
        stale_running = stores.generations.create(_draft(status="in_progress"))
        old_done = stores.generations.create(_draft(status="completed", slides_url="https://x/1"))
        fresh = stores.generations.create(_draft())
        for generation in (stale_pending, stale_running, old_done):
            generation.created_at = old
        db.session.commit()

        count = stores.generations.fail_stale(utcnow() - timedelta(minutes=5))

        assert count == 2
        assert stores.generations.get(stale_pending.id).status == "failed"
        assert stores.generations.get(stale_pending.id).failure_reason == STALE_REASON
        assert stores.generations.get(stale_running.id).status == "failed"
        assert stores.generations.get(old_done.id).status == "completed"
        assert stores.generations.get(fresh.id).status == "pending"

    def test_transition_rereads_row_before_checking(self, stores):
        generation = stores.generations.create(_draft())
        assert generation.status == "pending"

        # another writer fails the row; this session still holds "pending"
        db.session.execute(
            text("UPDATE deck_generations SET status = 'failed' WHERE id = :id"),
            {"id": generation.id},
        )

        with pytest.raises(InvalidTransitionError, match="from failed to in_progress"):
            stores.generations.transition(generation.id, "in_progress")

    def test_allowed_from_narrows_source_status(self, stores):
        generation = stores.generations.create(_draft())
        stores.generations.transition(generation.id, "in_progress")

        with pytest.raises(InvalidTransitionError):
            stores.generations.transition(generation.id, "failed", allowed_from=("pending",))

        assert stores.generations.get(generation.id).status == "in_progress"

    def test_transition_unknown_returns_none(self, stores):
        assert stores.generations.transition("missing", "failed") is None


class TestJobRunner:
    def test_eager_run_completes_with_slides_url(self, app, stores):
        generation = stores.generations.create(_draft())

        stores.deck_jobs.submit(generation.id)

        done = stores.generations.get(generation.id)
        assert done.status == "completed"
        assert done.slides_url == f"https://docs.google.com/presentation/d/{generation.id}"
        assert done.failure_reason is None
        assert done.task_id

    def test_builder_error_marks_failed(self, app, stores):
        def broken_builder(generation):
            raise RuntimeError("slides service unavailable")

        runner = DeckJobRunner(app, stores.generations, stores.submissions, stores.financials,
                               builder=broken_builder)
        generation = stores.generations.create(_draft())

        runner.run(generation.id)

        failed = stores.generations.get(generation.id)
        assert failed.status == "failed"
        assert failed.failure_reason == "slides service unavailable"
        assert failed.slides_url is None

    def test_reaped_while_building_keeps_failed(self, app, stores, caplog):
        def reaped_mid_build(generation):
            stores.generations.fail_stale(utcnow() + timedelta(seconds=1))
            return "https://x/late"

        runner = DeckJobRunner(app, stores.generations, stores.submissions, stores.financials,
                               builder=reaped_mid_build)
        generation = stores.generations.create(_draft())

        with caplog.at_level(logging.INFO):
            runner.run(generation.id)

        finished = stores.generations.get(generation.id)
        assert finished.status == "failed"
        assert finished.failure_reason == STALE_REASON
        assert finished.slides_url is None
        assert not [r for r in caplog.records if r.levelno >= logging.ERROR]

    def test_builder_error_after_reap_does_not_raise(self, app, stores):
        def reaped_then_broken(generation):
            stores.generations.fail_stale(utcnow() + timedelta(seconds=1))
            raise RuntimeError("slides service unavailable")

        runner = DeckJobRunner(app, stores.generations, stores.submissions, stores.financials,
                               builder=reaped_then_broken)
        generation = stores.generations.create(_draft())

        runner.run(generation.id)

        assert stores.generations.get(generation.id).failure_reason == STALE_REASON

    def test_run_skips_cancelled_generation(self, app, stores):
        generation = stores.generations.create(_draft())
        stores.generations.transition(generation.id, "failed", failure_reason=CANCELLED_REASON)

        stores.deck_jobs.run(generation.id)

        assert stores.generations.get(generation.id).status == "failed"

    def test_run_unknown_generation_is_noop(self, app, stores):
        stores.deck_jobs.run("missing")

    def test_submit_queues_task_with_countdown(self, queued_jobs, stores):
        generation = stores.generations.create(_draft())

        stores.deck_jobs.submit(generation.id)

        queued = stores.generations.get(generation.id)
        assert queued.status == "pending"
        assert len(queued_jobs.published) == 1
        headers = queued_jobs.published[0]
        assert headers["task"] == GENERATE_DECK_TASK
        assert headers["id"] == queued.task_id
        assert headers["eta"] is not None

    def test_worker_completes_queued_job(self, queued_jobs, stores):
        generation = stores.generations.create(_draft())
        stores.deck_jobs.submit(generation.id)

        stores.deck_jobs.run(generation.id)

        done = stores.generations.get(generation.id)
        assert done.status == "completed"
        assert done.slides_url

    def test_cancel_before_start_revokes_task(self, queued_jobs, stores):
        generation = stores.generations.create(_draft())
        stores.deck_jobs.submit(generation.id)
        task_id = stores.generations.get(generation.id).task_id

        cancelled = stores.deck_jobs.cancel(generation.id)

        assert cancelled.status == "failed"
        assert cancelled.failure_reason == CANCELLED_REASON
        assert queued_jobs.revoked == [task_id]

        # a revoked task that still reaches a worker changes nothing
        stores.deck_jobs.run(generation.id)
        assert stores.generations.get(generation.id).failure_reason == CANCELLED_REASON

    def test_cancel_started_generation_rejected(self, queued_jobs, stores):
        generation = stores.generations.create(_draft())
        stores.deck_jobs.submit(generation.id)
        stores.generations.transition(generation.id, "in_progress")

        with pytest.raises(InvalidTransitionError):
            stores.deck_jobs.cancel(generation.id)

        assert queued_jobs.revoked == []

    def test_cancel_finished_generation_rejected(self, app, stores):
        generation = stores.generations.create(_draft())
        stores.deck_jobs.submit(generation.id)

        with pytest.raises(InvalidTransitionError):
            stores.deck_jobs.cancel(generation.id)

    def test_cancel_unknown_returns_none(self, app, stores):
        assert stores.deck_jobs.cancel("missing") is None

    def test_reap_stale_uses_timeout(self, app, stores):
        generation = stores.generations.create(_draft())
        generation.created_at = utcnow() - timedelta(
            seconds=app.config["DECK_GENERATION_TIMEOUT_SECONDS"] + 60
        )
        db.session.commit()

        assert stores.deck_jobs.reap_stale() == 1
        assert db.session.get(DeckGeneration, generation.id).status == "failed"
