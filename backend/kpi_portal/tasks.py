# Overview: Celery tasks; thin wrappers around the deck job runner.

from celery import shared_task

GENERATE_DECK_TASK = "kpi_portal.tasks.generate_deck"


@shared_task(name=GENERATE_DECK_TASK, ignore_result=True)
def generate_deck(generation_id):
    """Celery task wrapper around DeckJobRunner.run."""
    from .stores import get_stores

    get_stores().deck_jobs.run(generation_id)
