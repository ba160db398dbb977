# Overview: Builds the stores once per application and hands them to request handlers.

from __future__ import annotations

from dataclasses import dataclass

from flask import Flask, current_app

from .extensions import db
from .services.deck_jobs import DeckJobRunner
from .services.deck_tracker import DeckGenerationTracker
from .services.identity_store import IdentityStore
from .services.period_store import FinancialRecordStore, SubmissionStore

EXTENSION_KEY = "kpi_portal.stores"


@dataclass
class Stores:
    identities: IdentityStore
    submissions: SubmissionStore
    financials: FinancialRecordStore
    generations: DeckGenerationTracker
    deck_jobs: DeckJobRunner


def init_app(app: Flask) -> Stores:
    submissions = SubmissionStore(db)
    financials = FinancialRecordStore(db)
    generations = DeckGenerationTracker(db)
    stores = Stores(
        identities=IdentityStore(db),
        submissions=submissions,
        financials=financials,
        generations=generations,
        deck_jobs=DeckJobRunner(app, generations, submissions, financials),
    )
    app.extensions[EXTENSION_KEY] = stores
    return stores


def get_stores() -> Stores:
    return current_app.extensions[EXTENSION_KEY]
