# backend/kpi_portal/config.py
from __future__ import annotations
import os
from datetime import timedelta


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/kpi_portal.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///kpi_portal.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session cookie holds the signed user id only
    PERMANENT_SESSION_LIFETIME = timedelta(days=7)
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"

    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    # Deck generation jobs
    DECK_GENERATION_DELAY_SECONDS = float(os.environ.get("DECK_GENERATION_DELAY_SECONDS", "2.0"))
    DECK_GENERATION_TIMEOUT_SECONDS = float(os.environ.get("DECK_GENERATION_TIMEOUT_SECONDS", "300"))
    SLIDES_URL_TEMPLATE = os.environ.get(
        "SLIDES_URL_TEMPLATE",
        "https://docs.google.com/presentation/d/{id}",
    )

    # Celery (deck generation worker); task_always_eager runs jobs inline
    CELERY = {
        "broker_url": os.environ.get("CELERY_BROKER_URL", "redis://localhost:6379/0"),
        "task_ignore_result": True,
        "task_always_eager": False,
    }

    # Bootstrap admin created by `flask system init`
    DEFAULT_ADMIN_EMAIL = os.environ.get("DEFAULT_ADMIN_EMAIL", "admin@kpi-portal.local")
    DEFAULT_ADMIN_PASSWORD = os.environ.get("DEFAULT_ADMIN_PASSWORD", "admin123")
    DEFAULT_ADMIN_NAME = os.environ.get("DEFAULT_ADMIN_NAME", "Admin User")
