# Overview: Celery application bound to the Flask app; tasks run inside an application context.

# backend/kpi_portal/celery_app.py
# Worker (run from the backend directory):
# - celery -A wsgi:celery_app worker --loglevel INFO
# The broker comes from CELERY["broker_url"] (env CELERY_BROKER_URL).

from __future__ import annotations

from celery import Celery, Task
from flask import Flask, has_app_context

EXTENSION_KEY = "celery"


def celery_init_app(app: Flask) -> Celery:
    class FlaskTask(Task):
        def __call__(self, *args, **kwargs):
            # eager tasks already run inside the caller's context
            if has_app_context():
                return self.run(*args, **kwargs)
            with app.app_context():
                return self.run(*args, **kwargs)

    celery_app = Celery(app.name, task_cls=FlaskTask)
    celery_app.config_from_object(app.config["CELERY"])
    celery_app.set_default()
    app.extensions[EXTENSION_KEY] = celery_app
    return celery_app
