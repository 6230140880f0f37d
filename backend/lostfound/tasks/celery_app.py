import os
from functools import lru_cache

from celery import Celery, Task
from celery.schedules import crontab


@lru_cache(maxsize=1)
def flask_app():
    # Local import: the Flask app imports task modules when async delivery is on
    from lostfound import create_app

    return create_app(os.getenv("FLASK_ENV") or None)


class FlaskTask(Task):
    """Runs every task inside an application context so models and config work."""

    abstract = True

    def __call__(self, *args, **kwargs):
        with flask_app().app_context():
            return self.run(*args, **kwargs)


def make_celery() -> Celery:
    broker = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
    backend = os.getenv("CELERY_RESULT_BACKEND", broker)
    app = Celery("lostfound", broker=broker, backend=backend, task_cls=FlaskTask, include=[
        "lostfound.tasks.jobs.notifications",
    ])
    app.conf.update(
        task_track_started=True,
        task_ignore_result=True,
        beat_schedule={
            "expire-overdue-items": {
                "task": "lostfound.tasks.jobs.notifications.expire_items",
                "schedule": crontab(minute=0),
            },
            "send-deadline-reminders": {
                "task": "lostfound.tasks.jobs.notifications.deadline_reminders",
                "schedule": crontab(minute=30, hour=8),
            },
        },
    )
    return app

celery_app = make_celery()
