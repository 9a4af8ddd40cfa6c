import os

from celery import Celery
from celery.schedules import crontab  # type: ignore

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.dev")

app = Celery("sojourn")

app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()


# ============================================================================
# CELERY BEAT SCHEDULE (Periodic Tasks)
# ============================================================================

app.conf.beat_schedule = {
    # Release PENDING holds whose payment window ran out
    "release-expired-holds": {
        "task": "bookings.release_expired_holds",
        "schedule": 60.0,
        "options": {"expires": 50},
    },
    # CONFIRMED stays whose check-out date has passed
    "complete-elapsed-reservations": {
        "task": "bookings.complete_elapsed_reservations",
        "schedule": crontab(minute=15),
    },
    # No-op unless RESERVATION_ENGINE["DRAFT_RETENTION"] is set
    "expire-abandoned-drafts": {
        "task": "bookings.expire_abandoned_drafts",
        "schedule": crontab(minute=30),
    },
}
