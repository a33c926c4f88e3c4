import os

from celery import Celery
from celery.schedules import crontab

os.environ.setdefault(
    "DJANGO_SETTINGS_MODULE", os.getenv("DJANGO_SETTINGS_MODULE", "core.settings")
)

app = Celery("core")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()


app.conf.beat_schedule = {
    "sync-cj-daily-2am": {
        "task": "providers.tasks.sync_provider",
        "schedule": crontab(hour=2, minute=0),
        "args": ("cj",),
    },
    "refresh-cj-stock-daily-4am": {
        "task": "providers.tasks.refresh_provider_stock",
        "schedule": crontab(hour=4, minute=0),
        "args": ("cj",),
    },
    "sync-cj-reviews-weekly": {
        "task": "providers.tasks.sync_provider_reviews",
        "schedule": crontab(hour=5, minute=0, day_of_week="sun"),
        "args": ("cj",),
    },
}
