# shipping/apps.py
from __future__ import annotations

from django.apps import AppConfig


class ShippingAppConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "shipping"
