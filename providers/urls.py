from __future__ import annotations

from django.urls import path

from . import views

app_name = "providers"

urlpatterns = [
    path("<slug:code>/sync/", views.trigger_sync, name="trigger_sync"),
]
