# providers/models.py
from __future__ import annotations

from django.db import models


class ProviderAccount(models.Model):
    """
    One supplier account (e.g. CJ).

    `credentials_json` holds the API key and base URL plus the token state the
    client writes back after each auth request (access_token,
    access_token_expires, last_auth_request), so a restarted worker neither
    re-authenticates early nor trips the auth cooldown. Optional client knobs
    (api_timeout, max_retries, min_interval_s, daily_cap) live here too.
    """

    code = models.SlugField(max_length=50, unique=True, help_text="Short code, e.g., 'cj'")
    name = models.CharField(max_length=100)
    priority = models.PositiveIntegerField(default=100, help_text="Lower number = higher priority")
    credentials_json = models.JSONField(default=dict, blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["priority", "code"]

    def __str__(self) -> str:
        return f"{self.code} ({'active' if self.is_active else 'inactive'})"

    @property
    def has_token(self) -> bool:
        return bool((self.credentials_json or {}).get("access_token"))


class ProviderSyncLog(models.Model):
    STATUS_SUCCESS = "success"
    STATUS_PARTIAL = "partial"
    STATUS_ERROR = "error"
    STATUS_CHOICES = [
        (STATUS_SUCCESS, "Success"),
        (STATUS_PARTIAL, "Partial"),  # completed with some item errors
        (STATUS_ERROR, "Error"),  # lock conflict or a run that stopped as fatal
    ]

    provider_account = models.ForeignKey(
        "providers.ProviderAccount",
        on_delete=models.CASCADE,
        related_name="sync_logs",
    )
    started_at = models.DateTimeField()
    finished_at = models.DateTimeField(null=True, blank=True)
    duration_ms = models.PositiveIntegerField(default=0)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_SUCCESS)
    counts = models.JSONField(default=dict, blank=True, help_text="SyncRunResult of the run")
    first_error = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-started_at"]
        indexes = [
            models.Index(
                fields=["provider_account", "-started_at"], name="prov_synclog_acct_started_idx"
            ),
            models.Index(fields=["status"], name="prov_synclog_status_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.provider_account.code} @ {self.started_at:%Y-%m-%d %H:%M:%S} [{self.status}]"
