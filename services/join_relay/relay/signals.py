"""Keep the process-wide relay config in step with settings overrides."""

from __future__ import annotations

from django.core.signals import setting_changed
from django.dispatch import receiver

from .views import relay_config


@receiver(setting_changed)
def _reset_relay_config(sender, setting: str, **kwargs):
    if setting.startswith("JOIN_RELAY_"):
        relay_config.cache_clear()
