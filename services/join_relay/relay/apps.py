from django.apps import AppConfig


class RelayAppConfig(AppConfig):
    name = "relay"

    def ready(self):
        # Register relay-config cache reset on settings changes.
        from . import signals  # noqa: F401
