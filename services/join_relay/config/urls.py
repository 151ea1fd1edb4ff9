"""Top-level URL map for the join relay service.

- `/api/join` relays a class-code join to the configured upstreams.
- `/healthz` is for reverse proxy and uptime checks.
"""

from django.urls import path
from relay import views

urlpatterns = [
    path("healthz", views.healthz),
    path("api/join", views.join),
]
