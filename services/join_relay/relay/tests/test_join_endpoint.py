import json
from unittest.mock import patch

from django.test import SimpleTestCase, override_settings

from .. import views
from ..engine.coordinator import NO_CANDIDATES_MESSAGE
from ..engine.types import AttemptOutcome


def _scripted(outcomes: dict, calls: list):
    """Build an attempt executor that answers by label and records call order."""

    def execute(descriptor, timeout_seconds):
        calls.append(descriptor)
        scripted = outcomes.get(descriptor.label)
        if scripted is None:
            return AttemptOutcome.unreachable(descriptor.label, detail="ConnectionRefusedError")
        return scripted(descriptor) if callable(scripted) else scripted

    return execute


def _ok(label: str, body, status: int = 200) -> AttemptOutcome:
    return AttemptOutcome(succeeded=True, descriptor_label=label, http_status=status, body=body)


def _rejected(label: str, body, status: int) -> AttemptOutcome:
    return AttemptOutcome(succeeded=False, descriptor_label=label, http_status=status, body=body)


@override_settings(
    JOIN_RELAY_UPSTREAM_URLS=["https://a.test", "https://b.test"],
    JOIN_RELAY_UPSTREAM_BASE="",
    JOIN_RELAY_TIMEOUT_MS="1500",
    JOIN_RELAY_CORS_ORIGIN="*",
)
class JoinEndpointTests(SimpleTestCase):
    def setUp(self):
        views.relay_config.cache_clear()
        self.addCleanup(views.relay_config.cache_clear)
        self.calls = []

    def _post_join(self, payload, **extra):
        body = payload if isinstance(payload, str) else json.dumps(payload)
        return self.client.post("/api/join", data=body, content_type="application/json", **extra)

    def _patch_outcomes(self, outcomes: dict):
        patcher = patch("relay.views._execute_attempt", side_effect=_scripted(outcomes, self.calls))
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_first_success_is_returned_and_later_candidates_are_skipped(self):
        self._patch_outcomes(
            {
                "POST https://a.test": _rejected("POST https://a.test", {}, 500),
                "GET https://a.test?code=ABC&name=Ada": _rejected("GET https://a.test?code=ABC&name=Ada", {}, 500),
                "POST https://b.test": _ok("POST https://b.test", {"room": "x"}),
            }
        )

        resp = self._post_join({"code": "ABC", "name": "Ada"})

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(
            resp.json(),
            {"joined": True, "upstreamStatus": 200, "via": "POST https://b.test", "data": {"room": "x"}},
        )
        self.assertEqual(
            [d.label for d in self.calls],
            ["POST https://a.test", "GET https://a.test?code=ABC&name=Ada", "POST https://b.test"],
        )

    def test_each_attempt_gets_the_configured_timeout(self):
        seen = []
        with patch(
            "relay.views._execute_attempt",
            side_effect=lambda descriptor, timeout: seen.append(timeout) or _ok(descriptor.label, {}),
        ):
            self._post_join({"code": "ABC", "name": "Ada"})
        self.assertEqual(seen, [1.5])

    def test_exhaustion_reports_the_last_candidate(self):
        last_label = "GET https://b.test?code=ABC&name=Ada"
        self._patch_outcomes({last_label: _rejected(last_label, {"error": "invalid_code"}, 404)})

        resp = self._post_join({"code": "ABC", "name": "Ada"})

        self.assertEqual(resp.status_code, 404)
        self.assertEqual(
            resp.json(),
            {"joined": False, "error": f"Upstream error via {last_label}", "upstreamData": {"error": "invalid_code"}},
        )
        self.assertEqual(len(self.calls), 4)

    def test_exhaustion_by_network_failures_is_502(self):
        self._patch_outcomes({})

        resp = self._post_join({"code": "ABC", "name": "Ada"})

        self.assertEqual(resp.status_code, 502)
        self.assertEqual(
            resp.json(),
            {
                "joined": False,
                "error": "Fetch failed (timeout/network) via GET https://b.test?code=ABC&name=Ada",
                "upstreamData": None,
            },
        )

    def test_timeout_advances_to_next_candidate(self):
        self._patch_outcomes(
            {
                "POST https://a.test": AttemptOutcome.unreachable("POST https://a.test", detail="AttemptTimeout"),
                "GET https://a.test?code=ABC&name=Ada": _ok("GET https://a.test?code=ABC&name=Ada", "joined"),
            }
        )

        resp = self._post_join({"code": "ABC", "name": "Ada"})

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["via"], "GET https://a.test?code=ABC&name=Ada")
        self.assertEqual(resp.json()["data"], "joined")

    def test_missing_or_empty_fields_are_rejected_before_any_upstream_call(self):
        self._patch_outcomes({})
        for payload in ({"code": "ABC"}, {"name": "Ada"}, {"code": "ABC", "name": ""}, {"code": 123, "name": "Ada"}, ""):
            resp = self._post_join(payload)
            self.assertEqual(resp.status_code, 400)
            self.assertEqual(resp.json(), {"error": "Missing code or name"})
        self.assertEqual(self.calls, [])

    def test_whitespace_only_fields_are_relayed(self):
        self._patch_outcomes({"POST https://a.test": _ok("POST https://a.test", {"room": "x"})})
        resp = self._post_join({"code": "   ", "name": "Ada"})

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(len(self.calls), 1)
        self.assertEqual(dict(self.calls[0].payload), {"code": "   ", "name": "Ada"})

    def test_bad_json_is_rejected(self):
        self._patch_outcomes({})
        for raw in ("{not json", "[1, 2]"):
            resp = self._post_join(raw)
            self.assertEqual(resp.status_code, 400)
            self.assertEqual(resp.json(), {"error": "bad_json"})
        self.assertEqual(self.calls, [])

    def test_fields_are_relayed_exactly_as_received(self):
        self._patch_outcomes({})
        self._post_join({"code": " ab c ", "name": "Zoë  "})
        self.assertEqual(dict(self.calls[0].payload), {"code": " ab c ", "name": "Zoë  "})
        self.assertEqual(self.calls[1].target, "https://a.test?code=%20ab%20c%20&name=Zo%C3%AB%20%20")

    def test_preflight_returns_204_with_cors_headers(self):
        self._patch_outcomes({})
        resp = self.client.options("/api/join")

        self.assertEqual(resp.status_code, 204)
        self.assertEqual(resp.content, b"")
        self.assertEqual(resp["Access-Control-Allow-Origin"], "*")
        self.assertEqual(resp["Access-Control-Allow-Methods"], "POST,OPTIONS")
        self.assertEqual(resp["Access-Control-Allow-Headers"], "Content-Type")
        self.assertEqual(self.calls, [])

    def test_other_methods_are_not_allowed(self):
        self._patch_outcomes({})
        for method in ("get", "put", "delete"):
            resp = getattr(self.client, method)("/api/join")
            self.assertEqual(resp.status_code, 405)
            self.assertEqual(resp.json(), {"error": "Use POST /api/join with JSON { code, name }"})
            self.assertEqual(resp["Access-Control-Allow-Origin"], "*")
        self.assertEqual(self.calls, [])

    def test_responses_are_not_cacheable_and_carry_request_id(self):
        self._patch_outcomes({"POST https://a.test": _ok("POST https://a.test", {})})
        resp = self._post_join({"code": "ABC", "name": "Ada"}, HTTP_X_REQUEST_ID="req-123")

        self.assertEqual(resp["Cache-Control"], "no-store")
        self.assertEqual(resp["Pragma"], "no-cache")
        self.assertEqual(resp["X-Request-ID"], "req-123")

    @override_settings(JOIN_RELAY_CORS_ORIGIN="https://app.test")
    def test_cors_origin_follows_settings(self):
        self._patch_outcomes({})
        resp = self._post_join({"code": "ABC", "name": "Ada"})
        self.assertEqual(resp["Access-Control-Allow-Origin"], "https://app.test")

    def test_json_responses_skip_frame_options(self):
        self._patch_outcomes({})
        resp = self._post_join({"code": "ABC", "name": "Ada"})
        self.assertFalse(resp.has_header("X-Frame-Options"))

    @override_settings(JOIN_RELAY_UPSTREAM_URLS=[], JOIN_RELAY_UPSTREAM_BASE="https://base.test/")
    def test_single_base_is_tried_across_default_paths(self):
        self._patch_outcomes({})
        resp = self._post_join({"code": "ABC", "name": "Ada"})

        self.assertEqual(resp.status_code, 502)
        self.assertEqual(
            [d.label for d in self.calls],
            [
                "POST https://base.test/api/join",
                "GET https://base.test/api/join?code=ABC&name=Ada",
                "POST https://base.test/v1/join",
                "GET https://base.test/v1/join?code=ABC&name=Ada",
                "POST https://base.test/join",
                "GET https://base.test/join?code=ABC&name=Ada",
            ],
        )
        self.assertIn("GET https://base.test/join?code=ABC&name=Ada", resp.json()["error"])

    @override_settings(JOIN_RELAY_UPSTREAM_URLS=[], JOIN_RELAY_UPSTREAM_BASE="")
    def test_no_configuration_fails_without_attempts(self):
        self._patch_outcomes({})
        resp = self._post_join({"code": "ABC", "name": "Ada"})

        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"joined": False, "error": NO_CANDIDATES_MESSAGE, "upstreamData": None})
        self.assertEqual(self.calls, [])

    @override_settings(JOIN_RELAY_UPSTREAM_HEADERS='{"Content-Type": "application/json", "X-Api-Key": "k"}')
    def test_post_attempts_use_configured_headers(self):
        with patch(
            "relay.views.engine_executor.execute",
            return_value=_ok("POST https://a.test", {}),
        ) as execute_mock:
            resp = self._post_join({"code": "ABC", "name": "Ada"})

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(
            dict(execute_mock.call_args.kwargs["headers"]),
            {"Content-Type": "application/json", "X-Api-Key": "k"},
        )

    def test_logs_do_not_contain_join_code(self):
        self._patch_outcomes(
            {"GET https://a.test?code=SECRET1&name=Ada": _ok("GET https://a.test?code=SECRET1&name=Ada", {})}
        )
        with self.assertLogs("relay.views", level="INFO") as logs:
            resp = self._post_join({"code": "SECRET1", "name": "Ada"})

        self.assertEqual(resp.status_code, 200)
        output = "\n".join(logs.output)
        self.assertIn("join_attempt_failed", output)
        self.assertIn("join_relayed", output)
        self.assertNotIn("SECRET1", output)


class HealthzTests(SimpleTestCase):
    def setUp(self):
        views.relay_config.cache_clear()
        self.addCleanup(views.relay_config.cache_clear)

    @override_settings(JOIN_RELAY_UPSTREAM_URLS=[], JOIN_RELAY_UPSTREAM_BASE="https://base.test")
    def test_healthz_counts_candidate_urls(self):
        resp = self.client.get("/healthz")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"ok": True, "candidate_urls": 3})

    def test_healthz_is_get_only(self):
        resp = self.client.post("/healthz")
        self.assertEqual(resp.status_code, 405)
