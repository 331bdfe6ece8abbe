"""API tests for the cloneplan FastAPI app.

Tests cover:
- Health check and lifespan start/stop
- Analysis create, list, get, delete with per-user isolation
- Stage generation and the stage map endpoint
- Typed error bodies (status, code, requestId, retryable)
- Debug-only internal messages
"""

from unittest.mock import AsyncMock, MagicMock

from fastapi.testclient import TestClient

from cloneplan.api.app import create_app
from cloneplan.core.errors import RateLimitError
from cloneplan.core.models import AIAnalysisResult
from cloneplan.core.orchestrator import AnalysisOrchestrator
from cloneplan.core.storage import InMemoryAnalysisStore
from cloneplan.setting import PlanSettings


# ── Fixtures ──────────────────────────────────────────────────────────────


STRUCTURED = {"overview": {"businessName": "Acme Notes"}, "technical": {"techStack": ["React"]}}

STAGE2 = {
    "effortScore": 4,
    "rewardScore": 8,
    "recommendation": "go",
    "reasoning": "Acme Notes has a simple note-taking core that can be rebuilt quickly.",
    "automationPotential": {"score": 0.7, "opportunities": ["Automate onboarding emails"]},
    "resourceRequirements": {"time": "8-12 weeks", "money": "$20,000-$35,000", "skills": ["React"]},
    "nextSteps": ["Build a landing page for Acme Notes", "Test pricing with 20 users", "Launch a beta"],
}


def _mock_providers():
    providers = MagicMock()
    providers.analyze = AsyncMock(side_effect=lambda *a, **kw: AIAnalysisResult(
        content="Notes for teams", model="gpt-4o-mini", provider="openai", structured=dict(STRUCTURED),
    ))
    providers.primary.generate_json = AsyncMock(return_value=dict(STAGE2))
    providers.get_metrics = MagicMock(return_value={})
    return providers


def _make_client(debug=False, raise_server_exceptions=True):
    settings = PlanSettings(debug=debug)
    store = InMemoryAnalysisStore()
    orchestrator = AnalysisOrchestrator(settings, _mock_providers(), store)
    app = create_app(orchestrator, store, settings)
    return TestClient(app, raise_server_exceptions=raise_server_exceptions), orchestrator


def _create(client, user="alice"):
    resp = client.post(
        "/api/business-analyses/analyze",
        json={"url": "acmenotes.io", "goal": "SaaS ideas"},
        headers={"X-User-Id": user},
    )
    assert resp.status_code == 200
    return resp.json()


# ── Tests: Health ────────────────────────────────────────────────────────


class TestHealth:
    """Tests for health and lifespan."""

    def test_health(self):
        client, _ = _make_client()

        resp = client.get("/api/health")

        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "service": "cloneplan"}

    def test_lifespan_starts_and_stops_orchestrator(self):
        orchestrator = MagicMock()
        orchestrator.stop = AsyncMock()
        app = create_app(orchestrator, InMemoryAnalysisStore(), PlanSettings())

        with TestClient(app) as client:
            client.get("/api/health")
            orchestrator.start.assert_called_once()

        orchestrator.stop.assert_awaited_once()


# ── Tests: Analyses ──────────────────────────────────────────────────────


class TestAnalyses:
    """Tests for the business-analyses routes."""

    def test_analyze_returns_record(self):
        client, _ = _make_client()

        body = _create(client)

        assert body["url"] == "https://acmenotes.io"
        assert body["userId"] == "alice"
        assert body["goal"] == "SaaS ideas"
        assert body["model"] == "openai:gpt-4o-mini"
        assert body["detectionStatus"] == "disabled"
        assert body["stages"]["1"]["status"] == "completed"

    def test_list_is_per_user(self):
        client, _ = _make_client()
        _create(client, "alice")
        _create(client, "bob")

        alice = client.get("/api/business-analyses", headers={"X-User-Id": "alice"}).json()
        anonymous = client.get("/api/business-analyses").json()

        assert alice["count"] == 1
        assert anonymous == {"analyses": [], "count": 0}

    def test_user_cookie_is_honoured(self):
        client, _ = _make_client()
        created = _create(client, "carol")
        client.cookies.set("userId", "carol")

        resp = client.get(f"/api/business-analyses/{created['id']}")

        assert resp.status_code == 200

    def test_get_other_users_analysis_is_not_found(self):
        client, _ = _make_client()
        created = _create(client, "alice")

        resp = client.get(
            f"/api/business-analyses/{created['id']}",
            headers={"X-User-Id": "mallory", "X-Request-Id": "req-42"},
        )

        assert resp.status_code == 404
        body = resp.json()
        assert body["code"] == "NOT_FOUND"
        assert body["requestId"] == "req-42"
        assert body["retryable"] is False
        assert "message" not in body

    def test_delete(self):
        client, _ = _make_client()
        created = _create(client)
        headers = {"X-User-Id": "alice"}

        first = client.delete(f"/api/business-analyses/{created['id']}", headers=headers)
        second = client.delete(f"/api/business-analyses/{created['id']}", headers=headers)

        assert first.json() == {"success": True, "id": created["id"]}
        assert second.status_code == 404

    def test_empty_url_is_rejected(self):
        client, _ = _make_client()

        resp = client.post("/api/business-analyses/analyze", json={"url": ""})

        assert resp.status_code == 422

    def test_invalid_url_maps_to_bad_request(self):
        client, _ = _make_client()

        resp = client.post("/api/business-analyses/analyze", json={"url": "ftp://acmenotes.io"})

        assert resp.status_code == 400
        assert resp.json()["code"] == "BAD_REQUEST"

    def test_admission_rejection_is_429(self):
        client, orchestrator = _make_client()
        orchestrator.analyze = AsyncMock(side_effect=RateLimitError("full", details={"active": 5, "max": 5}))

        resp = client.post("/api/business-analyses/analyze", json={"url": "acmenotes.io"})

        assert resp.status_code == 429
        assert resp.json()["code"] == "RATE_LIMITED"
        assert resp.json()["retryable"] is True


# ── Tests: Stages ────────────────────────────────────────────────────────


class TestStages:
    """Tests for stage generation routes."""

    def test_generate_stage_two(self):
        client, _ = _make_client()
        created = _create(client)

        resp = client.post(
            f"/api/business-analyses/{created['id']}/stages/2",
            headers={"X-User-Id": "alice"},
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["stageNumber"] == 2
        assert body["stageName"] == "Lazy-Entrepreneur Filter"
        assert body["nextStage"] == 3

        stages = client.get(
            f"/api/business-analyses/{created['id']}/stages",
            headers={"X-User-Id": "alice"},
        ).json()
        assert stages["completedStages"] == [1, 2]
        assert stages["currentStage"] == 3

    def test_regenerate_flag_is_accepted(self):
        client, _ = _make_client()
        created = _create(client)
        url = f"/api/business-analyses/{created['id']}/stages/2"
        headers = {"X-User-Id": "alice"}

        client.post(url, headers=headers)
        resp = client.post(url, json={"regenerate": True}, headers=headers)

        assert resp.status_code == 200

    def test_skipping_a_stage_is_bad_request(self):
        client, _ = _make_client()
        created = _create(client)

        resp = client.post(
            f"/api/business-analyses/{created['id']}/stages/4",
            headers={"X-User-Id": "alice"},
        )

        assert resp.status_code == 400
        assert resp.json()["error"] == (
            "Stage 3 (MVP Launch Planning) must be completed before accessing Stage 4"
        )

    def test_stages_for_unknown_analysis(self):
        client, _ = _make_client()

        resp = client.get("/api/business-analyses/missing/stages")

        assert resp.status_code == 404


# ── Tests: System and errors ─────────────────────────────────────────────


class TestSystem:
    """Tests for stats and error rendering."""

    def test_stats(self):
        client, _ = _make_client()
        _create(client)

        stats = client.get("/api/system/stats").json()

        assert stats["admission"]["admitted"] == 1
        assert stats["admission"]["active"] == 0
        assert stats["detection"]["enabled"] is False
        assert stats["cache"]["size"] == 0

    def test_unhandled_error_is_internal(self):
        client, orchestrator = _make_client(raise_server_exceptions=False)
        orchestrator.get_stats = MagicMock(side_effect=KeyError("boom"))

        resp = client.get("/api/system/stats")

        assert resp.status_code == 500
        assert resp.json()["code"] == "INTERNAL"
        assert "message" not in resp.json()

    def test_debug_mode_exposes_internal_message(self):
        client, _ = _make_client(debug=True)

        resp = client.get("/api/business-analyses/missing")

        assert resp.json()["message"] == "Analysis missing not found"
