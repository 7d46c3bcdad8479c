from __future__ import annotations

import pytest
from fastapi import Request, Response
from prometheus_client import REGISTRY

import tutordesk.main as main_module
from tutordesk.core.metrics import (
    build_metrics_response,
    instrument_http_request,
    record_conflict,
    record_transition,
)


def _make_request(path: str) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": path,
        "headers": [],
        "client": ("127.0.0.1", 12345),
        "scheme": "http",
        "server": ("testserver", 80),
        "query_string": b"",
    }
    return Request(scope)


@pytest.mark.asyncio
async def test_http_metrics_instrumentation_tracks_status_and_path() -> None:
    async def _no_content(_: Request) -> Response:
        return Response(status_code=204)

    request = _make_request("/health")
    await instrument_http_request(request, _no_content)

    payload = build_metrics_response().body.decode("utf-8")
    assert "tutordesk_http_requests_total" in payload
    assert 'path="/health"' in payload
    assert 'status_code="204"' in payload


@pytest.mark.asyncio
async def test_http_metrics_count_failed_requests_as_500() -> None:
    async def _boom(_: Request) -> Response:
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        await instrument_http_request(_make_request("/broken"), _boom)

    payload = build_metrics_response().body.decode("utf-8")
    assert 'path="/broken"' in payload
    assert 'status_code="500"' in payload


def _sample(name: str, labels: dict[str, str]) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


def test_scheduling_counters_are_labelled() -> None:
    transition_labels = {"transition": "supersede"}
    conflict_labels = {"operation": "generate", "outcome": "advisory"}
    transitions_before = _sample("tutordesk_session_transitions_total", transition_labels)
    conflicts_before = _sample("tutordesk_scheduling_conflicts_total", conflict_labels)

    record_transition("supersede")
    record_conflict("generate", rejected=False)

    assert _sample("tutordesk_session_transitions_total", transition_labels) == transitions_before + 1
    assert _sample("tutordesk_scheduling_conflicts_total", conflict_labels) == conflicts_before + 1
    payload = build_metrics_response().body.decode("utf-8")
    assert "tutordesk_session_transitions_total" in payload
    assert "tutordesk_scheduling_conflicts_total" in payload


@pytest.mark.asyncio
async def test_metrics_endpoint_exposes_prometheus_payload() -> None:
    response = await main_module.metrics_endpoint(_make_request("/metrics"))
    payload = response.body.decode("utf-8")

    assert response.status_code == 200
    assert "tutordesk_http_requests_total" in payload
