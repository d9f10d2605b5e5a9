"""
Tests for the Hyra staff dashboard client (HTTP faked with MockTransport).
"""
from __future__ import annotations

import asyncio

import httpx
import pytest

from services.hyra.client import (
    FairnessProviderError,
    HyraClient,
    parse_weekly_session_counts,
)


def _client(handler, **kwargs):
    kwargs.setdefault("api_key", "secret")
    kwargs.setdefault("workspace_id", "ws-1")
    return HyraClient(transport=httpx.MockTransport(handler), **kwargs)


def test_parse_known_shapes():
    body = {
        "staff": [
            {"discordId": "1", "sessions": 4},
            {"discord": {"id": 2}, "sessions": {"thisWeek": 2}},
            {"user": {"discord_id": "3"}, "stats": {"weeklySessions": 7}},
            {"name": "no discord id", "sessions": 9},
        ],
        "data": {"staff": [{"profile": {"discordId": "4"}, "totalSessions": 1}]},
    }

    assert parse_weekly_session_counts(body) == {"1": 4, "2": 2, "3": 7, "4": 1}


def test_parse_missing_count_is_zero():
    assert parse_weekly_session_counts({"results": [{"discordId": "9"}]}) == {"9": 0}


def test_parse_rejects_non_object_root():
    with pytest.raises(FairnessProviderError):
        parse_weekly_session_counts([{"discordId": "1"}])


def test_fetch_sends_auth_and_period():
    seen = {}

    def handler(request: httpx.Request):
        seen["path"] = request.url.path
        seen["period"] = request.url.params.get("period")
        seen["auth"] = request.headers.get("Authorization")
        seen["workspace"] = request.headers.get("X-Workspace-Id")
        return httpx.Response(200, json={"staff": [{"discordId": "1", "sessions": 3}]})

    scores = asyncio.run(_client(handler).fetch_fairness_scores())

    assert scores == {"1": 3}
    assert seen == {
        "path": "/v1/staff/dashboard",
        "period": "week",
        "auth": "Bearer secret",
        "workspace": "ws-1",
    }


def test_http_error_raises_provider_error():
    def handler(request):
        return httpx.Response(503, text="maintenance")

    with pytest.raises(FairnessProviderError, match="503"):
        asyncio.run(_client(handler).fetch_fairness_scores())


def test_non_json_body_raises_provider_error():
    def handler(request):
        return httpx.Response(200, text="<html>oops</html>")

    with pytest.raises(FairnessProviderError):
        asyncio.run(_client(handler).fetch_fairness_scores())


def test_transport_failure_raises_provider_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(FairnessProviderError):
        asyncio.run(_client(handler).fetch_fairness_scores())


def test_missing_credentials():
    client = _client(lambda request: httpx.Response(200, json={}), api_key=None)

    assert not client.configured
    with pytest.raises(FairnessProviderError):
        asyncio.run(client.fetch_fairness_scores())
