"""Tests for the ATT&CK technique service: parsing, caching and failure policy."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import httpx
import pytest

from grc_records.adapters.http.secure_fetch import FetchPolicy, SecureFetcher
from grc_records.adapters.rate_limit.sliding_window import SlidingWindowRateLimiter
from grc_records.core.errors import (
    FetchTimeoutError,
    RateLimitExceededError,
    UpstreamHTTPError,
    ValidationAppError,
)
from grc_records.services.mitre_service import (
    MitreAttackService,
    filter_techniques,
    parse_stix_bundle,
    parse_technique,
    tactic_display_name,
)
from grc_records.utils.ttl_cache import StaleTTLCache

FEED_URL = "https://raw.githubusercontent.com/mitre/cti/master/enterprise-attack/enterprise-attack.json"
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def attack_pattern(external_id: str, name: str, **overrides) -> dict:
    obj = {
        "type": "attack-pattern",
        "id": f"attack-pattern--{external_id}",
        "name": name,
        "description": f"{name} description",
        "external_references": [
            {"source_name": "capec", "external_id": "CAPEC-1"},
            {"source_name": "mitre-attack", "external_id": external_id},
        ],
        "kill_chain_phases": [{"kill_chain_name": "mitre-attack", "phase_name": "initial-access"}],
        "x_mitre_platforms": ["Windows", "Linux"],
    }
    obj.update(overrides)
    return obj


BUNDLE = {
    "type": "bundle",
    "objects": [
        {"type": "x-mitre-tactic", "id": "x-mitre-tactic--1", "name": "Initial Access"},
        attack_pattern("T1078", "Valid Accounts"),
        attack_pattern(
            "T1055.012",
            "Process Hollowing",
            kill_chain_phases=[{"kill_chain_name": "mitre-attack", "phase_name": "defense-evasion"}],
            x_mitre_platforms=["Windows"],
        ),
        attack_pattern("T1566", "<script>alert(1)</script>"),
        attack_pattern("not-an-id", "Broken"),
    ],
}


class FeedHandler:
    """Mock transport handler whose answer can be changed between calls.

    ``respond`` builds a new response per call; httpx responses cannot be
    streamed twice.
    """

    def __init__(self, respond) -> None:
        self.respond = respond
        self.calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        return self.respond()


def feed(payload=BUNDLE, content_type: str = "text/plain; charset=utf-8") -> httpx.Response:
    return httpx.Response(200, headers={"content-type": content_type}, content=json.dumps(payload).encode())


def unavailable() -> httpx.Response:
    return httpx.Response(503, json={})


def connect_timeout() -> httpx.Response:
    raise httpx.ConnectTimeout("slow")


def make_service(handler, clock, *, max_requests: int = 10, ttl: int = 60, grace: int = 600):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    limiter = SlidingWindowRateLimiter(max_requests=max_requests, window_seconds=60, clock=clock)
    policy = FetchPolicy(
        timeout_seconds=1.0,
        max_response_bytes=1024 * 1024,
        allowed_content_types=("application/json",),
        content_types_by_host={"raw.githubusercontent.com": ("text/plain", "application/json")},
    )
    cache = StaleTTLCache(ttl_seconds=ttl, grace_seconds=grace, clock=clock)
    return MitreAttackService(
        SecureFetcher(client, limiter, policy),
        cache,
        feed_url=FEED_URL,
        clock=lambda: NOW,
    )


class TestParsing:
    def test_bundle_keeps_only_valid_attack_patterns(self) -> None:
        techniques = parse_stix_bundle(BUNDLE, max_objects=100, max_techniques=100)

        assert [t.id for t in techniques] == ["T1078", "T1055.012"]
        hollowing = techniques[1]
        assert hollowing.tactic == "defense-evasion"
        assert hollowing.tactic_name == "Defense Evasion"
        assert hollowing.url == "https://attack.mitre.org/techniques/T1055/012"

    def test_technique_text_is_decoded_and_bounded(self) -> None:
        technique = parse_technique(
            attack_pattern("T1001", "Data &amp; Obfuscation", description="x" * 5000)
        )

        assert technique.name == "Data & Obfuscation"
        assert len(technique.description) == 2000

    def test_technique_count_is_capped(self) -> None:
        objects = [attack_pattern(f"T{1000 + n}", f"Technique {n}") for n in range(20)]

        techniques = parse_stix_bundle({"objects": objects}, max_objects=100, max_techniques=5)

        assert len(techniques) == 5

    def test_oversized_bundle_rejected(self) -> None:
        with pytest.raises(ValidationAppError) as exc_info:
            parse_stix_bundle({"objects": [{}] * 11}, max_objects=10, max_techniques=5)
        assert exc_info.value.code == "stix_object_limit_exceeded"

    @pytest.mark.parametrize("payload", [[], {"objects": "nope"}, {"objects": []}])
    def test_unusable_payload_rejected(self, payload) -> None:
        with pytest.raises(ValidationAppError):
            parse_stix_bundle(payload, max_objects=10, max_techniques=5)

    def test_tactic_display_name(self) -> None:
        assert tactic_display_name("command-and-control") == "Command and Control"
        assert tactic_display_name("some-new-tactic") == "Some New Tactic"


class TestListTechniques:
    @pytest.mark.asyncio
    async def test_fresh_then_cached(self, clock) -> None:
        handler = FeedHandler(feed)
        service = make_service(handler, clock)

        first = await service.list_techniques()
        second = await service.list_techniques()

        assert first.cache_status == "fresh"
        assert first.count == 2
        assert first.last_updated == NOW.isoformat()
        assert second.cache_status == "cached"
        assert handler.calls == 1

    @pytest.mark.asyncio
    async def test_refresh_after_ttl(self, clock) -> None:
        handler = FeedHandler(feed)
        service = make_service(handler, clock, ttl=60)

        await service.list_techniques()
        clock.advance(61)
        response = await service.list_techniques()

        assert response.cache_status == "fresh"
        assert handler.calls == 2

    @pytest.mark.asyncio
    async def test_failed_refresh_serves_stale_data(self, clock) -> None:
        handler = FeedHandler(feed)
        service = make_service(handler, clock, ttl=60, grace=600)
        await service.list_techniques()

        clock.advance(120)
        handler.respond = unavailable
        response = await service.list_techniques()

        assert response.cache_status == "stale"
        assert response.count == 2
        assert response.note

    @pytest.mark.asyncio
    async def test_retryable_failure_without_cache_propagates(self, clock) -> None:
        handler = FeedHandler(unavailable)
        service = make_service(handler, clock)

        with pytest.raises(UpstreamHTTPError):
            await service.list_techniques()

    @pytest.mark.asyncio
    async def test_timeout_without_cache_propagates(self, clock) -> None:
        handler = FeedHandler(connect_timeout)
        service = make_service(handler, clock)

        with pytest.raises(FetchTimeoutError):
            await service.list_techniques()

    @pytest.mark.asyncio
    async def test_rate_limit_without_cache_propagates(self, clock) -> None:
        handler = FeedHandler(unavailable)
        service = make_service(handler, clock, max_requests=1)

        with pytest.raises(UpstreamHTTPError):
            await service.list_techniques()
        with pytest.raises(RateLimitExceededError):
            await service.list_techniques()
        assert handler.calls == 1

    @pytest.mark.asyncio
    async def test_non_retryable_anomaly_falls_back_to_sample(self, clock) -> None:
        handler = FeedHandler(
            lambda: httpx.Response(200, headers={"content-type": "text/html"}, content=b"<html/>")
        )
        service = make_service(handler, clock)

        response = await service.list_techniques()

        assert response.cache_status == "fallback"
        assert response.source == "Trusted Sample Data (Fallback)"
        assert "Invalid content type" in response.fallback_reason
        assert response.count > 0
        assert all(t.id.startswith("T") for t in response.data)

    @pytest.mark.asyncio
    async def test_malformed_json_falls_back(self, clock) -> None:
        handler = FeedHandler(
            lambda: httpx.Response(200, headers={"content-type": "text/plain"}, content=b"{not json")
        )

        response = await make_service(handler, clock).list_techniques()

        assert response.cache_status == "fallback"

    @pytest.mark.asyncio
    async def test_filters_apply_to_cached_data(self, clock) -> None:
        service = make_service(FeedHandler(feed), clock)

        by_tactic = await service.list_techniques(tactic="Defense Evasion")
        by_search = await service.list_techniques(search="valid")
        by_platform = await service.list_techniques(platform="linux")

        assert [t.id for t in by_tactic.data] == ["T1055.012"]
        assert [t.id for t in by_search.data] == ["T1078"]
        assert by_platform.count == 1


def test_metadata_lists_tactics_and_platforms() -> None:
    metadata = MitreAttackService.metadata()

    assert metadata.data.tactics[0].id == "TA0001"
    assert metadata.data.tactics[-1].id == "TA0040"
    assert "ESXi" in metadata.data.platforms


def test_filter_techniques_without_criteria_returns_all() -> None:
    techniques = parse_stix_bundle(BUNDLE, max_objects=100, max_techniques=100)

    assert filter_techniques(techniques) == techniques
