"""MITRE ATT&CK technique catalogue backed by the official STIX feed.

The service owns the technique cache and decides what to serve when the feed
misbehaves:
- fresh cache entry: served as ``cached``,
- successful refresh: served as ``fresh`` and cached,
- failed refresh with data inside the grace window: served as ``stale``,
- retryable failure (rate limit, timeout, upstream 5xx) and nothing cached:
  the error propagates so the client can back off,
- non-retryable anomaly (bad media type, oversized or malformed feed) and
  nothing cached: the built-in sample set is served as ``fallback`` together
  with the reason.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any, Callable

from grc_records.adapters.http.secure_fetch import SecureFetcher, log_security_event
from grc_records.core.config import MitreSettings
from grc_records.core.errors import AppError, UpstreamHTTPError, ValidationAppError
from grc_records.schemas.mitre import (
    Metadata,
    MetadataResponse,
    MitreTechnique,
    Tactic,
    TechniquesResponse,
)
from grc_records.services.mitre_sample_data import PLATFORMS, SAMPLE_TECHNIQUES, TACTICS
from grc_records.utils.stix import (
    MAX_DESCRIPTION_LENGTH,
    MAX_ID_LENGTH,
    MAX_NAME_LENGTH,
    clean_platforms,
    clean_text,
    validate_mitre_id,
    validate_stix_object,
)
from grc_records.utils.ttl_cache import StaleTTLCache

logger = logging.getLogger(__name__)

FEED_SOURCE = "MITRE ATT&CK STIX Feed"
FALLBACK_SOURCE = "Trusted Sample Data (Fallback)"
TECHNIQUE_URL = "https://attack.mitre.org/techniques/{path}"
CACHE_KEY = "techniques"

_TACTIC_NAMES = {re.sub(r"[^a-z]+", "-", name.lower()): name for _, name in TACTICS}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_retryable(exc: AppError) -> bool:
    if isinstance(exc, UpstreamHTTPError):
        return exc.is_retryable
    return exc.retryable


def tactic_display_name(phase_name: str) -> str:
    """``"command-and-control"`` -> ``"Command and Control"``."""

    if phase_name in _TACTIC_NAMES:
        return _TACTIC_NAMES[phase_name]
    return phase_name.replace("-", " ").title()


def _mitre_external_id(obj: dict[str, Any]) -> str | None:
    for ref in obj.get("external_references") or []:
        if isinstance(ref, dict) and ref.get("source_name") == "mitre-attack" and ref.get("external_id"):
            return str(ref["external_id"])
    return None


def build_technique(
    technique_id: str,
    name: str,
    description: str,
    tactic: str,
    platforms: list[str],
) -> MitreTechnique:
    """Assemble a technique from already-sanitised parts.

    The display tactic name and the attack.mitre.org URL are derived here;
    sub-technique ids such as ``T1059.001`` map to ``techniques/T1059/001``.
    """
    return MitreTechnique(
        id=technique_id,
        name=name,
        description=description,
        tactic=tactic,
        tactic_name=tactic_display_name(tactic) if tactic else "",
        platforms=platforms,
        url=TECHNIQUE_URL.format(path=technique_id.replace(".", "/")),
    )


def parse_technique(obj: Any) -> MitreTechnique | None:
    """Turn one STIX ``attack-pattern`` into a sanitised technique, or None."""

    if not validate_stix_object(obj):
        return None

    technique_id = _mitre_external_id(obj)
    if technique_id is None or len(technique_id) > MAX_ID_LENGTH or not validate_mitre_id(technique_id):
        return None

    name = clean_text(obj.get("name"), MAX_NAME_LENGTH)
    if not name:
        return None

    description = clean_text(obj.get("description"), MAX_DESCRIPTION_LENGTH)
    phases = obj.get("kill_chain_phases") or []
    first_phase = phases[0] if phases and isinstance(phases[0], dict) else {}
    tactic = clean_text(first_phase.get("phase_name"), MAX_NAME_LENGTH)

    return build_technique(
        technique_id,
        name,
        description or "No description available",
        tactic,
        clean_platforms(obj.get("x_mitre_platforms")),
    )


def parse_stix_bundle(
    payload: Any,
    *,
    max_objects: int,
    max_techniques: int,
) -> list[MitreTechnique]:
    """Extract techniques from a decoded STIX bundle.

    Raises:
        ValidationAppError: The payload is not a bundle, is too large, or holds
            no usable technique.
    """
    objects = payload.get("objects") if isinstance(payload, dict) else None
    if not isinstance(objects, list):
        raise ValidationAppError(
            code="invalid_stix_bundle",
            message="STIX payload has no 'objects' list",
        )
    if len(objects) > max_objects:
        log_security_event("stix_object_limit_exceeded", objects=len(objects), max_objects=max_objects)
        raise ValidationAppError(
            code="stix_object_limit_exceeded",
            message=f"STIX bundle holds {len(objects)} objects, limit is {max_objects}",
        )

    techniques: list[MitreTechnique] = []
    rejected = 0
    for obj in objects:
        if not isinstance(obj, dict) or obj.get("type") != "attack-pattern":
            continue
        technique = parse_technique(obj)
        if technique is None:
            rejected += 1
            continue
        techniques.append(technique)
        if len(techniques) >= max_techniques:
            break

    if rejected:
        logger.warning("mitre.techniques_rejected", extra={"rejected": rejected})
    if not techniques:
        raise ValidationAppError(
            code="no_techniques_found",
            message="No techniques found in MITRE data",
        )
    return techniques


def sample_techniques() -> list[MitreTechnique]:
    """The built-in trusted technique set served as the last fallback."""
    return [
        build_technique(
            item["id"],
            item["name"],
            item["description"],
            item["tactic"],
            list(item["platforms"]),
        )
        for item in SAMPLE_TECHNIQUES
    ]


def filter_techniques(
    techniques: list[MitreTechnique],
    *,
    search: str | None = None,
    tactic: str | None = None,
    platform: str | None = None,
) -> list[MitreTechnique]:
    """Case-insensitive filtering on free text, tactic and platform."""

    selected = techniques
    if search:
        needle = search.strip().lower()
        selected = [
            t
            for t in selected
            if needle in t.id.lower() or needle in t.name.lower() or needle in t.description.lower()
        ]
    if tactic:
        wanted = tactic.strip().lower()
        selected = [t for t in selected if wanted in (t.tactic.lower(), t.tactic_name.lower())]
    if platform:
        wanted = platform.strip().lower()
        selected = [t for t in selected if wanted in (p.lower() for p in t.platforms)]
    return selected


class MitreAttackService:
    """Fetch, validate, cache and serve ATT&CK techniques."""

    def __init__(
        self,
        fetcher: SecureFetcher,
        cache: StaleTTLCache,
        *,
        feed_url: str,
        max_objects: int = 10000,
        max_techniques: int = 1000,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.fetcher = fetcher
        self.cache = cache
        self.feed_url = feed_url
        self.max_objects = max_objects
        self.max_techniques = max_techniques
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        fetcher: SecureFetcher,
        mitre: MitreSettings,
        app_env: str,
    ) -> "MitreAttackService":
        cache = StaleTTLCache(
            ttl_seconds=mitre.effective_cache_ttl(app_env),
            grace_seconds=mitre.cache_grace_seconds,
            max_entries=4,
        )
        return cls(
            fetcher,
            cache,
            feed_url=mitre.feed_url,
            max_objects=mitre.max_objects,
            max_techniques=mitre.max_techniques,
        )

    async def list_techniques(
        self,
        *,
        search: str | None = None,
        tactic: str | None = None,
        platform: str | None = None,
    ) -> TechniquesResponse:
        """Return techniques, refreshing the cache from the feed when needed.

        Raises:
            OutboundFetchError: A retryable failure with no cached data to fall
                back on.
        """
        response = await self._load()
        if search or tactic or platform:
            selected = filter_techniques(response.data, search=search, tactic=tactic, platform=platform)
            response = response.model_copy(update={"data": selected, "count": len(selected)})
        return response

    async def _load(self) -> TechniquesResponse:
        cached = self.cache.get(CACHE_KEY)
        if cached is not None:
            techniques, fetched_at = cached
            return self._response(techniques, "cached", last_updated=fetched_at)

        try:
            techniques = await self._fetch_feed()
        except AppError as exc:
            return self._recover(exc)

        fetched_at = self._clock()
        self.cache.set(CACHE_KEY, (techniques, fetched_at))
        logger.info("mitre.techniques_refreshed", extra={"count": len(techniques)})
        return self._response(techniques, "fresh", last_updated=fetched_at)

    async def _fetch_feed(self) -> list[MitreTechnique]:
        response = await self.fetcher.fetch(self.feed_url)
        try:
            payload = response.json()
        except ValueError as exc:
            raise ValidationAppError(
                code="invalid_stix_json",
                message="MITRE feed did not return valid JSON",
            ) from exc
        return parse_stix_bundle(
            payload,
            max_objects=self.max_objects,
            max_techniques=self.max_techniques,
        )

    def _recover(self, exc: AppError) -> TechniquesResponse:
        stale = self.cache.get_stale(CACHE_KEY)
        if stale is not None:
            (techniques, fetched_at), age = stale
            logger.warning(
                "mitre.serving_stale",
                extra={"error_code": exc.code, "age_s": round(age, 1)},
            )
            return self._response(
                techniques,
                "stale",
                last_updated=fetched_at,
                note="MITRE feed refresh failed; serving the last successfully fetched data.",
            )

        if _is_retryable(exc):
            logger.warning("mitre.refresh_failed", extra={"error_code": exc.code, "retryable": True})
            raise exc

        logger.warning(
            "mitre.serving_fallback",
            extra={"error_code": exc.code, "error_msg": exc.message},
        )
        return self._response(
            sample_techniques(),
            "fallback",
            last_updated=self._clock(),
            source=FALLBACK_SOURCE,
            note=(
                "Using trusted sample data due to MITRE STIX feed error. "
                "Feed may be temporarily unavailable."
            ),
            fallback_reason=exc.message,
        )

    def _response(
        self,
        techniques: list[MitreTechnique],
        cache_status: str,
        *,
        last_updated: datetime,
        source: str = FEED_SOURCE,
        note: str | None = None,
        fallback_reason: str | None = None,
    ) -> TechniquesResponse:
        return TechniquesResponse(
            data=techniques,
            count=len(techniques),
            source=source,
            last_updated=last_updated.isoformat(),
            cache_status=cache_status,
            note=note,
            fallback_reason=fallback_reason,
        )

    @staticmethod
    def metadata() -> MetadataResponse:
        """Fixed tactic and platform lists for filter dropdowns."""
        return MetadataResponse(
            data=Metadata(
                tactics=[Tactic(id=tactic_id, name=name) for tactic_id, name in TACTICS],
                platforms=list(PLATFORMS),
            )
        )
