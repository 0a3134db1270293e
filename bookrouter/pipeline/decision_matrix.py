"""Routing decision matrix.

A pure function of the pre-filter verdict and the probe metrics.  Given the
same inputs it always returns the same decision.

    max >= catalog_min_similarity and matches >= catalog_min_matches  -> CATALOG / high
    max >= hybrid_medium_min_similarity and matches >= ...medium...   -> HYBRID  / medium
    max >= hybrid_low_min_similarity and matches >= ...low...         -> HYBRID  / low
    otherwise                                                         -> WORLD   / none

A failed or missing probe routes to HYBRID / low: an infrastructure failure
never silently produces an unvetted WORLD answer.
"""

from __future__ import annotations

from bookrouter.config.settings import RoutingThresholds
from bookrouter.models.routing import (
    DecisionSource,
    PreFilterResult,
    ProbeResult,
    RoutingConfidence,
    RoutingDecision,
    RoutingPath,
)


def decide_route(
    prefilter: PreFilterResult,
    probe: ProbeResult | None,
    thresholds: RoutingThresholds,
) -> RoutingDecision:
    if prefilter.is_conclusive:
        return RoutingDecision(
            path=prefilter.path,
            confidence=RoutingConfidence.HIGH,
            source=DecisionSource.KEYWORD_PREFILTER,
            reason=prefilter.reason,
            prefilter=prefilter,
            probe=probe,
        )

    if probe is None or not probe.success:
        return RoutingDecision(
            path=RoutingPath.HYBRID,
            confidence=RoutingConfidence.LOW,
            source=DecisionSource.FALLBACK,
            reason="probe_failed",
            prefilter=prefilter,
            probe=probe,
        )

    path, confidence, reason = _from_metrics(probe, thresholds)
    return RoutingDecision(
        path=path,
        confidence=confidence,
        source=DecisionSource.CATALOG_PROBE,
        reason=reason,
        prefilter=prefilter,
        probe=probe,
    )


def _from_metrics(
    probe: ProbeResult,
    t: RoutingThresholds,
) -> tuple[RoutingPath, RoutingConfidence, str]:
    max_sim, matches = probe.max_similarity, probe.match_count
    if max_sim >= t.catalog_min_similarity and matches >= t.catalog_min_matches:
        return RoutingPath.CATALOG, RoutingConfidence.HIGH, "strong_catalog_match"
    if max_sim >= t.hybrid_medium_min_similarity and matches >= t.hybrid_medium_min_matches:
        return RoutingPath.HYBRID, RoutingConfidence.MEDIUM, "partial_catalog_match"
    if max_sim >= t.hybrid_low_min_similarity and matches >= t.hybrid_low_min_matches:
        return RoutingPath.HYBRID, RoutingConfidence.LOW, "weak_catalog_match"
    return RoutingPath.WORLD, RoutingConfidence.NONE, "no_catalog_match"
