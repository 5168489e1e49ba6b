"""Derived metrics for EBIOS RM analyses.

Pure functions over entity snapshots. Nothing here mutates stored data and
nothing computed here is ever persisted.
"""

import unicodedata
from dataclasses import dataclass
from typing import Iterable, Optional

from .schemas import AnalysisData, GapRequirement, Stakeholder, Strategy, clamp_level


LEVEL_COLORS = {
    1: '#2a9d8f',
    2: '#e9c46a',
    3: '#f4a261',
    4: '#e63946',
}
SSI_COLORS = {
    1: '#e63946',
    2: '#f4a261',
    3: '#e9c46a',
    4: '#2a9d8f',
}
NEUTRAL_COLOR = '#9aa0a6'
NO_IMPACT_COLOR = '#3c85cc'

GAP_STATUSES = (
    'Appliqué',
    'Partiellement appliqué',
    'Non appliqué',
    'Non applicable',
)


@dataclass(frozen=True)
class StakeholderMetrics:
    """Exposure and maturity metrics of one stakeholder."""
    exposition: int
    niveau_ssi: int
    indice: float

    @property
    def exposition_level(self) -> int:
        return pertinence_bucket(self.exposition)

    @property
    def niveau_level(self) -> int:
        return pertinence_bucket(self.niveau_ssi)

    @property
    def indice_level(self) -> int:
        return indice_level(self.indice)


@dataclass(frozen=True)
class SupportStats:
    """How many missions rely on a support and the worst impact among them."""
    name: str
    degree: int
    max_impact: int


@dataclass(frozen=True)
class RiskRollup:
    """Highest likelihood and severity recorded for a named risk."""
    name: str
    vraisemblance: int
    gravite: int


def level_color(level: Optional[int]) -> str:
    """Get the colour of a 1-4 level where 4 is the worst."""
    return LEVEL_COLORS.get(level, NEUTRAL_COLOR)


def ssi_color(level: Optional[int]) -> str:
    """Get the colour of a 1-4 maturity level where 4 is the best."""
    return SSI_COLORS.get(level, NEUTRAL_COLOR)


def impact_color(impact: int) -> str:
    return LEVEL_COLORS.get(impact, NO_IMPACT_COLOR)


def pertinence_bucket(product: int) -> int:
    """Map a motivation x resources product to a 1-4 level."""
    if product >= 13:
        return 4
    elif product >= 9:
        return 3
    elif product >= 5:
        return 2
    else:
        return 1


def pertinence(motivation, ressources) -> tuple[int, int]:
    """Return the pertinence product and its bucket for a SROV pair."""
    product = clamp_level(motivation) * clamp_level(ressources)
    return product, pertinence_bucket(product)


def exposition(stakeholder: Stakeholder) -> int:
    return stakeholder.dependance * stakeholder.penetration


def niveau_ssi(stakeholder: Stakeholder) -> int:
    return stakeholder.maturite * stakeholder.confiance


def indice(exposition_value: int, niveau_value: int) -> float:
    """Threat index of a stakeholder; zero when its SSI level is zero."""
    if not niveau_value:
        return 0.0
    return exposition_value / niveau_value


def indice_level(value: float) -> int:
    if value >= 4:
        return 4
    elif value >= 3:
        return 3
    elif value >= 2:
        return 2
    else:
        return 1


def stakeholder_metrics(stakeholder: Stakeholder) -> StakeholderMetrics:
    expo = exposition(stakeholder)
    niveau = niveau_ssi(stakeholder)
    return StakeholderMetrics(exposition=expo, niveau_ssi=niveau, indice=indice(expo, niveau))


def mission_impacts(data: AnalysisData) -> dict[str, int]:
    """Highest feared-event impact per mission id."""
    impacts: dict[str, int] = {}
    for event in data.events:
        if event.impact > impacts.get(event.missionId, 0):
            impacts[event.missionId] = event.impact
    return impacts


def mission_impact(data: AnalysisData, mission_id: str) -> int:
    """Highest impact over the events of a mission, 0 when it has none."""
    return max((e.impact for e in data.events if e.missionId == mission_id), default=0)


def all_support_stats(data: AnalysisData) -> dict[str, SupportStats]:
    """Statistics for every support name, in first-appearance order."""
    impacts = mission_impacts(data)
    degrees: dict[str, int] = {}
    worst: dict[str, int] = {}
    for mission in data.missions:
        impact = impacts.get(mission.id, 0)
        names = []
        for support in mission.supports:
            name = support.name.strip()
            if name and name not in names:
                names.append(name)
        for name in names:
            degrees[name] = degrees.get(name, 0) + 1
            worst[name] = max(worst.get(name, 0), impact)
    return {
        name: SupportStats(name=name, degree=degrees[name], max_impact=worst[name])
        for name in degrees
    }


def support_stats(data: AnalysisData, support_name: str) -> SupportStats:
    name = support_name.strip()
    return all_support_stats(data).get(name, SupportStats(name=name, degree=0, max_impact=0))


def normalize_status(value: str) -> str:
    """Lower-case, strip diacritics and collapse whitespace of a GAP status."""
    decomposed = unicodedata.normalize('NFD', value or '')
    stripped = ''.join(ch for ch in decomposed if not unicodedata.combining(ch))
    return ' '.join(stripped.lower().split())


_CANONICAL_STATUSES = {normalize_status(status): status for status in GAP_STATUSES}


def canonical_status(value: str) -> Optional[str]:
    """Return the canonical GAP status matching a free-form value, if any."""
    return _CANONICAL_STATUSES.get(normalize_status(value))


def is_applied(application: str) -> bool:
    """True for fully applied requirements, which need no remediation action."""
    return normalize_status(application).replace(' ', '').startswith('applique')


def gap_compliance_counts(requirements: Iterable[GapRequirement]) -> dict[str, int]:
    """Count requirements per canonical application status."""
    counts = {status: 0 for status in GAP_STATUSES}
    for requirement in requirements:
        status = canonical_status(requirement.application)
        if status:
            counts[status] += 1
    return counts


def scenario_severity(data: AnalysisData, strategy: Strategy) -> int:
    """Worst impact among the feared events a strategic scenario targets."""
    impacts = {event.id: event.impact for event in data.events}
    return max((impacts[eid] for eid in strategy.eventIds if eid in impacts), default=0)


def all_risk_rollups(data: AnalysisData) -> dict[str, RiskRollup]:
    """Max likelihood/severity per risk name across operational scenarios.

    A risk entry without its own levels inherits those of its scenario.
    """
    rollups: dict[str, RiskRollup] = {}
    for scenario in data.so:
        for risk in scenario.risks:
            if not risk.name:
                continue
            v = risk.vraisemblance or scenario.vraisemblance or 1
            g = risk.gravite or scenario.gravite or 1
            current = rollups.get(risk.name)
            if current:
                v = max(v, current.vraisemblance)
                g = max(g, current.gravite)
            rollups[risk.name] = RiskRollup(name=risk.name, vraisemblance=v, gravite=g)
    return rollups


def risk_residual_rollup(data: AnalysisData, risk_name: str) -> RiskRollup:
    """Rollup of one risk name, defaulting to level 1 when it is unknown."""
    return all_risk_rollups(data).get(
        risk_name, RiskRollup(name=risk_name, vraisemblance=1, gravite=1)
    )
