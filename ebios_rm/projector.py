"""View-model projections of an analysis.

Every function here is a pure projection: it reads a snapshot of the
analysis data and returns frozen dataclasses and tuples. Renderers (the
diagram generator, the HTML report, the CLI tables) only ever consume these
structures.
"""

import math
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from .metrics import (
    GAP_STATUSES, LEVEL_COLORS, NEUTRAL_COLOR, all_risk_rollups, all_support_stats,
    gap_compliance_counts, impact_color, level_color, mission_impacts, pertinence,
    scenario_severity, ssi_color, stakeholder_metrics,
)
from .resolver import (
    Unresolved, reference_label, resolve_event, resolve_mission, resolve_requirement,
    resolve_stakeholder, resolve_support,
)
from .schemas import (
    ACTION_COLLECTIONS, COLLECTIONS, KILL_CHAIN_STAGES, Analysis, AnalysisData, GapRequirement,
)


TRIANGLE_SIZES = {1: 10, 2: 14, 3: 18, 4: 22}
EDGE_COLOR = '#888888'

DONUT_COLORS = {
    'Appliqué': '#2a9d8f',
    'Partiellement appliqué': '#e9c46a',
    'Non appliqué': '#e63946',
    'Non applicable': '#9aa0a6',
}
NO_REQUIREMENT_MESSAGE = 'Aucune exigence'

SOURCE_PLACEHOLDER = 'Source'
OBJECTIVE_PLACEHOLDER = 'Objectif'

PLAN_PREFIXES = {
    'gap': 'GAP: ',
    'supports': 'Support: ',
    'parties': 'Partie: ',
    'risques': 'Risque: ',
}

STAGE_LABELS = {
    'connaitre': 'Connaître',
    'rester': 'Rester',
    'trouver': 'Trouver',
    'exploiter': 'Exploiter',
}

RADAR_LABELS = ('Exposition', 'Niveau SSI', 'Indice')
UNSPECIFIED_GRAVITY = 'Non précisé'


# ----- missions and supports network

@dataclass(frozen=True)
class MissionNode:
    id: str
    name: str
    description: str
    impact: int
    color: str
    size: int
    x: float
    y: float


@dataclass(frozen=True)
class SupportNode:
    name: str
    degree: int
    max_impact: int
    color: str
    radius: int
    x: float
    y: float


@dataclass(frozen=True)
class NetworkEdge:
    source: str
    target: str
    color: str = EDGE_COLOR
    style: str = 'solid'
    label: str = ''


@dataclass(frozen=True)
class MissionSupportNetwork:
    """Missions on the left, the supports they rely on to the right."""
    width: float
    height: float
    missions: tuple[MissionNode, ...]
    supports: tuple[SupportNode, ...]
    edges: tuple[NetworkEdge, ...]


def triangle_size(impact: int) -> int:
    return TRIANGLE_SIZES.get(impact, 10)


def circle_radius(degree: int) -> int:
    return min(32, 10 + 6 * degree)


def _column_y(index: int, count: int, height: float) -> float:
    return (index + 1) * height / (count + 1)


def mission_support_network(data: AnalysisData, width: float = 600, height: float = 600) -> MissionSupportNetwork:
    impacts = mission_impacts(data)
    stats = all_support_stats(data)

    mission_x = max(80, width * 0.2)
    support_x = min(width - 80, width * 0.8)

    missions = []
    for index, mission in enumerate(data.missions):
        impact = impacts.get(mission.id, 0)
        missions.append(MissionNode(
            id=mission.id,
            name=mission.denom or 'Valeur métier',
            description=mission.description,
            impact=impact,
            color=impact_color(impact),
            size=triangle_size(impact),
            x=mission_x,
            y=_column_y(index, len(data.missions), height),
        ))

    supports = [
        SupportNode(
            name=stat.name,
            degree=stat.degree,
            max_impact=stat.max_impact,
            color=impact_color(stat.max_impact),
            radius=circle_radius(stat.degree),
            x=support_x,
            y=_column_y(index, len(stats), height),
        )
        for index, stat in enumerate(stats.values())
    ]

    edges = []
    for mission in data.missions:
        for support in mission.supports:
            name = support.name.strip()
            if name:
                edges.append(NetworkEdge(source=mission.id, target=name))

    return MissionSupportNetwork(width, height, tuple(missions), tuple(supports), tuple(edges))


# ----- GAP compliance donut

@dataclass(frozen=True)
class DonutSlice:
    status: str
    count: int
    percent: int
    start_angle: float
    end_angle: float
    color: str


@dataclass(frozen=True)
class ComplianceDonut:
    total: int
    slices: tuple[DonutSlice, ...]
    has_data: bool
    message: str = ''


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compliance_donut(requirements: list[GapRequirement]) -> ComplianceDonut:
    """Share of requirements per application status.

    Requirements with an unrecognised status are left out of the total.
    """
    counts = gap_compliance_counts(requirements)
    total = sum(counts.values())
    if not total:
        return ComplianceDonut(total=0, slices=(), has_data=False, message=NO_REQUIREMENT_MESSAGE)

    slices = []
    offset = 0.0
    for status in GAP_STATUSES:
        count = counts[status]
        angle = count / total * 360
        slices.append(DonutSlice(
            status=status,
            count=count,
            percent=_round_half_up(count / total * 100),
            start_angle=offset,
            end_angle=offset + angle,
            color=DONUT_COLORS[status],
        ))
        offset += angle
    return ComplianceDonut(total=total, slices=tuple(slices), has_data=True)


# ----- risk sources and objectives network

@dataclass(frozen=True)
class SourceNode:
    name: str
    x: float
    y: float


@dataclass(frozen=True)
class ObjectiveNode:
    name: str
    priority: int
    color: str
    x: float
    y: float


@dataclass(frozen=True)
class SrovEdge:
    couple_id: str
    source: str
    target: str
    motivation: int
    ressources: int
    pertinence: int
    bucket: int
    color: str
    retenue: bool
    style: str
    label: str
    exclusion_label: str


@dataclass(frozen=True)
class SrovNetwork:
    width: float
    height: float
    sources: tuple[SourceNode, ...]
    objectives: tuple[ObjectiveNode, ...]
    edges: tuple[SrovEdge, ...]

    @property
    def is_empty(self) -> bool:
        return not self.sources and not self.objectives


def _unique(names) -> list[str]:
    seen = []
    for name in names:
        if name not in seen:
            seen.append(name)
    return seen


def exclusion_label(justification: str) -> str:
    justification = (justification or '').strip()
    return f'EXCLU: {justification}' if justification else 'EXCLU'


def srov_network(data: AnalysisData, width: float = 600, height: float = 400) -> SrovNetwork:
    source_names = _unique((c.source.strip() or SOURCE_PLACEHOLDER) for c in data.srov)
    objective_names = _unique((c.objectif.strip() or OBJECTIVE_PLACEHOLDER) for c in data.srov)

    priorities: dict[str, int] = {}
    edges = []
    for couple in data.srov:
        source = couple.source.strip() or SOURCE_PLACEHOLDER
        objective = couple.objectif.strip() or OBJECTIVE_PLACEHOLDER
        priorities[objective] = max(priorities.get(objective, 0), couple.priorite)
        product, bucket = pertinence(couple.motivation, couple.ressources)
        edges.append(SrovEdge(
            couple_id=couple.id,
            source=source,
            target=objective,
            motivation=couple.motivation,
            ressources=couple.ressources,
            pertinence=product,
            bucket=bucket,
            color=level_color(bucket),
            retenue=couple.retenue,
            style='solid' if couple.retenue else 'dashed',
            label=f'M:{couple.motivation} R:{couple.ressources} P={product} (niv {bucket})',
            exclusion_label='' if couple.retenue else exclusion_label(couple.justification),
        ))

    source_x = max(60, width * 0.25)
    objective_x = min(width - 60, width * 0.75)
    sources = tuple(
        SourceNode(name, source_x, _column_y(i, len(source_names), height))
        for i, name in enumerate(source_names)
    )
    objectives = tuple(
        ObjectiveNode(
            name=name,
            priority=priorities.get(name, 1),
            color=level_color(priorities.get(name, 1)),
            x=objective_x,
            y=_column_y(i, len(objective_names), height),
        )
        for i, name in enumerate(objective_names)
    )
    return SrovNetwork(width, height, sources, objectives, tuple(edges))


# ----- action plan

@dataclass(frozen=True)
class PlanRow:
    category: str
    name: str
    source: str
    description: str
    responsable: str
    start: str
    end: str


@dataclass(frozen=True)
class TimelineItem:
    row: PlanRow
    start: date
    end: date
    offset: float
    width: float


@dataclass(frozen=True)
class ActionPlan:
    rows: tuple[PlanRow, ...]
    timeline: tuple[TimelineItem, ...]
    start: Optional[date] = None
    end: Optional[date] = None
    span_days: int = 0


def parse_iso_date(value: str) -> Optional[date]:
    try:
        return date.fromisoformat((value or '').strip())
    except ValueError:
        return None


def _gap_source_label(data: AnalysisData, key: str) -> str:
    requirement = resolve_requirement(data, key)
    if isinstance(requirement, Unresolved):
        return requirement.label
    return requirement.titre or requirement.domaine or 'Exigence'


def _party_source_label(data: AnalysisData, key: str) -> str:
    return reference_label(resolve_stakeholder(data, key), 'nom', 'Partie')


def _plan_sources(data: AnalysisData):
    for row in data.actionsGap:
        yield 'gap', _gap_source_label(data, row.sourceId), row
    for row in data.actionsSupports:
        yield 'supports', reference_label(resolve_support(data, row.supportName), 'name', 'Support'), row
    for row in data.actionsParties:
        yield 'parties', _party_source_label(data, row.ppId), row
    for row in data.actionsRisques:
        yield 'risques', row.riskName, row


def action_plan(data: AnalysisData) -> ActionPlan:
    """Flatten the four action families and place dated actions on one axis."""
    rows = tuple(
        PlanRow(
            category=category,
            name=action.name,
            source=PLAN_PREFIXES[category] + label,
            description=action.description,
            responsable=action.responsable,
            start=action.start,
            end=action.end,
        )
        for category, label, row in _plan_sources(data)
        for action in row.actions
    )

    dated = []
    for row in rows:
        start, end = parse_iso_date(row.start), parse_iso_date(row.end)
        if start and end:
            dated.append((row, start, end))
    if not dated:
        return ActionPlan(rows=rows, timeline=())

    axis_start = min(start for _, start, _ in dated)
    axis_end = max(end for _, _, end in dated)
    span = (axis_end - axis_start).days

    timeline = []
    for row, start, end in dated:
        if span:
            offset = (start - axis_start).days / span
            width = max(0.0, (end - start).days / span)
        else:
            offset, width = 0.0, 1.0
        timeline.append(TimelineItem(row, start, end, offset, width))
    return ActionPlan(rows, tuple(timeline), axis_start, axis_end, span)


# ----- tables

@dataclass(frozen=True)
class MissionRow:
    id: str
    denom: str
    nature: str
    responsable: str
    impact: int
    color: str
    supports: tuple[str, ...]


@dataclass(frozen=True)
class EventRow:
    id: str
    mission: str
    evenement: str
    impact: int
    color: str
    impact_description: str


@dataclass(frozen=True)
class SrovRow:
    id: str
    source: str
    objectif: str
    motivation: int
    ressources: int
    pertinence: int
    bucket: int
    color: str
    priorite: int
    retenue: bool
    justification: str


@dataclass(frozen=True)
class StakeholderRow:
    id: str
    nom: str
    categorie: str
    supports: tuple[str, ...]
    values: tuple[str, ...]
    exposition: int
    niveau_ssi: int
    indice: float
    exposition_color: str
    niveau_color: str
    indice_color: str


@dataclass(frozen=True)
class StrategyRow:
    id: str
    source: str
    objectif: str
    chemins: tuple[str, ...]
    intermediaires: tuple[str, ...]
    events: tuple[str, ...]
    severity: int
    color: str


@dataclass(frozen=True)
class ScenarioRow:
    id: str
    event: str
    path: str
    stages: tuple[tuple[str, tuple[str, ...]], ...]
    risks: tuple[str, ...]
    vraisemblance: int
    gravite: int
    vraisemblance_color: str
    gravite_color: str


@dataclass(frozen=True)
class ActionTableRow:
    key: str
    label: str
    detail: str
    actions: tuple = ()
    resolved: bool = True


@dataclass(frozen=True)
class RiskActionTableRow:
    key: str
    label: str
    vraisemblance: int
    gravite: int
    residual_v: int
    residual_g: int
    manual: bool
    actions: tuple = ()


def mission_table(data: AnalysisData) -> tuple[MissionRow, ...]:
    impacts = mission_impacts(data)
    return tuple(
        MissionRow(
            id=m.id,
            denom=m.denom,
            nature=m.nature,
            responsable=m.responsable,
            impact=impacts.get(m.id, 0),
            color=impact_color(impacts.get(m.id, 0)),
            supports=tuple(s.name for s in m.supports),
        )
        for m in data.missions
    )


def event_table(data: AnalysisData) -> tuple[EventRow, ...]:
    return tuple(
        EventRow(
            id=e.id,
            mission=reference_label(resolve_mission(data, e.missionId), 'denom', 'Valeur métier'),
            evenement=e.evenement,
            impact=e.impact,
            color=level_color(e.impact),
            impact_description=e.impactDescription,
        )
        for e in data.events
    )


def srov_table(data: AnalysisData) -> tuple[SrovRow, ...]:
    rows = []
    for c in data.srov:
        product, bucket = pertinence(c.motivation, c.ressources)
        rows.append(SrovRow(
            id=c.id, source=c.source, objectif=c.objectif,
            motivation=c.motivation, ressources=c.ressources,
            pertinence=product, bucket=bucket, color=level_color(bucket),
            priorite=c.priorite, retenue=c.retenue, justification=c.justification,
        ))
    return tuple(rows)


def stakeholder_table(data: AnalysisData) -> tuple[StakeholderRow, ...]:
    rows = []
    for pp in data.ppc:
        m = stakeholder_metrics(pp)
        rows.append(StakeholderRow(
            id=pp.id,
            nom=pp.nom,
            categorie=pp.categorie,
            supports=tuple(reference_label(resolve_support(data, n), 'name', n) for n in pp.supportIds),
            values=tuple(
                reference_label(resolve_mission(data, v), 'denom', 'Valeur métier') for v in pp.valueIds
            ),
            exposition=m.exposition,
            niveau_ssi=m.niveau_ssi,
            indice=m.indice,
            exposition_color=level_color(m.exposition_level),
            niveau_color=ssi_color(m.niveau_level),
            indice_color=level_color(m.indice_level),
        ))
    return tuple(rows)


def strategy_table(data: AnalysisData) -> tuple[StrategyRow, ...]:
    rows = []
    for s in data.strategies:
        severity = scenario_severity(data, s)
        rows.append(StrategyRow(
            id=s.id,
            source=s.source,
            objectif=s.objectif,
            chemins=tuple(s.chemins),
            intermediaires=tuple(
                reference_label(resolve_stakeholder(data, i), 'nom', 'Partie') for i in s.intermediaireIds
            ),
            events=tuple(
                reference_label(resolve_event(data, e), 'evenement', 'Évènement') for e in s.eventIds
            ),
            severity=severity,
            color=LEVEL_COLORS.get(severity, NEUTRAL_COLOR),
        ))
    return tuple(rows)


def scenario_table(data: AnalysisData) -> tuple[ScenarioRow, ...]:
    return tuple(
        ScenarioRow(
            id=so.id,
            event=reference_label(resolve_event(data, so.eventId), 'evenement', 'Évènement'),
            path=so.path,
            stages=tuple((STAGE_LABELS[stage], tuple(getattr(so, stage))) for stage in KILL_CHAIN_STAGES),
            risks=tuple(r.name for r in so.risks),
            vraisemblance=so.vraisemblance,
            gravite=so.gravite,
            vraisemblance_color=level_color(so.vraisemblance),
            gravite_color=level_color(so.gravite),
        )
        for so in data.so
    )


def gap_action_table(data: AnalysisData) -> tuple[ActionTableRow, ...]:
    rows = []
    for row in data.actionsGap:
        requirement = resolve_requirement(data, row.sourceId)
        resolved = not isinstance(requirement, Unresolved)
        rows.append(ActionTableRow(
            key=row.sourceId,
            label=_gap_source_label(data, row.sourceId),
            detail=requirement.application if resolved else '',
            actions=tuple(row.actions),
            resolved=resolved,
        ))
    return tuple(rows)


def support_action_table(data: AnalysisData) -> tuple[ActionTableRow, ...]:
    rows = []
    for row in data.actionsSupports:
        support = resolve_support(data, row.supportName)
        resolved = not isinstance(support, Unresolved)
        rows.append(ActionTableRow(
            key=row.supportName,
            label=row.supportName if resolved else support.label,
            detail=support.responsable if resolved else '',
            actions=tuple(row.actions),
            resolved=resolved,
        ))
    return tuple(rows)


def party_action_table(data: AnalysisData) -> tuple[ActionTableRow, ...]:
    rows = []
    for row in data.actionsParties:
        party = resolve_stakeholder(data, row.ppId)
        resolved = not isinstance(party, Unresolved)
        rows.append(ActionTableRow(
            key=row.ppId,
            label=_party_source_label(data, row.ppId),
            detail=party.categorie if resolved else '',
            actions=tuple(row.actions),
            resolved=resolved,
        ))
    return tuple(rows)


def risk_action_table(data: AnalysisData) -> tuple[RiskActionTableRow, ...]:
    """Risk rows with their current rollup; unknown risks show their residual levels."""
    rollups = all_risk_rollups(data)
    rows = []
    for row in data.actionsRisques:
        rollup = rollups.get(row.riskName)
        rows.append(RiskActionTableRow(
            key=row.riskName,
            label=row.riskName,
            vraisemblance=rollup.vraisemblance if rollup else row.residualV,
            gravite=rollup.gravite if rollup else row.residualG,
            residual_v=row.residualV,
            residual_g=row.residualG,
            manual=row.manual,
            actions=tuple(row.actions),
        ))
    return tuple(rows)


# ----- charts

@dataclass(frozen=True)
class RadarChart:
    labels: tuple[str, ...]
    values: tuple[float, ...]
    has_data: bool


@dataclass(frozen=True)
class BarChart:
    labels: tuple[str, ...]
    values: tuple[int, ...]
    colors: tuple[str, ...] = ()

    @property
    def has_data(self) -> bool:
        return any(self.values)


def stakeholder_radar(data: AnalysisData) -> RadarChart:
    """Average exposition, SSI level and index over the stakeholders."""
    metrics = [stakeholder_metrics(pp) for pp in data.ppc]
    if not metrics:
        return RadarChart(RADAR_LABELS, (0.0, 0.0, 0.0), has_data=False)
    n = len(metrics)
    return RadarChart(
        RADAR_LABELS,
        (
            sum(m.exposition for m in metrics) / n,
            sum(m.niveau_ssi for m in metrics) / n,
            sum(m.indice for m in metrics) / n,
        ),
        has_data=True,
    )


def scenario_likelihood_histogram(data: AnalysisData) -> BarChart:
    counts = {level: 0 for level in (1, 2, 3, 4)}
    for scenario in data.so:
        counts[scenario.vraisemblance] += 1
    return BarChart(
        labels=tuple(str(level) for level in counts),
        values=tuple(counts.values()),
        colors=tuple(level_color(level) for level in counts),
    )


def risk_gravity_counts(data: AnalysisData) -> BarChart:
    counts: dict[str, int] = {}
    for risk in data.risques:
        key = risk.gravite.strip() or UNSPECIFIED_GRAVITY
        counts[key] = counts.get(key, 0) + 1
    return BarChart(labels=tuple(counts), values=tuple(counts.values()))


# ----- summary

@dataclass(frozen=True)
class AnalysisSummary:
    id: str
    title: str
    counts: tuple[tuple[str, int], ...] = field(default_factory=tuple)

    def count(self, collection: str) -> int:
        return dict(self.counts).get(collection, 0)


def analysis_summary(analysis: Analysis) -> AnalysisSummary:
    """Entity counts per collection, supports counted by distinct name."""
    data = analysis.data
    counts = [(name, len(getattr(data, name))) for name in COLLECTIONS]
    counts.insert(1, ('supports', len(all_support_stats(data))))
    counts.extend(
        (name, sum(len(row.actions) for row in getattr(data, name)))
        for name in ACTION_COLLECTIONS
    )
    return AnalysisSummary(analysis.id, analysis.title, tuple(counts))
