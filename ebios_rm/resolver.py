"""Resolution of weak references between workshop entities.

References are stored as ids (or support names) and may dangle after a
deletion. Resolvers never raise: a missing target comes back as an
``Unresolved`` placeholder carrying the raw key.
"""

from dataclasses import dataclass
from operator import attrgetter
from typing import Callable, Iterable, Optional, Protocol, Sequence, TypeVar, Union

from .metrics import is_applied
from .schemas import (
    AnalysisData, Event, GapRequirement, Mission, OperationalScenario,
    SrovCouple, Stakeholder, Support, Technique,
)


T = TypeVar('T')

KIND_LABELS = {
    'support': 'Support',
    'mission': 'Valeur métier',
    'event': 'Évènement',
    'stakeholder': 'Partie prenante',
    'requirement': 'Exigence',
    'srov': 'Couple SR/OV',
    'scenario': 'Scénario',
}

IMPORT_KINDS = ('gap', 'supports', 'parties', 'risques')
IMPORT_TITLES = {
    'gap': 'Importer des exigences',
    'supports': 'Importer des supports',
    'parties': 'Importer des parties',
    'risques': 'Importer des risques',
}


@dataclass(frozen=True)
class Unresolved:
    """Placeholder for a reference whose target no longer exists."""
    kind: str
    key: str

    @property
    def label(self) -> str:
        kind = KIND_LABELS.get(self.kind, self.kind)
        if not self.key:
            return f'{kind} non renseigné'
        return f'{kind} supprimé ({self.key})'


@dataclass(frozen=True)
class SelectionCandidate:
    """One entry offered by a selection dialog."""
    id: str
    label: str
    description: str = ''
    extra: str = ''


class SelectionDialog(Protocol):
    """Host-UI contract: show candidates, return the chosen ids."""

    def choose(self, title: str, candidates: Sequence[SelectionCandidate]) -> list[str]:
        ...


def is_resolved(value) -> bool:
    return not isinstance(value, Unresolved)


def _resolve_by_id(items: Iterable[T], key: str, kind: str) -> Union[T, Unresolved]:
    if key:
        for item in items:
            if item.id == key:
                return item
    return Unresolved(kind, key)


def resolve_mission(data: AnalysisData, mission_id: str) -> Union[Mission, Unresolved]:
    return _resolve_by_id(data.missions, mission_id, 'mission')


def resolve_event(data: AnalysisData, event_id: str) -> Union[Event, Unresolved]:
    return _resolve_by_id(data.events, event_id, 'event')


def resolve_stakeholder(data: AnalysisData, stakeholder_id: str) -> Union[Stakeholder, Unresolved]:
    return _resolve_by_id(data.ppc, stakeholder_id, 'stakeholder')


def resolve_requirement(data: AnalysisData, requirement_id: str) -> Union[GapRequirement, Unresolved]:
    return _resolve_by_id(data.gap, requirement_id, 'requirement')


def resolve_srov(data: AnalysisData, couple_id: str) -> Union[SrovCouple, Unresolved]:
    return _resolve_by_id(data.srov, couple_id, 'srov')


def resolve_scenario(data: AnalysisData, scenario_id: str) -> Union[OperationalScenario, Unresolved]:
    return _resolve_by_id(data.so, scenario_id, 'scenario')


def unique_supports_across_missions(data: AnalysisData) -> list[Support]:
    """Every distinct support name; the first description/owner seen wins."""
    seen: dict[str, Support] = {}
    for mission in data.missions:
        for support in mission.supports:
            name = support.name.strip()
            if name and name not in seen:
                seen[name] = Support(
                    name=name,
                    description=support.description,
                    responsable=support.responsable,
                )
    return list(seen.values())


def resolve_support(data: AnalysisData, name: str) -> Union[Support, Unresolved]:
    wanted = (name or '').strip()
    for support in unique_supports_across_missions(data):
        if support.name == wanted:
            return support
    return Unresolved('support', name or '')


def reference_label(value, attr: str, fallback: str) -> str:
    """Display label of a resolved entity, or the placeholder label."""
    if isinstance(value, Unresolved):
        return value.label
    return getattr(value, attr) or fallback


def available_for_selection(
    collection: Iterable[T],
    already_chosen: Iterable[str],
    key: Union[str, Callable[[T], str]] = 'id',
) -> list[T]:
    """Items of a collection not yet chosen, in collection order."""
    get_key = attrgetter(key) if isinstance(key, str) else key
    chosen = set(already_chosen)
    return [item for item in collection if get_key(item) not in chosen]


def add_to_association(ids: Sequence[str], value: str) -> list[str]:
    """Append a value unless already present; order is preserved."""
    if value in ids:
        return list(ids)
    return [*ids, value]


def remove_from_association(ids: Sequence[str], value: str) -> list[str]:
    return [v for v in ids if v != value]


def import_candidates(
    data: AnalysisData,
    kind: str,
    techniques: Optional[Sequence[Technique]] = None,
) -> list[SelectionCandidate]:
    """Build the candidate list of an action-import dialog."""
    if kind == 'gap':
        candidates = []
        for req in data.gap:
            if is_applied(req.application):
                continue
            label = ' – '.join(part for part in (req.domaine, req.titre) if part)
            candidates.append(SelectionCandidate(req.id, label, req.description, req.application))
        return candidates
    if kind == 'supports':
        return [
            SelectionCandidate(s.name, s.name, s.description, s.responsable)
            for s in unique_supports_across_missions(data)
        ]
    if kind == 'parties':
        return [SelectionCandidate(pp.id, pp.nom or 'Partie', pp.categorie) for pp in data.ppc]
    if kind == 'risques':
        descriptions = {}
        for technique in techniques or ():
            for name in (technique.id, technique.title, technique.risk_name):
                descriptions.setdefault(name, technique.description)
        names: list[str] = []
        for scenario in data.so:
            for risk in scenario.risks:
                if risk.name and risk.name not in names:
                    names.append(risk.name)
        return [SelectionCandidate(n, n, descriptions.get(n, '')) for n in names]
    raise ValueError(f'Unknown import kind: {kind}')


def filter_candidates(candidates: Sequence[SelectionCandidate], term: str) -> list[SelectionCandidate]:
    """Case-insensitive substring search over label, description and extra."""
    term = (term or '').strip().lower()
    if not term:
        return list(candidates)
    return [
        c for c in candidates
        if term in f'{c.label} {c.description} {c.extra}'.lower()
    ]
