"""In-memory entity store of the editor.

The store owns the ordered list of analyses and the current selection. Every
mutation follows the same sequence: normalize the affected entity, apply the
change, persist the full list.
"""

import logging
from typing import Any, Optional, Sequence

from .parser import ImportResult
from .persistence import PersistenceError, PersistenceGateway
from .metrics import all_risk_rollups
from .resolver import Unresolved, add_to_association, remove_from_association, resolve_support
from .schemas import (
    ACTION_COLLECTIONS, COLLECTIONS, KILL_CHAIN_STAGES, Action, ActionRow,
    Analysis, AnalysisData, EbiosModel, GapRequirement, Mission, RiskActionRow,
    ScenarioRisk, Support,
)


logger = logging.getLogger(__name__)

DEFAULT_TITLE = 'Nouvelle analyse'

NEW_ITEM_DEFAULTS: dict[str, dict[str, Any]] = {
    'missions': {'nature': 'information'},
    'gap': {'application': 'Appliqué'},
    'srov': {'retenue': True},
    'ppc': {'categorie': 'prestataire'},
}

IMPORT_COLLECTIONS = {
    'gap': 'actionsGap',
    'supports': 'actionsSupports',
    'parties': 'actionsParties',
    'risques': 'actionsRisques',
}


class EntityNotFoundError(Exception):
    """Raised when an id or name does not match any entity."""
    pass


class NoAnalysisSelectedError(Exception):
    """Raised when an operation needs a current analysis and none is selected."""
    pass


class EntityStore:
    """Application state: the analyses, the selected one and their entities."""

    def __init__(self, gateway: PersistenceGateway):
        self.gateway = gateway
        self._analyses: list[Analysis] = gateway.load_all()
        self._selected_id: Optional[str] = None
        saved_id = gateway.get_selected_id()
        if any(a.id == saved_id for a in self._analyses):
            self._selected_id = saved_id
        elif self._analyses:
            self._selected_id = self._analyses[0].id

    # ----- persistence

    def save(self) -> None:
        """Persist the full analysis list; failures propagate to the caller."""
        self.gateway.save_all(self._analyses)

    def persist_selection(self) -> None:
        """Best-effort write of the selected analysis id."""
        if not self._selected_id:
            return
        try:
            self.gateway.set_selected_id(self._selected_id)
        except PersistenceError as e:
            logger.warning('Cannot persist selected analysis: %s', e)

    # ----- analyses

    @property
    def analyses(self) -> tuple[Analysis, ...]:
        return tuple(self._analyses)

    @property
    def selected_id(self) -> Optional[str]:
        return self._selected_id

    def get_analysis(self, analysis_id: str) -> Analysis:
        for analysis in self._analyses:
            if analysis.id == analysis_id:
                return analysis
        raise EntityNotFoundError(f"Analysis not found: {analysis_id}")

    def current_analysis(self) -> Optional[Analysis]:
        if self._selected_id is None:
            return None
        for analysis in self._analyses:
            if analysis.id == self._selected_id:
                return analysis
        return None

    def require_current(self) -> Analysis:
        analysis = self.current_analysis()
        if analysis is None:
            raise NoAnalysisSelectedError('No analysis selected')
        return analysis

    def select_analysis(self, analysis_id: str) -> Analysis:
        analysis = self.get_analysis(analysis_id)
        self._selected_id = analysis.id
        self.persist_selection()
        return analysis

    def create_analysis(self, title: Optional[str] = None) -> Analysis:
        analysis = Analysis(title=DEFAULT_TITLE if title is None else title)
        self._analyses.append(analysis)
        self._selected_id = analysis.id
        self.save()
        self.persist_selection()
        return analysis

    def rename_analysis(self, analysis_id: str, title: str) -> Analysis:
        analysis = self.get_analysis(analysis_id)
        analysis.title = title
        self.save()
        return analysis

    def delete_analysis(self, analysis_id: str) -> None:
        analysis = self.get_analysis(analysis_id)
        self._analyses = [a for a in self._analyses if a.id != analysis.id]
        if self._selected_id == analysis.id:
            self._selected_id = self._analyses[0].id if self._analyses else None
        self.save()
        self.persist_selection()

    def apply_import(self, result: ImportResult) -> Optional[Analysis]:
        """Apply a fully parsed import document and select its last analysis.

        An empty list replaces the store with nothing and clears the selection.
        """
        if result.replace:
            self._analyses = list(result.analyses)
        else:
            self._analyses = [*self._analyses, *result.analyses]
        self._selected_id = self._analyses[-1].id if self._analyses else None
        self.save()
        self.persist_selection()
        return self.current_analysis()

    # ----- entity collections

    def _data(self) -> AnalysisData:
        return self.require_current().data

    def _items(self, collection: str) -> list:
        if collection not in COLLECTIONS and collection not in ACTION_COLLECTIONS:
            raise KeyError(f'Unknown collection: {collection}')
        return getattr(self._data(), collection)

    def _mission(self, mission_id: str) -> Mission:
        for mission in self._data().missions:
            if mission.id == mission_id:
                return mission
        raise EntityNotFoundError(f"Mission not found: {mission_id}")

    def _position(self, collection: str, item_id: str) -> int:
        items = self._items(collection)
        for index, item in enumerate(items):
            key = item.ref if isinstance(item, ActionRow) else item.id
            if key == item_id:
                return index
        raise EntityNotFoundError(f"No entry '{item_id}' in {collection}")

    def _new_item_defaults(self, collection: str) -> dict[str, Any]:
        defaults = dict(NEW_ITEM_DEFAULTS.get(collection, {}))
        if collection == 'risques':
            data = self._data()
            defaults['missionId'] = data.missions[0].id if data.missions else ''
            defaults['eventId'] = data.events[0].id if data.events else ''
            defaults['scenarioId'] = data.so[0].id if data.so else ''
        return defaults

    def get(self, collection: str, item_id: str) -> EbiosModel:
        return self._items(collection)[self._position(collection, item_id)]

    def set_mission_description(self, text: str) -> None:
        self._data().missionDescription = text or ''
        self.save()

    def add(self, collection: str, item: Optional[dict] = None, parent_id: Optional[str] = None) -> EbiosModel:
        """Append a normalized entity to a collection of the current analysis.

        Supports are embedded in missions: ``parent_id`` names the mission.
        """
        if collection == 'supports':
            return self.add_support(parent_id, item)
        model = COLLECTIONS.get(collection) or ACTION_COLLECTIONS.get(collection)
        if model is None:
            raise KeyError(f'Unknown collection: {collection}')
        entity = model.model_validate({**self._new_item_defaults(collection), **(item or {})})
        data = self._data()
        setattr(data, collection, [*getattr(data, collection), entity])
        self.save()
        return entity

    def update(self, collection: str, item_id: str, changes: dict, parent_id: Optional[str] = None) -> EbiosModel:
        """Merge changes into an entity and renormalize it; ids never change."""
        if collection == 'supports':
            return self.update_support(parent_id, item_id, changes)
        items = self._items(collection)
        position = self._position(collection, item_id)
        current = items[position]
        changes = {k: v for k, v in changes.items() if k != 'id'}
        entity = type(current).model_validate({**current.model_dump(), **changes})
        data = self._data()
        setattr(data, collection, [*items[:position], entity, *items[position + 1:]])
        self.save()
        return entity

    def remove(self, collection: str, item_id: str, parent_id: Optional[str] = None) -> None:
        """Delete an entity by id; removing a mission also removes its events."""
        if collection == 'supports':
            return self.remove_support(parent_id, item_id)
        self._position(collection, item_id)
        data = self._data()
        if collection == 'missions':
            missions = [m for m in data.missions if m.id != item_id]
            events = [e for e in data.events if e.missionId != item_id]
            data.missions, data.events = missions, events
        else:
            items = self._items(collection)
            key = (lambda i: i.ref) if collection in ACTION_COLLECTIONS else (lambda i: i.id)
            setattr(data, collection, [i for i in items if key(i) != item_id])
        self.save()

    # ----- multi-valued associations

    def _list_field(self, collection: str, item_id: str, field: str) -> tuple[EbiosModel, list[str]]:
        entity = self.get(collection, item_id)
        if field not in type(entity).LIST_FIELDS:
            raise KeyError(f'{collection}.{field} is not an association')
        return entity, getattr(entity, field)

    def link(self, collection: str, item_id: str, field: str, value: str) -> EbiosModel:
        _, values = self._list_field(collection, item_id, field)
        return self.update(collection, item_id, {field: add_to_association(values, value)})

    def unlink(self, collection: str, item_id: str, field: str, value: str) -> EbiosModel:
        _, values = self._list_field(collection, item_id, field)
        return self.update(collection, item_id, {field: remove_from_association(values, value)})

    # ----- supports embedded in missions

    def add_support(self, mission_id: str, support: Optional[dict] = None) -> Support:
        mission = self._mission(mission_id)
        entity = Support.model_validate(support or {})
        mission.supports = [*mission.supports, entity]
        self.save()
        return entity

    def add_existing_support(self, mission_id: str, name: str) -> Support:
        """Attach a copy of a support already used by another mission."""
        mission = self._mission(mission_id)
        existing = resolve_support(self._data(), name)
        if isinstance(existing, Unresolved):
            raise EntityNotFoundError(f"Support not found: {name}")
        if any(s.name.strip() == existing.name for s in mission.supports):
            return existing
        copy = existing.model_copy(deep=True)
        mission.supports = [*mission.supports, copy]
        self.save()
        return copy

    def update_support(self, mission_id: str, name: str, changes: dict) -> Support:
        mission = self._mission(mission_id)
        for index, support in enumerate(mission.supports):
            if support.name == name:
                entity = Support.model_validate({**support.model_dump(), **changes})
                mission.supports = [*mission.supports[:index], entity, *mission.supports[index + 1:]]
                self.save()
                return entity
        raise EntityNotFoundError(f"Support '{name}' not found on mission {mission_id}")

    def remove_support(self, mission_id: str, name: str) -> None:
        mission = self._mission(mission_id)
        remaining = [s for s in mission.supports if s.name != name]
        if len(remaining) == len(mission.supports):
            raise EntityNotFoundError(f"Support '{name}' not found on mission {mission_id}")
        mission.supports = remaining
        self.save()

    # ----- operational scenarios

    def add_stage_step(self, scenario_id: str, stage: str, step: str) -> EbiosModel:
        if stage not in KILL_CHAIN_STAGES:
            raise KeyError(f'Unknown kill chain stage: {stage}')
        scenario = self.get('so', scenario_id)
        return self.update('so', scenario_id, {stage: [*getattr(scenario, stage), step]})

    def remove_stage_step(self, scenario_id: str, stage: str, step: str) -> EbiosModel:
        if stage not in KILL_CHAIN_STAGES:
            raise KeyError(f'Unknown kill chain stage: {stage}')
        steps = list(getattr(self.get('so', scenario_id), stage))
        if step not in steps:
            raise EntityNotFoundError(f"Step '{step}' not found in {stage}")
        steps.remove(step)
        return self.update('so', scenario_id, {stage: steps})

    def add_scenario_risks(self, scenario_id: str, names: Sequence[str]) -> EbiosModel:
        """Attach named risks at the scenario's current likelihood and severity."""
        scenario = self.get('so', scenario_id)
        added = [
            ScenarioRisk(name=name.strip(), vraisemblance=scenario.vraisemblance, gravite=scenario.gravite)
            for name in names
            if name and name.strip()
        ]
        return self.update('so', scenario_id, {'risks': [*scenario.risks, *added]})

    def remove_scenario_risk(self, scenario_id: str, name: str) -> EbiosModel:
        scenario = self.get('so', scenario_id)
        return self.update('so', scenario_id, {'risks': [r for r in scenario.risks if r.name != name]})

    # ----- GAP requirements and action rows

    def import_gap_requirements(self, requirements: Sequence[GapRequirement]) -> list[GapRequirement]:
        data = self._data()
        data.gap = [*data.gap, *requirements]
        self.save()
        return list(requirements)

    def import_action_rows(self, kind: str, keys: Sequence[str]) -> list[ActionRow]:
        """Create an action row per selected key, skipping keys already present."""
        collection = IMPORT_COLLECTIONS.get(kind)
        if collection is None:
            raise KeyError(f'Unknown import kind: {kind}')
        data = self._data()
        rows = list(getattr(data, collection))
        present = {row.ref for row in rows}
        rollups = all_risk_rollups(data) if kind == 'risques' else {}
        model = ACTION_COLLECTIONS[collection]
        created = []
        for key in keys:
            if key in present:
                continue
            present.add(key)
            if kind == 'risques':
                rollup = rollups.get(key)
                row = RiskActionRow(
                    riskName=key,
                    residualV=rollup.vraisemblance if rollup else 1,
                    residualG=rollup.gravite if rollup else 1,
                )
            else:
                row = model.model_validate({model.REF_FIELD: key})
            rows.append(row)
            created.append(row)
        setattr(data, collection, rows)
        self.save()
        return created

    def _action_row(self, collection: str, row_key: str) -> ActionRow:
        if collection not in ACTION_COLLECTIONS:
            raise KeyError(f'Unknown action collection: {collection}')
        return self.get(collection, row_key)

    def add_action(self, collection: str, row_key: str, action: Optional[dict] = None) -> Action:
        row = self._action_row(collection, row_key)
        entity = Action.model_validate(action or {})
        row.actions = [*row.actions, entity]
        self.save()
        return entity

    def update_action(self, collection: str, row_key: str, position: int, changes: dict) -> Action:
        row = self._action_row(collection, row_key)
        if not 0 <= position < len(row.actions):
            raise EntityNotFoundError(f"No action #{position} for '{row_key}'")
        entity = Action.model_validate({**row.actions[position].model_dump(), **changes})
        row.actions = [*row.actions[:position], entity, *row.actions[position + 1:]]
        self.save()
        return entity

    def remove_action(self, collection: str, row_key: str, position: int) -> None:
        row = self._action_row(collection, row_key)
        if not 0 <= position < len(row.actions):
            raise EntityNotFoundError(f"No action #{position} for '{row_key}'")
        row.actions = [a for i, a in enumerate(row.actions) if i != position]
        self.save()
