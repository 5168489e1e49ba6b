"""Pydantic models for EBIOS RM analyses.

Every model coerces legacy document shapes in a single ``mode='before'``
validator, so stored documents, imports and store mutations all go through
the same normalization pass.
"""

import math
import re
import uuid
from typing import Any, ClassVar, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


NATURES = ('information', 'processus', 'fonction')
CATEGORIES = ('prestataire', 'partenaire', 'beneficiaire')
KILL_CHAIN_STAGES = ('connaitre', 'rester', 'trouver', 'exploiter')

_LEADING_INT = re.compile(r'\s*([+-]?\d+)')


def uid() -> str:
    """Generate an opaque entity identifier."""
    return 'id-' + uuid.uuid4().hex[:12]


def parse_int(value: Any) -> Optional[int]:
    """Read the leading integer of a value, or None when there is none."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else None


def clamp_level(value: Any, default: int = 1) -> int:
    """Coerce a scored field to the 1-4 scale, defaulting when unset or zero."""
    level = parse_int(value)
    if not level:
        return default
    return max(1, min(4, level))


def as_text(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, str):
        return value
    return str(value)


def as_text_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [as_text(v) for v in value if v is not None]


class EbiosModel(BaseModel):
    """Base model running the shared normalization pass.

    Subclasses list their fields by kind; ``_coerce_legacy`` handles the
    shapes that need more than a per-field coercion.
    """
    model_config = ConfigDict(extra='allow')

    TEXT_FIELDS: ClassVar[tuple[str, ...]] = ()
    LEVEL_FIELDS: ClassVar[tuple[str, ...]] = ()
    LIST_FIELDS: ClassVar[tuple[str, ...]] = ()
    HAS_ID: ClassVar[bool] = False

    @classmethod
    def _coerce_legacy(cls, data: dict) -> dict:
        return data

    @model_validator(mode='before')
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if isinstance(data, BaseModel):
            data = data.model_dump()
        if not isinstance(data, dict):
            return data
        data = cls._coerce_legacy(dict(data))
        if cls.HAS_ID:
            data['id'] = as_text(data.get('id')) or uid()
        for key in cls.TEXT_FIELDS:
            data[key] = as_text(data.get(key))
        for key in cls.LEVEL_FIELDS:
            data[key] = clamp_level(data.get(key))
        for key in cls.LIST_FIELDS:
            data[key] = as_text_list(data.get(key))
        return data


class Support(EbiosModel):
    """A supporting asset, owned by the mission that lists it."""
    TEXT_FIELDS = ('name', 'description', 'responsable')

    name: str = ''
    description: str = ''
    responsable: str = ''

    @classmethod
    def _coerce_legacy(cls, data: dict) -> dict:
        if not data.get('name') and data.get('denom'):
            data['name'] = data['denom']
        return data


class Mission(EbiosModel):
    """A business value (valeur metier) with its supporting assets."""
    TEXT_FIELDS = ('denom', 'nature', 'description', 'responsable')
    HAS_ID = True

    id: str = Field(default_factory=uid)
    denom: str = ''
    nature: str = 'information'
    description: str = ''
    responsable: str = ''
    supports: list[Support] = Field(default_factory=list)

    @classmethod
    def _coerce_legacy(cls, data: dict) -> dict:
        supports = data.get('supports')
        if isinstance(supports, list):
            data['supports'] = [
                {'name': s, 'description': '', 'responsable': ''} if isinstance(s, str) else s
                for s in supports
                if s is not None
            ]
        elif isinstance(supports, str) and supports.strip():
            data['supports'] = [
                {'name': part.strip(), 'description': '', 'responsable': ''}
                for part in supports.split(',')
                if part.strip()
            ]
        else:
            data['supports'] = []
        nature = as_text(data.get('nature')).strip().lower()
        data['nature'] = nature if nature in NATURES else 'information'
        return data


class Event(EbiosModel):
    """A feared event tied to a mission and rated by impact."""
    TEXT_FIELDS = ('missionId', 'evenement', 'impactDescription')
    LEVEL_FIELDS = ('impact',)
    HAS_ID = True

    id: str = Field(default_factory=uid)
    missionId: str = ''
    evenement: str = ''
    impactDescription: str = ''
    impact: int = 1


class GapRequirement(EbiosModel):
    """A compliance requirement assessed in the GAP analysis."""
    TEXT_FIELDS = ('domaine', 'titre', 'description', 'application', 'justification')
    HAS_ID = True

    id: str = Field(default_factory=uid)
    domaine: str = ''
    titre: str = ''
    description: str = ''
    application: str = ''
    justification: str = ''


class SrovCouple(EbiosModel):
    """A risk source / targeted objective pair."""
    TEXT_FIELDS = ('source', 'objectif', 'justification')
    LEVEL_FIELDS = ('motivation', 'ressources', 'priorite')
    HAS_ID = True

    id: str = Field(default_factory=uid)
    source: str = ''
    objectif: str = ''
    motivation: int = 1
    ressources: int = 1
    priorite: int = 1
    retenue: bool = True
    justification: str = ''

    @classmethod
    def _coerce_legacy(cls, data: dict) -> dict:
        if not isinstance(data.get('retenue'), bool):
            data['retenue'] = True
        return data


class Stakeholder(EbiosModel):
    """A third party scored in the stakeholder cartography."""
    TEXT_FIELDS = ('nom', 'categorie')
    LEVEL_FIELDS = ('dependance', 'penetration', 'maturite', 'confiance')
    LIST_FIELDS = ('supportIds', 'valueIds')
    HAS_ID = True

    id: str = Field(default_factory=uid)
    nom: str = ''
    categorie: str = 'prestataire'
    supportIds: list[str] = Field(default_factory=list)
    valueIds: list[str] = Field(default_factory=list)
    dependance: int = 1
    penetration: int = 1
    maturite: int = 1
    confiance: int = 1

    @classmethod
    def _coerce_legacy(cls, data: dict) -> dict:
        if not data.get('nom') and data.get('name'):
            data['nom'] = data['name']
        if not data.get('categorie'):
            data['categorie'] = 'prestataire'
        return data


class Strategy(EbiosModel):
    """A strategic scenario linking a source/objective to feared events."""
    TEXT_FIELDS = ('source', 'objectif')
    LIST_FIELDS = ('chemins', 'intermediaireIds', 'eventIds')
    HAS_ID = True

    id: str = Field(default_factory=uid)
    source: str = ''
    objectif: str = ''
    chemins: list[str] = Field(default_factory=list)
    intermediaireIds: list[str] = Field(default_factory=list)
    eventIds: list[str] = Field(default_factory=list)


class ScenarioRisk(EbiosModel):
    """A named risk attached to an operational scenario.

    Levels left unset inherit the scenario-level values.
    """
    TEXT_FIELDS = ('name',)

    name: str = ''
    vraisemblance: Optional[int] = None
    gravite: Optional[int] = None

    @classmethod
    def _coerce_legacy(cls, data: dict) -> dict:
        for key in ('vraisemblance', 'gravite'):
            data[key] = clamp_level(data[key]) if parse_int(data.get(key)) else None
        return data


class OperationalScenario(EbiosModel):
    """An operational scenario broken down along the kill chain."""
    TEXT_FIELDS = ('eventId', 'path')
    LEVEL_FIELDS = ('vraisemblance', 'gravite')
    LIST_FIELDS = KILL_CHAIN_STAGES
    HAS_ID = True

    id: str = Field(default_factory=uid)
    eventId: str = ''
    path: str = ''
    connaitre: list[str] = Field(default_factory=list)
    rester: list[str] = Field(default_factory=list)
    trouver: list[str] = Field(default_factory=list)
    exploiter: list[str] = Field(default_factory=list)
    risks: list[ScenarioRisk] = Field(default_factory=list)
    vraisemblance: int = 1
    gravite: int = 1

    @classmethod
    def _coerce_legacy(cls, data: dict) -> dict:
        if not data.get('path') and data.get('chemin'):
            data['path'] = data['chemin']
        risks = data.get('risks')
        if isinstance(risks, list):
            data['risks'] = [{'name': r} if isinstance(r, str) else r for r in risks]
        else:
            data['risks'] = []
        return data


class Risk(EbiosModel):
    """A risk recorded in the treatment workshop."""
    TEXT_FIELDS = (
        'missionId', 'eventId', 'scenarioId', 'titre', 'description',
        'indice', 'vraisemblance', 'gravite', 'mesures',
    )
    LIST_FIELDS = ('sourceIds',)
    HAS_ID = True

    id: str = Field(default_factory=uid)
    missionId: str = ''
    eventId: str = ''
    scenarioId: str = ''
    sourceIds: list[str] = Field(default_factory=list)
    titre: str = ''
    description: str = ''
    indice: str = ''
    vraisemblance: str = ''
    gravite: str = ''
    mesures: str = ''


class Action(EbiosModel):
    """A remediation action with an ISO date range."""
    TEXT_FIELDS = ('name', 'description', 'responsable', 'start', 'end')

    name: str = ''
    description: str = ''
    responsable: str = ''
    start: str = ''
    end: str = ''


class ActionRow(EbiosModel):
    """A group of actions attached to one source entity."""
    REF_FIELD: ClassVar[str] = ''

    actions: list[Action] = Field(default_factory=list)

    @classmethod
    def _coerce_legacy(cls, data: dict) -> dict:
        if not isinstance(data.get('actions'), list):
            data['actions'] = []
        return data

    @property
    def ref(self) -> str:
        return getattr(self, self.REF_FIELD)


class GapActionRow(ActionRow):
    TEXT_FIELDS = ('sourceId',)
    REF_FIELD = 'sourceId'

    sourceId: str = ''


class SupportActionRow(ActionRow):
    TEXT_FIELDS = ('supportName',)
    REF_FIELD = 'supportName'

    supportName: str = ''


class PartyActionRow(ActionRow):
    TEXT_FIELDS = ('ppId',)
    REF_FIELD = 'ppId'

    ppId: str = ''


class RiskActionRow(ActionRow):
    TEXT_FIELDS = ('riskName',)
    LEVEL_FIELDS = ('residualV', 'residualG')
    REF_FIELD = 'riskName'

    riskName: str = ''
    residualV: int = 1
    residualG: int = 1
    manual: bool = False

    @classmethod
    def _coerce_legacy(cls, data: dict) -> dict:
        data = super()._coerce_legacy(data)
        data['manual'] = data.get('manual') is True
        return data


class AnalysisData(EbiosModel):
    """All workshop collections of one analysis."""
    TEXT_FIELDS = ('missionDescription',)

    missionDescription: str = ''
    missions: list[Mission] = Field(default_factory=list)
    events: list[Event] = Field(default_factory=list)
    gap: list[GapRequirement] = Field(default_factory=list)
    srov: list[SrovCouple] = Field(default_factory=list)
    pp: list[dict[str, Any]] = Field(default_factory=list)
    ppc: list[Stakeholder] = Field(default_factory=list)
    ss: list[dict[str, Any]] = Field(default_factory=list)
    strategies: list[Strategy] = Field(default_factory=list)
    so: list[OperationalScenario] = Field(default_factory=list)
    risques: list[Risk] = Field(default_factory=list)
    actionsGap: list[GapActionRow] = Field(default_factory=list)
    actionsSupports: list[SupportActionRow] = Field(default_factory=list)
    actionsParties: list[PartyActionRow] = Field(default_factory=list)
    actionsRisques: list[RiskActionRow] = Field(default_factory=list)

    @classmethod
    def _coerce_legacy(cls, data: dict) -> dict:
        for name in cls.model_fields:
            if name != 'missionDescription' and not isinstance(data.get(name), list):
                data[name] = []
        return data


class Analysis(EbiosModel):
    """Top-level container for one EBIOS RM study."""
    TEXT_FIELDS = ('title',)
    HAS_ID = True

    id: str = Field(default_factory=uid)
    title: str = ''
    data: AnalysisData = Field(default_factory=AnalysisData)

    @classmethod
    def _coerce_legacy(cls, data: dict) -> dict:
        if not isinstance(data.get('data'), (dict, BaseModel)):
            data['data'] = {}
        return data


class Mitigation(BaseModel):
    """A mitigation attached to a catalogue technique."""
    id: str
    mitigation: str = ''
    description: str = ''


class Technique(BaseModel):
    """An attack technique from the technique catalogue."""
    id: str
    title: str = ''
    description: str = ''
    mitigations: list[Mitigation] = Field(default_factory=list)

    @property
    def risk_name(self) -> str:
        return f'{self.id} {self.title}' if self.title else self.id


COLLECTIONS: dict[str, type[EbiosModel]] = {
    'missions': Mission,
    'events': Event,
    'gap': GapRequirement,
    'srov': SrovCouple,
    'ppc': Stakeholder,
    'strategies': Strategy,
    'so': OperationalScenario,
    'risques': Risk,
}

ACTION_COLLECTIONS: dict[str, type[ActionRow]] = {
    'actionsGap': GapActionRow,
    'actionsSupports': SupportActionRow,
    'actionsParties': PartyActionRow,
    'actionsRisques': RiskActionRow,
}
