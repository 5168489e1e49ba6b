"""Attack technique catalogue used to name operational-scenario risks.

The catalogue is read from a delimited table with one row per
technique/mitigation pair. Column splitting is naive: quoted fields that
contain the delimiter are not supported.
"""

import logging
from pathlib import Path
from typing import Optional, Sequence

import httpx

from .persistence import PersistenceError, PersistenceGateway
from .resolver import SelectionCandidate
from .schemas import Mitigation, Technique


logger = logging.getLogger(__name__)


class CatalogueError(Exception):
    """Raised when a technique table cannot be parsed."""
    pass


COLUMNS = {
    'id': 'technique id',
    'title': 'technique name',
    'description': 'technique description',
    'mitigation_id': 'mitigation id',
    'mitigation_name': 'mitigation name',
    'mitigation_description': 'mitigation description',
}

DEFAULT_RISK_LIBRARY = (
    'Phishing',
    'Malware',
    'Ransomware',
    'Injection SQL',
    'Cross-Site Scripting (XSS)',
    'Escalade de privilèges',
    'Déni de service (DoS)',
    'Vol de données',
    'Fuite d’informations',
    'Compte compromis',
    'Man-in-the-Middle',
    'Attaque par mot de passe',
    'Force brute',
    'Command and Control',
    'Exfiltration de données',
    'Livraison de malware',
    'Injection XML',
    'Inclusion de fichiers',
    'Sécurité insuffisante des API',
    'Configuration non sécurisée',
)


def _column_index(header: list[str], needle: str) -> int:
    for index, name in enumerate(header):
        if needle in name.lower():
            return index
    return -1


def _cell(cols: list[str], index: int) -> str:
    if 0 <= index < len(cols):
        return cols[index].strip()
    return ''


def parse_technique_table(text: str, delimiter: str = ',') -> list[Technique]:
    """Group table rows by technique id, accumulating their mitigations."""
    lines = text.splitlines()
    if len(lines) < 2:
        return []
    header = lines[0].split(delimiter)
    indexes = {key: _column_index(header, needle) for key, needle in COLUMNS.items()}
    if indexes['id'] < 0:
        raise CatalogueError("Technique table has no 'Technique ID' column")

    techniques: dict[str, Technique] = {}
    for row in lines[1:]:
        if not row.strip():
            continue
        cols = row.split(delimiter)
        technique_id = _cell(cols, indexes['id'])
        if not technique_id:
            continue
        if technique_id not in techniques:
            techniques[technique_id] = Technique(
                id=technique_id,
                title=_cell(cols, indexes['title']),
                description=_cell(cols, indexes['description']),
            )
        mitigation_id = _cell(cols, indexes['mitigation_id'])
        if mitigation_id:
            techniques[technique_id].mitigations.append(Mitigation(
                id=mitigation_id,
                mitigation=_cell(cols, indexes['mitigation_name']),
                description=_cell(cols, indexes['mitigation_description']),
            ))
    return list(techniques.values())


class TechniqueCatalogue:
    """The technique library of the editor, cached through the gateway."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        source: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        self.gateway = gateway
        self.source = source
        self.timeout = timeout
        self.client = client
        self.techniques: list[Technique] = gateway.load_technique_library()
        self.available: list[Technique] = []
        self.notice: Optional[str] = None

    def _read_source(self, source: str) -> str:
        if source.startswith(('http://', 'https://')):
            if self.client is not None:
                response = self.client.get(source, timeout=self.timeout)
            else:
                response = httpx.get(source, timeout=self.timeout, follow_redirects=True)
            response.raise_for_status()
            return response.text
        return Path(source).read_text(encoding='utf-8')

    def fetch(self, source: Optional[str] = None) -> list[Technique]:
        """Read the full catalogue offered for selection.

        On any failure the cached library is offered instead and ``notice``
        explains why.
        """
        source = source or self.source
        self.notice = None
        if not source:
            self.notice = 'Aucune source de catalogue configurée.'
            self.available = list(self.techniques)
            return self.available
        try:
            self.available = parse_technique_table(self._read_source(source))
        except (httpx.HTTPError, OSError, UnicodeDecodeError, CatalogueError) as e:
            logger.warning('Cannot load technique catalogue from %s: %s', source, e)
            self.notice = f'Impossible de charger le catalogue de techniques ({e}).'
            self.available = list(self.techniques)
        return self.available

    def select(self, technique_ids: Sequence[str]) -> list[Technique]:
        """Keep the chosen techniques as the library and persist it."""
        wanted = set(technique_ids)
        self.techniques = [t for t in self.available if t.id in wanted]
        self.gateway.save_technique_library(self.techniques)
        return self.techniques

    def ensure_loaded(self) -> list[Technique]:
        """Make sure a library is present, fetching the configured source once."""
        if self.techniques:
            return self.techniques
        fetched = self.fetch()
        if fetched and not self.notice:
            self.techniques = list(fetched)
            try:
                self.gateway.save_technique_library(self.techniques)
            except PersistenceError as e:
                logger.warning('Cannot cache technique library: %s', e)
        return self.techniques

    def search(self, term: str) -> list[Technique]:
        term = (term or '').lower()
        pool = self.available or self.techniques
        return [t for t in pool if term in f'{t.id} {t.title} {t.description}'.lower()]

    def risk_library(self) -> list[SelectionCandidate]:
        """Candidates offered when attaching risks to a scenario."""
        if self.techniques:
            return [
                SelectionCandidate(t.risk_name, t.risk_name, t.description, t.id)
                for t in self.techniques
            ]
        return [SelectionCandidate(name, name) for name in DEFAULT_RISK_LIBRARY]
