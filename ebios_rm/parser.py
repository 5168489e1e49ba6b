"""Parsers for analysis documents and GAP requirement imports."""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .schemas import Analysis, GapRequirement, uid


class AnalysisParseError(Exception):
    """Raised when an import document cannot be parsed or validated."""
    pass


GAP_ALIASES = {
    'domaine': ('domaine', 'domain'),
    'titre': ('titre', 'title'),
    'description': ('description', 'desc'),
    'application': ('application', 'status'),
    'justification': ('justification', 'justif'),
}


@dataclass
class ImportResult:
    """Analyses read from a document and how they apply to the store."""
    analyses: list[Analysis]
    replace: bool


def _load_json(text: str, source: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise AnalysisParseError(f"Invalid JSON in {source}: {e}")


def _load_yaml(text: str, source: str) -> Any:
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise AnalysisParseError(f"YAML parse error in {source}: {e}")


def _read_text(path: str | Path) -> str:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise AnalysisParseError(f"Cannot read {path}: {e}")


def parse_analysis(document: Any, position: int = 0) -> Analysis:
    """Validate one analysis object, normalizing legacy shapes."""
    if not isinstance(document, dict):
        raise AnalysisParseError(
            f"Analysis #{position + 1} must be an object, got {type(document).__name__}"
        )
    try:
        return Analysis.model_validate(document)
    except ValidationError as e:
        title = document.get('title') or document.get('id') or f'#{position + 1}'
        raise AnalysisParseError(f"Analysis '{title}' validation error: {e}")


def parse_store_document(text: str, source: str = 'document') -> ImportResult:
    """Parse an export file.

    A list replaces the whole store, a single object is appended to it.
    Nothing is returned unless every analysis in the document is valid.
    """
    document = _load_json(text, source)
    if isinstance(document, list):
        return ImportResult([parse_analysis(doc, i) for i, doc in enumerate(document)], replace=True)
    if isinstance(document, dict):
        return ImportResult([parse_analysis(document)], replace=False)
    raise AnalysisParseError(
        f"{source} must contain a list of analyses or a single analysis object"
    )


def load_store_file(path: str | Path) -> ImportResult:
    return parse_store_document(_read_text(path), source=str(path))


def _first_value(record: dict, keys: tuple[str, ...]) -> Any:
    for key in keys:
        if record.get(key):
            return record[key]
    return ''


def parse_gap_requirements(text: str, source: str = 'document', fmt: str = 'json') -> list[GapRequirement]:
    """Parse a bulk GAP import; every requirement gets a fresh id."""
    if fmt == 'yaml':
        document = _load_yaml(text, source)
    else:
        document = _load_json(text, source)
    if not isinstance(document, list):
        raise AnalysisParseError(f"{source} must contain a list of requirements")
    requirements = []
    for position, record in enumerate(document):
        if not isinstance(record, dict):
            raise AnalysisParseError(
                f"Requirement #{position + 1} must be an object, got {type(record).__name__}"
            )
        fields = {name: _first_value(record, aliases) for name, aliases in GAP_ALIASES.items()}
        try:
            requirements.append(GapRequirement(id=uid(), **fields))
        except ValidationError as e:
            raise AnalysisParseError(f"Requirement #{position + 1} validation error: {e}")
    return requirements


def load_gap_file(path: str | Path) -> list[GapRequirement]:
    fmt = 'yaml' if Path(path).suffix.lower() in ('.yaml', '.yml') else 'json'
    return parse_gap_requirements(_read_text(path), source=str(path), fmt=fmt)
