"""Serialization of analyses to portable JSON documents."""

import json
import re
from pathlib import Path

from .schemas import Analysis


ALL_EXPORT_FILENAME = 'analyses_ebios.json'


class ExportError(Exception):
    """Raised when an export document cannot be written."""
    pass


def export_analysis(analysis: Analysis) -> str:
    """Serialize one analysis with its source fields only."""
    return json.dumps(analysis.model_dump(mode='json'), indent=2, ensure_ascii=False)


def export_all(analyses: list[Analysis]) -> str:
    return json.dumps([a.model_dump(mode='json') for a in analyses], indent=2, ensure_ascii=False)


def export_filename(title: str) -> str:
    """Derive a download filename from an analysis title."""
    safe_title = re.sub(r'[^a-z0-9]', '_', (title or 'analyse').lower())
    return f'{safe_title}.json'


def write_document(output_path: str | Path, content: str) -> Path:
    output_path = Path(output_path)
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(content)
    except OSError as e:
        raise ExportError(f"Cannot write {output_path}: {e}")
    return output_path
