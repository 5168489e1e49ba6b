"""
Tests unitaires pour l'import et l'export de documents.
"""

import json
import re

import pytest

from ebios_rm.exporter import (
    ALL_EXPORT_FILENAME, ExportError, export_all, export_analysis, export_filename, write_document,
)
from ebios_rm.parser import (
    AnalysisParseError, load_gap_file, load_store_file, parse_gap_requirements, parse_store_document,
)
from ebios_rm.schemas import Analysis


class TestExport:
    """Tests pour l'export JSON."""

    def test_export_is_indented_utf8(self):
        text = export_analysis(Analysis(id='a1', title='Étude'))
        assert '\n  "id": "a1"' in text
        assert 'Étude' in text

    def test_round_trip(self, sample_data):
        analysis = Analysis(id='a1', title='Complète', data=sample_data)
        result = parse_store_document(export_analysis(analysis))
        assert result.replace is False
        assert result.analyses == [analysis]

    def test_round_trip_of_full_list(self, sample_data):
        analyses = [Analysis(id='a1', data=sample_data), Analysis(id='a2', title='Vide')]
        result = parse_store_document(export_all(analyses))
        assert result.replace is True
        assert result.analyses == analyses

    @pytest.mark.parametrize('title,filename', [
        ('Mon Étude 2024', 'mon__tude_2024.json'),
        ('', 'analyse.json'),
        ('SI-RH', 'si_rh.json'),
        ('Analyse ſécurité K', 'analyse___curit__k.json'),
    ])
    def test_export_filename(self, title, filename):
        assert export_filename(title) == filename
        assert re.fullmatch(r'[a-z0-9_]+\.json', filename)

    def test_write_document(self, tmp_path):
        path = write_document(tmp_path / 'out' / ALL_EXPORT_FILENAME, '[]')
        assert path.read_text(encoding='utf-8') == '[]'

    def test_write_document_failure(self, tmp_path):
        blocker = tmp_path / 'fichier'
        blocker.write_text('x')
        with pytest.raises(ExportError):
            write_document(blocker / 'export.json', '[]')


class TestStoreDocument:
    """Tests pour le parsing des fichiers d'export."""

    def test_legacy_document_is_normalized(self):
        result = parse_store_document(json.dumps({
            'title': 'Ancienne',
            'data': {'missions': [{'denom': 'Paie', 'supports': 'ERP'}], 'events': [{'impact': '3'}]},
        }))
        analysis = result.analyses[0]
        assert analysis.id
        assert analysis.data.missions[0].supports[0].name == 'ERP'
        assert analysis.data.events[0].impact == 3

    @pytest.mark.parametrize('number', ['1e400', '-1e400', 'Infinity', 'NaN'])
    def test_out_of_range_numbers_fall_back_to_defaults(self, number):
        result = parse_store_document(
            '{"id": "a", "title": "T", "data": {"srov": [{"motivation": %s}], "events": [{"impact": %s}]}}'
            % (number, number)
        )
        data = result.analyses[0].data
        assert data.srov[0].motivation == 1
        assert data.events[0].impact == 1

    @pytest.mark.parametrize('text', ['42', '"texte"', 'null', '{mal forme'])
    def test_invalid_documents(self, text):
        with pytest.raises(AnalysisParseError):
            parse_store_document(text)

    def test_invalid_entry_in_list_rejects_all(self):
        with pytest.raises(AnalysisParseError) as exc_info:
            parse_store_document('[{"title": "ok"}, "pas un objet"]')
        assert 'Analysis #2' in str(exc_info.value)

    def test_load_store_file(self, tmp_path):
        path = tmp_path / 'export.json'
        path.write_text('[{"id": "a1"}]', encoding='utf-8')
        assert load_store_file(path).analyses[0].id == 'a1'

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(AnalysisParseError):
            load_store_file(tmp_path / 'absent.json')


class TestGapImport:
    """Tests pour l'import en masse d'exigences."""

    def test_aliases(self):
        requirements = parse_gap_requirements(
            '[{"domain": "Access", "title": "MFA", "status": "Non appliqué"}]'
        )
        assert len(requirements) == 1
        requirement = requirements[0]
        assert requirement.id.startswith('id-')
        assert requirement.domaine == 'Access'
        assert requirement.titre == 'MFA'
        assert requirement.application == 'Non appliqué'
        assert requirement.justification == ''

    def test_fresh_ids_even_when_present(self):
        requirements = parse_gap_requirements('[{"id": "g1", "titre": "A"}, {"id": "g1", "titre": "B"}]')
        assert requirements[0].id != 'g1'
        assert requirements[0].id != requirements[1].id

    def test_yaml_document(self):
        text = '- domaine: Réseau\n  desc: Filtrage\n  justif: Pare-feu en place\n'
        requirement = parse_gap_requirements(text, fmt='yaml')[0]
        assert requirement.description == 'Filtrage'
        assert requirement.justification == 'Pare-feu en place'

    def test_not_a_list(self):
        with pytest.raises(AnalysisParseError):
            parse_gap_requirements('{"titre": "MFA"}')

    def test_entry_not_an_object(self):
        with pytest.raises(AnalysisParseError):
            parse_gap_requirements('["MFA"]')

    def test_load_gap_file_by_suffix(self, tmp_path):
        path = tmp_path / 'exigences.yml'
        path.write_text('- title: MFA\n', encoding='utf-8')
        assert load_gap_file(path)[0].titre == 'MFA'
