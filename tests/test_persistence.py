"""
Tests unitaires pour la passerelle de persistance.
"""

import logging

import pytest

from ebios_rm.persistence import FileBackend, MemoryBackend, PersistenceError, PersistenceGateway
from ebios_rm.schemas import Analysis, Technique


class TestMemoryBackend:
    """Tests pour le backend en mémoire."""

    def test_get_set_delete(self):
        backend = MemoryBackend({'k': 'v'})
        assert backend.get('k') == 'v'
        backend.set('k', 'w')
        assert backend.get('k') == 'w'
        backend.delete('k')
        backend.delete('k')
        assert backend.get('k') is None


class TestFileBackend:
    """Tests pour le backend fichier."""

    def test_round_trip(self, tmp_path):
        backend = FileBackend(tmp_path / 'donnees')
        assert backend.get('ebiosAnalyses') is None
        backend.set('ebiosAnalyses', '[]')
        assert (tmp_path / 'donnees' / 'ebiosAnalyses.json').read_text(encoding='utf-8') == '[]'
        assert backend.get('ebiosAnalyses') == '[]'
        backend.delete('ebiosAnalyses')
        assert backend.get('ebiosAnalyses') is None

    def test_no_temporary_file_left(self, tmp_path):
        backend = FileBackend(tmp_path)
        backend.set('cle', 'valeur')
        assert [p.name for p in tmp_path.iterdir()] == ['cle.json']

    def test_write_failure_raises(self, tmp_path):
        blocker = tmp_path / 'fichier'
        blocker.write_text('x')
        backend = FileBackend(blocker / 'sous-dossier')
        with pytest.raises(PersistenceError):
            backend.set('cle', 'valeur')


class TestPersistenceGateway:
    """Tests pour le chargement et l'enregistrement des analyses."""

    def test_save_and_load(self, gateway):
        gateway.save_all([Analysis(id='a1', title='Étude')])
        loaded = gateway.load_all()
        assert [(a.id, a.title) for a in loaded] == [('a1', 'Étude')]

    def test_missing_document_is_empty(self, gateway):
        assert gateway.load_all() == []

    @pytest.mark.parametrize('raw', ['{pas du json', '{"id": "a1"}', '[42]'])
    def test_corrupt_document_loads_as_empty(self, raw, caplog):
        gateway = PersistenceGateway(MemoryBackend({PersistenceGateway.ANALYSES_KEY: raw}))
        with caplog.at_level(logging.WARNING, logger='ebios_rm.persistence'):
            assert gateway.load_all() == []
        assert 'resetting' in caplog.text

    def test_out_of_range_number_in_stored_document(self):
        raw = '[{"id": "a1", "data": {"events": [{"impact": 1e400}]}}]'
        gateway = PersistenceGateway(MemoryBackend({PersistenceGateway.ANALYSES_KEY: raw}))
        loaded = gateway.load_all()
        assert [a.id for a in loaded] == ['a1']
        assert loaded[0].data.events[0].impact == 1

    def test_selected_id(self, gateway, backend):
        assert gateway.get_selected_id() is None
        gateway.set_selected_id('a1')
        assert backend.values[PersistenceGateway.SELECTED_KEY] == 'a1'
        assert gateway.get_selected_id() == 'a1'

    def test_technique_library(self, gateway):
        gateway.save_technique_library([Technique(id='T1001', title='Data Obfuscation')])
        assert gateway.load_technique_library()[0].title == 'Data Obfuscation'

    def test_corrupt_technique_library(self):
        gateway = PersistenceGateway(MemoryBackend({PersistenceGateway.TECHNIQUES_KEY: '[{"title": 1}]'}))
        assert gateway.load_technique_library() == []
