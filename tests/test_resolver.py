"""
Tests unitaires pour la résolution des références.
"""

import pytest

from ebios_rm import resolver
from ebios_rm.resolver import SelectionCandidate, Unresolved
from ebios_rm.schemas import Technique


class TestResolvers:
    """Les références pendantes deviennent des marqueurs."""

    def test_resolved_entities(self, sample_data):
        assert resolver.resolve_mission(sample_data, 'm1').denom == 'Paie'
        assert resolver.resolve_event(sample_data, 'e3').evenement == 'Fraude'
        assert resolver.resolve_stakeholder(sample_data, 'p1').nom == 'Infogérant'
        assert resolver.resolve_requirement(sample_data, 'g2').titre == 'Revue'
        assert resolver.resolve_srov(sample_data, 'c1').source == 'Hacktiviste'
        assert resolver.resolve_scenario(sample_data, 'o1').path == 'Phishing puis rebond'

    def test_dangling_reference(self, sample_data):
        value = resolver.resolve_event(sample_data, 'supprime')
        assert value == Unresolved('event', 'supprime')
        assert not resolver.is_resolved(value)
        assert value.label == 'Évènement supprimé (supprime)'

    def test_empty_reference(self, sample_data):
        value = resolver.resolve_mission(sample_data, '')
        assert value.label == 'Valeur métier non renseigné'

    def test_support_by_trimmed_name(self, sample_data):
        support = resolver.resolve_support(sample_data, ' Serveur ')
        assert support.responsable == 'DSI'
        assert isinstance(resolver.resolve_support(sample_data, 'Absent'), Unresolved)

    def test_reference_label(self, sample_data):
        assert resolver.reference_label(resolver.resolve_mission(sample_data, 'm2'), 'denom', '?') == 'Facturation'
        assert resolver.reference_label(Unresolved('stakeholder', 'x'), 'nom', '?') == 'Partie prenante supprimé (x)'


class TestAssociations:
    """Tests pour les associations multivaluées."""

    def test_unique_supports_first_wins(self, sample_data):
        supports = resolver.unique_supports_across_missions(sample_data)
        assert [s.name for s in supports] == ['ERP', 'Serveur']

    def test_available_for_selection(self, sample_data):
        available = resolver.available_for_selection(sample_data.missions, ['m1'])
        assert [m.id for m in available] == ['m2']

    def test_available_supports_by_name(self, sample_data):
        supports = resolver.unique_supports_across_missions(sample_data)
        available = resolver.available_for_selection(supports, ['ERP'], key='name')
        assert [s.name for s in available] == ['Serveur']

    def test_add_keeps_set_semantics(self):
        assert resolver.add_to_association(['a', 'b'], 'c') == ['a', 'b', 'c']
        assert resolver.add_to_association(['a', 'b'], 'a') == ['a', 'b']

    def test_remove_preserves_order(self):
        ids = ['a', 'b', 'c']
        assert resolver.remove_from_association(ids, 'b') == ['a', 'c']
        assert ids == ['a', 'b', 'c']


class TestImportCandidates:
    """Tests pour les listes proposées à l'import d'actions."""

    def test_gap_excludes_applied_requirements(self, sample_data):
        candidates = resolver.import_candidates(sample_data, 'gap')
        assert [c.id for c in candidates] == ['g2', 'g3', 'g4']
        assert candidates[0].label == 'Accès – Revue'

    def test_supports_are_deduplicated(self, sample_data):
        candidates = resolver.import_candidates(sample_data, 'supports')
        assert [c.id for c in candidates] == ['ERP', 'Serveur']

    def test_parties(self, sample_data):
        candidates = resolver.import_candidates(sample_data, 'parties')
        assert candidates == [SelectionCandidate('p1', 'Infogérant', 'prestataire')]

    def test_risks_deduplicated_with_technique_descriptions(self, sample_data):
        techniques = [Technique(id='T1566', title='Phishing', description='Hameçonnage')]
        candidates = resolver.import_candidates(sample_data, 'risques', techniques)
        assert [c.id for c in candidates] == ['Phishing', 'Ransomware']
        assert candidates[0].description == 'Hameçonnage'

    def test_unknown_kind(self, sample_data):
        with pytest.raises(ValueError):
            resolver.import_candidates(sample_data, 'inconnu')

    def test_filter_candidates(self):
        candidates = [
            SelectionCandidate('1', 'Pare-feu', 'Réseau'),
            SelectionCandidate('2', 'Badge', 'Physique', 'site B'),
        ]
        assert [c.id for c in resolver.filter_candidates(candidates, 'RÉSEAU')] == ['1']
        assert [c.id for c in resolver.filter_candidates(candidates, 'site')] == ['2']
        assert resolver.filter_candidates(candidates, '  ') == candidates
