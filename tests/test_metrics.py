"""
Tests unitaires pour les métriques dérivées.
"""

import pytest

from ebios_rm import metrics
from ebios_rm.schemas import AnalysisData, GapRequirement, Stakeholder


class TestPertinence:
    """Tests pour la pertinence des couples SR/OV."""

    def test_anchor_values(self):
        assert metrics.pertinence(1, 1) == (1, 1)
        assert metrics.pertinence(4, 4) == (16, 4)

    def test_three_by_three_is_level_three(self):
        assert metrics.pertinence(3, 3) == (9, 3)

    @pytest.mark.parametrize('product,bucket', [(4, 1), (5, 2), (8, 2), (9, 3), (12, 3), (13, 4)])
    def test_bucket_thresholds(self, product, bucket):
        assert metrics.pertinence_bucket(product) == bucket

    def test_bucket_is_monotonic(self):
        for m in range(1, 5):
            for r in range(1, 5):
                _, bucket = metrics.pertinence(m, r)
                if m < 4:
                    assert metrics.pertinence(m + 1, r)[1] >= bucket
                if r < 4:
                    assert metrics.pertinence(m, r + 1)[1] >= bucket

    def test_missing_values_count_as_one(self):
        assert metrics.pertinence(None, 'x') == (1, 1)


class TestStakeholderMetrics:
    """Tests pour l'exposition, le niveau SSI et l'indice."""

    def test_high_exposure_low_maturity(self):
        pp = Stakeholder(dependance=4, penetration=4, maturite=1, confiance=1)
        m = metrics.stakeholder_metrics(pp)
        assert m.exposition == 16
        assert m.niveau_ssi == 1
        assert m.indice == pytest.approx(16.0)
        assert m.indice_level == 4

    def test_indice_formula(self):
        for dep, pen, mat, conf in [(1, 1, 1, 1), (2, 3, 4, 1), (4, 1, 2, 2)]:
            pp = Stakeholder(dependance=dep, penetration=pen, maturite=mat, confiance=conf)
            assert metrics.stakeholder_metrics(pp).indice == pytest.approx((dep * pen) / (mat * conf))

    def test_zero_denominator_gives_zero(self):
        assert metrics.indice(12, 0) == 0.0

    @pytest.mark.parametrize('value,level', [(0.5, 1), (2, 2), (3.5, 3), (4, 4), (16, 4)])
    def test_indice_level(self, value, level):
        assert metrics.indice_level(value) == level

    def test_colors(self):
        assert metrics.level_color(4) == '#e63946'
        assert metrics.ssi_color(4) == '#2a9d8f'
        assert metrics.level_color(None) == metrics.NEUTRAL_COLOR


class TestMissionAndSupportImpact:
    """Tests pour les impacts des valeurs métier et des supports."""

    def test_mission_impact_scenario(self):
        data = AnalysisData.model_validate({
            'missions': [{'id': 'M1', 'denom': 'M1', 'supports': [{'name': 'S1'}]}],
            'events': [{'id': 'E1', 'missionId': 'M1', 'impact': 3}],
        })
        assert metrics.mission_impact(data, 'M1') == 3
        assert metrics.support_stats(data, 'S1').max_impact == 3

    def test_mission_without_event_has_no_impact(self, sample_data):
        sample_data.events = []
        assert metrics.mission_impact(sample_data, 'm1') == 0

    def test_support_degree_and_max_impact(self, sample_data):
        stats = metrics.all_support_stats(sample_data)
        assert list(stats) == ['ERP', 'Serveur']
        assert stats['ERP'].degree == 2
        assert stats['ERP'].max_impact == 4
        assert stats['Serveur'].degree == 1
        assert stats['Serveur'].max_impact == 3

    def test_unknown_support(self, sample_data):
        assert metrics.support_stats(sample_data, 'Absent').degree == 0


class TestGapStatuses:
    """Tests pour les statuts d'application des exigences."""

    def test_normalize_status(self):
        assert metrics.normalize_status('  Partiellement   APPLIQUÉ ') == 'partiellement applique'

    @pytest.mark.parametrize('status,applied', [
        ('Appliqué', True),
        ('applique', True),
        ('Appli qué', True),
        ('Partiellement appliqué', False),
        ('Non appliqué', False),
        ('Non applicable', False),
        ('', False),
    ])
    def test_is_applied(self, status, applied):
        assert metrics.is_applied(status) is applied

    def test_compliance_counts_ignore_case_and_accents(self):
        requirements = [
            GapRequirement(application='appliqué'),
            GapRequirement(application='APPLIQUE'),
            GapRequirement(application='non applicable'),
            GapRequirement(application='inconnu'),
        ]
        counts = metrics.gap_compliance_counts(requirements)
        assert counts == {
            'Appliqué': 2,
            'Partiellement appliqué': 0,
            'Non appliqué': 0,
            'Non applicable': 1,
        }


class TestScenarioRollups:
    """Tests pour la gravité des scénarios et les risques résiduels."""

    def test_strategy_severity_is_max_event_impact(self, sample_data):
        assert metrics.scenario_severity(sample_data, sample_data.strategies[0]) == 4

    def test_strategy_with_dangling_events(self, sample_data):
        strategy = sample_data.strategies[0].model_copy(update={'eventIds': ['absent']})
        assert metrics.scenario_severity(sample_data, strategy) == 0

    def test_risk_rollup_uses_scenario_levels_as_fallback(self, sample_data):
        rollups = metrics.all_risk_rollups(sample_data)
        assert rollups['Phishing'].vraisemblance == 3
        assert rollups['Phishing'].gravite == 3
        assert rollups['Ransomware'].vraisemblance == 4
        assert rollups['Ransomware'].gravite == 3

    def test_unknown_risk_defaults_to_one(self, sample_data):
        rollup = metrics.risk_residual_rollup(sample_data, 'Inconnu')
        assert (rollup.vraisemblance, rollup.gravite) == (1, 1)

    def test_metrics_do_not_mutate(self, sample_data):
        before = sample_data.model_dump()
        metrics.all_risk_rollups(sample_data)
        metrics.all_support_stats(sample_data)
        metrics.gap_compliance_counts(sample_data.gap)
        assert sample_data.model_dump() == before
