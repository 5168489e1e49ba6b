"""
Tests unitaires pour le catalogue de techniques d'attaque.
"""

import httpx
import pytest

from ebios_rm.persistence import MemoryBackend, PersistenceGateway
from ebios_rm.schemas import Technique
from ebios_rm.techniques import (
    DEFAULT_RISK_LIBRARY, CatalogueError, TechniqueCatalogue, parse_technique_table,
)


TABLE = (
    'Technique ID,Technique Name,Technique Description,Mitigation ID,Mitigation Name,Mitigation Description\n'
    'T1001,Data Obfuscation,Hide C2 traffic,M1031,Network Intrusion Prevention,Use IPS\n'
    'T1001,Data Obfuscation,Hide C2 traffic,M1020,SSL Inspection,Inspect TLS\n'
    'T1566,Phishing,Send phishing messages,,,\n'
    '\n'
)


def _client(text: str = TABLE, status_code: int = 200) -> httpx.Client:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, text=text)
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestParseTechniqueTable:
    """Tests pour le parsing du tableau de techniques."""

    def test_rows_grouped_by_technique(self):
        techniques = parse_technique_table(TABLE)
        assert [t.id for t in techniques] == ['T1001', 'T1566']
        assert [m.id for m in techniques[0].mitigations] == ['M1031', 'M1020']
        assert techniques[0].mitigations[1].mitigation == 'SSL Inspection'
        assert techniques[1].mitigations == []

    def test_columns_matched_in_any_order(self):
        text = 'MITIGATION ID;technique name;TECHNIQUE ID\nM1;Exfiltration;T1041\n'
        technique = parse_technique_table(text, delimiter=';')[0]
        assert technique.id == 'T1041'
        assert technique.title == 'Exfiltration'
        assert technique.mitigations[0].id == 'M1'

    def test_header_only(self):
        assert parse_technique_table('Technique ID\n') == []

    def test_missing_id_column(self):
        with pytest.raises(CatalogueError):
            parse_technique_table('Name,Description\nA,B\n')

    def test_risk_name(self):
        assert Technique(id='T1001', title='Data Obfuscation').risk_name == 'T1001 Data Obfuscation'


class TestTechniqueCatalogue:
    """Tests pour le chargement avec repli."""

    def setup_method(self):
        self.backend = MemoryBackend()
        self.gateway = PersistenceGateway(self.backend)

    def test_fetch_over_http(self):
        catalogue = TechniqueCatalogue(self.gateway, 'https://example.org/attack.csv', client=_client())
        available = catalogue.fetch()
        assert [t.id for t in available] == ['T1001', 'T1566']
        assert catalogue.notice is None

    def test_http_error_falls_back_to_cache(self):
        self.gateway.save_technique_library([Technique(id='T0001', title='En cache')])
        catalogue = TechniqueCatalogue(self.gateway, 'https://example.org/attack.csv', client=_client(status_code=500))
        available = catalogue.fetch()
        assert [t.id for t in available] == ['T0001']
        assert catalogue.notice

    def test_missing_file_falls_back_to_empty(self, tmp_path):
        catalogue = TechniqueCatalogue(self.gateway, str(tmp_path / 'absent.csv'))
        assert catalogue.fetch() == []
        assert catalogue.notice

    def test_fetch_from_file(self, tmp_path):
        path = tmp_path / 'attack.csv'
        path.write_text(TABLE, encoding='utf-8')
        catalogue = TechniqueCatalogue(self.gateway)
        assert len(catalogue.fetch(str(path))) == 2

    def test_no_source_configured(self):
        catalogue = TechniqueCatalogue(self.gateway)
        assert catalogue.fetch() == []
        assert catalogue.notice

    def test_select_persists_subset(self):
        catalogue = TechniqueCatalogue(self.gateway, 'https://example.org/attack.csv', client=_client())
        catalogue.fetch()
        catalogue.select(['T1566'])
        reloaded = TechniqueCatalogue(self.gateway)
        assert [t.id for t in reloaded.techniques] == ['T1566']

    def test_ensure_loaded_caches_fetch(self):
        catalogue = TechniqueCatalogue(self.gateway, 'https://example.org/attack.csv', client=_client())
        assert len(catalogue.ensure_loaded()) == 2
        assert PersistenceGateway.TECHNIQUES_KEY in self.backend.values

    def test_search(self):
        catalogue = TechniqueCatalogue(self.gateway, 'https://example.org/attack.csv', client=_client())
        catalogue.fetch()
        assert [t.id for t in catalogue.search('c2')] == ['T1001']

    def test_risk_library_defaults(self):
        catalogue = TechniqueCatalogue(self.gateway)
        assert [c.label for c in catalogue.risk_library()] == list(DEFAULT_RISK_LIBRARY)

    def test_risk_library_from_techniques(self):
        self.gateway.save_technique_library([Technique(id='T1566', title='Phishing', description='Hameçonnage')])
        candidates = TechniqueCatalogue(self.gateway).risk_library()
        assert candidates[0].id == 'T1566 Phishing'
        assert candidates[0].description == 'Hameçonnage'
