"""
EBIOS RM editor - Pytest configuration
Fixtures partagées pour tous les tests.
"""

import pytest

from ebios_rm.persistence import MemoryBackend, PersistenceGateway
from ebios_rm.schemas import AnalysisData
from ebios_rm.store import EntityStore


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def gateway(backend: MemoryBackend) -> PersistenceGateway:
    return PersistenceGateway(backend)


@pytest.fixture
def store(gateway: PersistenceGateway) -> EntityStore:
    """Store avec une analyse courante vide."""
    store = EntityStore(gateway)
    store.create_analysis('Analyse de test')
    return store


@pytest.fixture
def sample_data() -> AnalysisData:
    """Analyse couvrant les cinq ateliers."""
    return AnalysisData.model_validate({
        'missionDescription': 'Périmètre de test',
        'missions': [
            {'id': 'm1', 'denom': 'Paie', 'nature': 'processus',
             'supports': [{'name': 'ERP'}, {'name': 'Serveur', 'responsable': 'DSI'}]},
            {'id': 'm2', 'denom': 'Facturation', 'supports': ['ERP']},
        ],
        'events': [
            {'id': 'e1', 'missionId': 'm1', 'evenement': 'Fuite', 'impact': 3},
            {'id': 'e2', 'missionId': 'm1', 'evenement': 'Indisponibilité', 'impact': 2},
            {'id': 'e3', 'missionId': 'm2', 'evenement': 'Fraude', 'impact': 4},
        ],
        'gap': [
            {'id': 'g1', 'domaine': 'Accès', 'titre': 'MFA', 'application': 'Appliqué'},
            {'id': 'g2', 'domaine': 'Accès', 'titre': 'Revue', 'application': 'Partiellement appliqué'},
            {'id': 'g3', 'domaine': 'Réseau', 'titre': 'Filtrage', 'application': 'Non appliqué'},
            {'id': 'g4', 'domaine': 'Physique', 'titre': 'Badges', 'application': 'Non applicable'},
        ],
        'srov': [
            {'id': 'c1', 'source': 'Hacktiviste', 'objectif': 'Déni', 'motivation': 3, 'ressources': 3, 'priorite': 2},
            {'id': 'c2', 'source': 'Concurrent', 'objectif': 'Déni', 'motivation': 4, 'ressources': 4,
             'priorite': 3, 'retenue': False, 'justification': 'Hors périmètre'},
        ],
        'ppc': [
            {'id': 'p1', 'nom': 'Infogérant', 'supportIds': ['ERP'], 'valueIds': ['m1'],
             'dependance': 4, 'penetration': 4, 'maturite': 1, 'confiance': 1},
        ],
        'strategies': [
            {'id': 's1', 'source': 'Hacktiviste', 'objectif': 'Déni',
             'intermediaireIds': ['p1'], 'eventIds': ['e1', 'e3']},
        ],
        'so': [
            {'id': 'o1', 'eventId': 'e1', 'path': 'Phishing puis rebond', 'connaitre': ['OSINT'],
             'vraisemblance': 2, 'gravite': 3, 'risks': [{'name': 'Phishing'}, {'name': 'Ransomware', 'vraisemblance': 4}]},
            {'id': 'o2', 'eventId': 'e3', 'vraisemblance': 3, 'gravite': 1, 'risks': ['Phishing']},
        ],
        'risques': [
            {'id': 'r1', 'missionId': 'm1', 'titre': 'Chiffrement des données', 'gravite': '3'},
        ],
        'actionsGap': [
            {'sourceId': 'g3', 'actions': [
                {'name': 'Déployer un pare-feu', 'start': '2024-01-01', 'end': '2024-01-31'},
            ]},
        ],
        'actionsParties': [
            {'ppId': 'p1', 'actions': [{'name': 'Audit infogérant', 'start': '2024-02-01', 'end': '2024-03-01'}]},
        ],
        'actionsRisques': [
            {'riskName': 'Phishing', 'residualV': 1, 'residualG': 2,
             'actions': [{'name': 'Sensibilisation', 'start': 'bientôt'}]},
        ],
    })
