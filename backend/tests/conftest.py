"""
Sakkanal - fixtures de test
La base Mongo est remplacée par mongomock-motor dans tous les modules du backend.
L'app est utilisée sans `with TestClient(...)`: le startup (index, scheduler) n'est pas exécuté.
"""

import sys
import uuid
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

BACKEND_DIR = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(BACKEND_DIR))

import config  # noqa: E402
import server  # noqa: E402
import email_service  # noqa: E402
import scheduler_service  # noqa: E402,F401
import services.notifier  # noqa: E402,F401
import services.crm_sync  # noqa: E402,F401
import services.model_training  # noqa: E402,F401
from tests.helpers import make_admin, make_scenario, login_headers  # noqa: E402


@pytest.fixture
def db(monkeypatch):
    """Base mongomock injectée à la place de config.db"""
    mock_db = AsyncMongoMockClient()[f"sakkanal_test_{uuid.uuid4().hex[:8]}"]
    real_db = config.db

    for module in list(sys.modules.values()):
        module_file = getattr(module, "__file__", None) or ""
        if not module_file.startswith(str(BACKEND_DIR)):
            continue
        if getattr(module, "db", None) is real_db:
            monkeypatch.setattr(module, "db", mock_db)

    return mock_db


@pytest.fixture
def client(db):
    return TestClient(server.app)


@pytest.fixture
def admin(db):
    return make_admin(db, "super_admin")


@pytest.fixture
def admin_headers(client, admin):
    return login_headers(client, admin)


@pytest.fixture
def catalog(db):
    """Les trois niveaux de scénarios"""
    return {
        "economique": make_scenario(db, "Essentiel", "economique", 0, 1000000, ["bureau", "commerce"], 12),
        "standard": make_scenario(db, "Pro", "standard", 1000000, 5000000, ["bureau", "immeuble"], 20),
        "premium": make_scenario(db, "Intelligence", "premium", 5000000, None, ["usine"], 30),
    }


@pytest.fixture(autouse=True)
def no_sendgrid(monkeypatch):
    """Aucun email réel pendant les tests"""
    monkeypatch.setattr(email_service.email_service, "api_key", "")
