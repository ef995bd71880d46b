"""
Sakkanal - helpers partagés par les tests
"""

import asyncio
import concurrent.futures
import uuid

import config
from services.lead_scoring import calculate_lead_score
from services.permissions import get_preset_permissions

TEST_PASSWORD = "SakkanalTest2026!"

SITE_BUREAU = {
    "site_type": "bureau",
    "electricity_bill": 250000,
    "installation_power": 40,
    "measurement_points": 8,
    "budget": 2000000,
    "zones_to_monitor": ["Climatisation", "Éclairage"],
    "specific_needs": ["Pilotage à distance"],
}


def run(coro):
    """Exécute une coroutine depuis un test synchrone (ou asynchrone)"""
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
        return pool.submit(asyncio.run, coro).result()


def make_admin(db, role="super_admin", email=None, **extra):
    user = {
        "id": str(uuid.uuid4()),
        "email": email or f"{role}_{uuid.uuid4().hex[:6]}@inesic.test",
        "password": config.hash_password(TEST_PASSWORD),
        "nom": f"Test {role}",
        "role": role,
        "permissions": get_preset_permissions(role),
        "is_active": True,
        "created_at": config.now_iso(),
        **extra,
    }
    run(db.admin_users.insert_one(user))
    user.pop("_id", None)
    return user


def login_headers(client, user) -> dict:
    response = client.post("/api/auth/login", json={"email": user["email"], "password": TEST_PASSWORD})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}


def make_scenario(db, name, category, min_budget, max_budget, site_types=None, savings=15, products=None):
    scenario = {
        "id": str(uuid.uuid4()),
        "name": name,
        "category": category,
        "site_types": site_types or [],
        "min_budget": min_budget,
        "max_budget": max_budget,
        "products": products or [],
        "estimated_savings": savings,
        "equipment_lifespan": 10,
        "description": f"Scénario {category}",
        "created_at": config.now_iso(),
    }
    run(db.scenarios.insert_one(scenario))
    scenario.pop("_id", None)
    return scenario


def lead_doc(**fields):
    """Document lead complet, score calculé"""
    lead = {
        "id": str(uuid.uuid4()),
        "company_name": "Société Test",
        "contact_name": "Moussa Ndiaye",
        "email": "moussa@test.sn",
        "phone": "771234568",
        "site_type": "bureau",
        "electricity_bill": 250000,
        "installation_power": 40,
        "measurement_points": 8,
        "budget": 2000000,
        "specific_needs": [],
        "zones_to_monitor": [],
        "status": "new",
        "source": "site_web",
        "recommended_scenarios": [],
        "crm_sync_status": {},
        "created_at": config.now_iso(),
        "updated_at": config.now_iso(),
    }
    lead.update(fields)
    score = calculate_lead_score(lead)
    lead.setdefault("score", score["total"])
    lead.setdefault("priority", score["priority"])
    return lead


def make_lead(db, **fields):
    lead = lead_doc(**fields)
    run(db.leads.insert_one(lead))
    lead.pop("_id", None)
    return lead
