"""
Sakkanal - Seed du catalogue et du compte super_admin (dev/staging)
Crée le super_admin, les produits et les 3 scénarios par défaut.
Run: python scripts/seed_catalog.py
Reset: python scripts/seed_catalog.py --reset
"""

import asyncio
import os
import sys
import uuid
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from config import client, db, hash_password, now_iso  # noqa: E402
from services.permissions import get_preset_permissions  # noqa: E402

ADMIN_EMAIL = os.environ.get("SEED_ADMIN_EMAIL", "admin@inesic.com")
ADMIN_PASSWORD = os.environ.get("SEED_ADMIN_PASSWORD", "Sakkanal2026!")

PRODUCTS = [
    {"key": "compteur", "name": "Compteur communicant triphasé", "category": "economique", "price": 150000,
     "description": "Mesure de consommation par départ",
     "technical_specs": {"precision": "classe 1", "communication": "Modbus RTU"}},
    {"key": "passerelle", "name": "Passerelle IoT LoRaWAN", "category": "standard", "price": 350000,
     "description": "Collecte des mesures et remontée cloud",
     "technical_specs": {"portee": "5 km", "capteurs": 50}},
    {"key": "capteurs", "name": "Pack capteurs température / présence", "category": "standard", "price": 200000,
     "description": "Suivi des zones climatisées",
     "technical_specs": {"autonomie": "5 ans"}},
    {"key": "plateforme", "name": "Plateforme d'analyse prédictive", "category": "premium", "price": 1200000,
     "description": "Détection d'anomalies et maintenance prédictive",
     "technical_specs": {"hebergement": "cloud", "alertes": "SMS / email"},
     "performance_data": {"economies_constatees": "25-35%"}},
]

SCENARIOS = [
    {"name": "Sakkanal Essentiel", "category": "economique", "min_budget": 0, "max_budget": 1000000,
     "site_types": ["bureau", "commerce"], "products": ["compteur"], "estimated_savings": 12,
     "equipment_lifespan": 8, "description": "Suivi de consommation et alertes de dépassement"},
    {"name": "Sakkanal Pro", "category": "standard", "min_budget": 1000000, "max_budget": 5000000,
     "site_types": ["bureau", "commerce", "immeuble"], "products": ["compteur", "passerelle", "capteurs"],
     "estimated_savings": 20, "equipment_lifespan": 10,
     "description": "Monitoring multi-zones et pilotage à distance"},
    {"name": "Sakkanal Intelligence", "category": "premium", "min_budget": 5000000, "max_budget": None,
     "site_types": ["usine", "immeuble"], "products": ["compteur", "passerelle", "capteurs", "plateforme"],
     "estimated_savings": 30, "equipment_lifespan": 12,
     "description": "IA prédictive, maintenance et rapports automatiques"},
]


async def reset():
    await db.products.delete_many({})
    await db.scenarios.delete_many({})
    print("Catalogue supprimé")


async def seed_admin():
    existing = await db.admin_users.find_one({"email": ADMIN_EMAIL})
    if existing:
        print(f"  Super admin déjà présent: {ADMIN_EMAIL}")
        return

    await db.admin_users.insert_one({
        "id": str(uuid.uuid4()),
        "email": ADMIN_EMAIL,
        "password": hash_password(ADMIN_PASSWORD),
        "nom": "Administrateur INESIC",
        "role": "super_admin",
        "permissions": get_preset_permissions("super_admin"),
        "is_active": True,
        "last_login": None,
        "created_at": now_iso(),
        "updated_at": now_iso(),
    })
    print(f"  Super admin créé: {ADMIN_EMAIL}")


async def seed_catalog():
    if await db.scenarios.count_documents({}):
        print("  Catalogue déjà présent (utiliser --reset pour le recréer)")
        return

    product_ids = {}
    for product in PRODUCTS:
        doc = {k: v for k, v in product.items() if k != "key"}
        doc.setdefault("performance_data", {})
        doc.update({"id": str(uuid.uuid4()), "created_at": now_iso(), "updated_at": now_iso()})
        await db.products.insert_one(doc)
        product_ids[product["key"]] = doc["id"]
        print(f"  Produit: {doc['name']}")

    for scenario in SCENARIOS:
        doc = {
            **scenario,
            "id": str(uuid.uuid4()),
            "products": [product_ids[key] for key in scenario["products"]],
            "created_at": now_iso(),
            "updated_at": now_iso(),
        }
        await db.scenarios.insert_one(doc)
        print(f"  Scénario: {doc['name']} ({doc['category']})")


async def main():
    if "--reset" in sys.argv:
        await reset()
    await seed_admin()
    await seed_catalog()
    print(f"\nSeed terminé. Connexion: {ADMIN_EMAIL}")

    client.close()


if __name__ == "__main__":
    asyncio.run(main())
