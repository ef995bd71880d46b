"""
Routes Catalogue - Produits et scénarios INESIC
"""

from fastapi import APIRouter, HTTPException, Depends
import uuid

from models import ProductCreate, ProductUpdate, ScenarioCreate, ScenarioUpdate
from config import db, now_iso
from services.permissions import require_permission
from services.activity_logger import log_activity

router = APIRouter(prefix="/catalog", tags=["Catalogue"])


# ==================== PRODUITS ====================

@router.get("/products")
async def list_products(category: str = None, user: dict = Depends(require_permission("catalog.view"))):
    query = {"category": category} if category else {}
    products = await db.products.find(query, {"_id": 0}).sort("name", 1).to_list(1000)
    return {"products": products, "count": len(products)}


@router.get("/products/{product_id}")
async def get_product(product_id: str, user: dict = Depends(require_permission("catalog.view"))):
    product = await db.products.find_one({"id": product_id}, {"_id": 0})
    if not product:
        raise HTTPException(status_code=404, detail="Produit non trouvé")
    return product


@router.post("/products")
async def create_product(data: ProductCreate, user: dict = Depends(require_permission("catalog.manage"))):
    product = {
        "id": str(uuid.uuid4()),
        **data.model_dump(mode="json"),
        "created_at": now_iso(),
        "updated_at": now_iso()
    }
    await db.products.insert_one(product)
    product.pop("_id", None)

    await log_activity(user, "create", "product", product["id"], product["name"])
    return {"success": True, "product": product}


@router.put("/products/{product_id}")
async def update_product(
    product_id: str,
    data: ProductUpdate,
    user: dict = Depends(require_permission("catalog.manage"))
):
    product = await db.products.find_one({"id": product_id}, {"_id": 0})
    if not product:
        raise HTTPException(status_code=404, detail="Produit non trouvé")

    update_data = data.model_dump(mode="json", exclude_none=True)
    update_data["updated_at"] = now_iso()
    await db.products.update_one({"id": product_id}, {"$set": update_data})

    await log_activity(user, "update", "product", product_id, product.get("name"))

    updated = await db.products.find_one({"id": product_id}, {"_id": 0})
    return {"success": True, "product": updated}


@router.delete("/products/{product_id}")
async def delete_product(product_id: str, user: dict = Depends(require_permission("catalog.manage"))):
    """Supprime le produit et le retire des scénarios qui le référencent."""
    product = await db.products.find_one({"id": product_id}, {"_id": 0})
    if not product:
        raise HTTPException(status_code=404, detail="Produit non trouvé")

    await db.products.delete_one({"id": product_id})
    await db.scenarios.update_many({"products": product_id}, {"$pull": {"products": product_id}})

    await log_activity(user, "delete", "product", product_id, product.get("name"))
    return {"success": True}


# ==================== SCÉNARIOS ====================

async def check_products_exist(product_ids: list):
    if not product_ids:
        return
    found = await db.products.count_documents({"id": {"$in": product_ids}})
    if found != len(set(product_ids)):
        raise HTTPException(status_code=400, detail="Produit inconnu dans le scénario")


@router.get("/scenarios")
async def list_scenarios(user: dict = Depends(require_permission("catalog.view"))):
    scenarios = await db.scenarios.find({}, {"_id": 0}).sort("min_budget", 1).to_list(500)
    return {"scenarios": scenarios, "count": len(scenarios)}


@router.get("/scenarios/{scenario_id}")
async def get_scenario(scenario_id: str, user: dict = Depends(require_permission("catalog.view"))):
    scenario = await db.scenarios.find_one({"id": scenario_id}, {"_id": 0})
    if not scenario:
        raise HTTPException(status_code=404, detail="Scénario non trouvé")

    products = await db.products.find({"id": {"$in": scenario.get("products", [])}}, {"_id": 0}).to_list(100)
    return {**scenario, "product_details": products}


@router.post("/scenarios")
async def create_scenario(data: ScenarioCreate, user: dict = Depends(require_permission("catalog.manage"))):
    await check_products_exist(data.products)

    scenario = {
        "id": str(uuid.uuid4()),
        **data.model_dump(mode="json"),
        "created_at": now_iso(),
        "updated_at": now_iso()
    }
    await db.scenarios.insert_one(scenario)
    scenario.pop("_id", None)

    await log_activity(user, "create", "scenario", scenario["id"], scenario["name"])
    return {"success": True, "scenario": scenario}


@router.put("/scenarios/{scenario_id}")
async def update_scenario(
    scenario_id: str,
    data: ScenarioUpdate,
    user: dict = Depends(require_permission("catalog.manage"))
):
    scenario = await db.scenarios.find_one({"id": scenario_id}, {"_id": 0})
    if not scenario:
        raise HTTPException(status_code=404, detail="Scénario non trouvé")

    # max_budget: null retire le plafond, les autres null sont ignorés
    update_data = {
        key: value for key, value in data.model_dump(mode="json", exclude_unset=True).items()
        if value is not None or key == "max_budget"
    }

    if "name" in update_data:
        update_data["name"] = update_data["name"].strip()
        if not update_data["name"]:
            raise HTTPException(status_code=400, detail="Nom du scénario requis")

    # Plage de budget vérifiée sur le document fusionné
    min_budget = update_data.get("min_budget", scenario.get("min_budget") or 0)
    max_budget = update_data.get("max_budget", scenario.get("max_budget"))
    if max_budget is not None and max_budget < min_budget:
        raise HTTPException(status_code=400, detail="max_budget doit être supérieur ou égal à min_budget")

    if "products" in update_data:
        await check_products_exist(update_data["products"])

    update_data["updated_at"] = now_iso()
    await db.scenarios.update_one({"id": scenario_id}, {"$set": update_data})

    await log_activity(user, "update", "scenario", scenario_id, scenario.get("name"))

    updated = await db.scenarios.find_one({"id": scenario_id}, {"_id": 0})
    return {"success": True, "scenario": updated}


@router.delete("/scenarios/{scenario_id}")
async def delete_scenario(scenario_id: str, user: dict = Depends(require_permission("catalog.manage"))):
    scenario = await db.scenarios.find_one({"id": scenario_id}, {"_id": 0})
    if not scenario:
        raise HTTPException(status_code=404, detail="Scénario non trouvé")

    await db.scenarios.delete_one({"id": scenario_id})

    await log_activity(user, "delete", "scenario", scenario_id, scenario.get("name"))
    return {"success": True}
