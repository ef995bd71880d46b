"""
Sakkanal - API Backend
Questionnaire public, recommandations et back-office INESIC

Démarre avec:
    uvicorn server:app --host 0.0.0.0 --port 8001 --reload
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from config import CORS_ORIGINS, SCHEDULER_ENABLED

# Configuration logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("sakkanal")

# Créer l'app
app = FastAPI(
    title="Sakkanal",
    description="Recommandation de solutions de monitoring énergétique et gestion des leads",
    version="1.0.0"
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ==================== IMPORT DES ROUTES ====================

from routes import (  # noqa: E402
    auth, public, leads, catalog, segments, crms, notifications, analytics, training
)

# Routes avec préfixe /api
app.include_router(auth.router, prefix="/api")
app.include_router(public.router, prefix="/api")
app.include_router(leads.router, prefix="/api")
app.include_router(catalog.router, prefix="/api")
app.include_router(segments.router, prefix="/api")
app.include_router(crms.router, prefix="/api")
app.include_router(notifications.router, prefix="/api")
app.include_router(analytics.router, prefix="/api")
app.include_router(training.router, prefix="/api")

# ==================== ROUTE RACINE ====================

@app.get("/")
async def root():
    return {
        "name": "Sakkanal API",
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs"
    }


@app.get("/api/health")
async def health():
    return {"status": "ok"}


# ==================== STARTUP ====================

@app.on_event("startup")
async def startup():
    logger.info("🚀 Sakkanal démarré")

    from config import db

    await db.admin_users.create_index("email", unique=True)
    await db.sessions.create_index("token")
    await db.sessions.create_index("expires_at")
    await db.scenarios.create_index("id", unique=True)
    await db.products.create_index("id", unique=True)
    await db.leads.create_index("id", unique=True)
    await db.leads.create_index("created_at")
    await db.leads.create_index("status")
    await db.leads.create_index("phone")
    await db.lead_interactions.create_index("lead_id")
    await db.notifications.create_index([("admin_user_id", 1), ("created_at", -1)])
    await db.crm_sync_queue.create_index("status")
    await db.crm_sync_queue.create_index("next_retry_at")
    await db.ai_training_data.create_index([("site_type", 1), ("electricity_bill", 1)])
    await db.ai_predictions.create_index("lead_id")
    await db.ai_model_metrics.create_index("model_version")
    await db.page_visits.create_index("created_at")

    logger.info("✅ Index MongoDB créés")

    if SCHEDULER_ENABLED:
        from scheduler_service import task_scheduler
        task_scheduler.start()


@app.on_event("shutdown")
async def shutdown():
    if SCHEDULER_ENABLED:
        from scheduler_service import task_scheduler
        task_scheduler.stop()

    from config import client
    client.close()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
