"""
Sakkanal - Routes Auth
Sessions des administrateurs INESIC, gestion des comptes et journal d'activité.
"""

from fastapi import APIRouter, HTTPException, Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from datetime import datetime, timezone, timedelta
from typing import Optional
import uuid

from models.auth import UserLogin, UserCreate, UserUpdate
from config import db, hash_password, generate_token, now_iso, SESSION_DAYS
from services.activity_logger import log_activity, get_activity_logs as fetch_activity_logs
from services.permissions import (
    get_preset_permissions,
    normalize_permissions,
    UnknownPermission,
    require_permission,
    VALID_ROLES,
    ALL_PERMISSION_KEYS,
    ROLE_PRESETS,
)

router = APIRouter(prefix="/auth", tags=["Auth"])
security = HTTPBearer(auto_error=False)

PUBLIC_USER_FIELDS = {"_id": 0, "password": 0}


# ==================== SESSION ====================

async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)):
    """Administrateur de la session Bearer en cours."""
    if not credentials:
        raise HTTPException(status_code=401, detail="Non authentifié")

    session = await db.sessions.find_one({
        "token": credentials.credentials,
        "expires_at": {"$gt": now_iso()}
    })
    if not session:
        raise HTTPException(status_code=401, detail="Session expirée")

    user = await db.admin_users.find_one({"id": session["user_id"]}, PUBLIC_USER_FIELDS)
    if not user:
        raise HTTPException(status_code=401, detail="Utilisateur non trouvé")

    if not user.get("is_active", True):
        raise HTTPException(status_code=403, detail="Compte désactivé")

    if not user.get("permissions"):
        user["permissions"] = get_preset_permissions(user.get("role", "viewer"))

    return user


def _permissions_or_400(permissions: dict) -> dict:
    try:
        return normalize_permissions(permissions)
    except UnknownPermission as e:
        raise HTTPException(status_code=400, detail=str(e))


def _guard_super_admin(actor: dict, target_role: Optional[str], message: str):
    """Seul un super_admin touche à un compte ou un rôle super_admin."""
    if target_role == "super_admin" and actor.get("role") != "super_admin":
        raise HTTPException(status_code=403, detail=message)


async def _get_admin_or_404(user_id: str) -> dict:
    target = await db.admin_users.find_one({"id": user_id}, PUBLIC_USER_FIELDS)
    if not target:
        raise HTTPException(status_code=404, detail="Utilisateur non trouvé")
    return target


@router.post("/login")
async def login(data: UserLogin, request: Request):
    user = await db.admin_users.find_one({"email": data.email.lower().strip()}, {"_id": 0})

    if not user or user.get("password") != hash_password(data.password):
        raise HTTPException(status_code=401, detail="Email ou mot de passe incorrect")

    if not user.get("is_active", True):
        raise HTTPException(status_code=403, detail="Compte désactivé")

    # Sessions expirées de cet admin
    await db.sessions.delete_many({"user_id": user["id"], "expires_at": {"$lte": now_iso()}})

    token = generate_token()
    expires_at = (datetime.now(timezone.utc) + timedelta(days=SESSION_DAYS)).isoformat()
    await db.sessions.insert_one({
        "token": token,
        "user_id": user["id"],
        "created_at": now_iso(),
        "expires_at": expires_at
    })
    await db.admin_users.update_one({"id": user["id"]}, {"$set": {"last_login": now_iso()}})

    await log_activity(
        user=user,
        action="login",
        entity_type="user",
        entity_id=user["id"],
        ip_address=request.client.host if request.client else None
    )

    return {
        "token": token,
        "expires_at": expires_at,
        "user": {
            "id": user["id"],
            "email": user["email"],
            "nom": user.get("nom", ""),
            "role": user.get("role", "viewer"),
            "permissions": user.get("permissions") or get_preset_permissions(user.get("role", "viewer")),
        }
    }


@router.post("/logout")
async def logout(
    user: dict = Depends(get_current_user),
    credentials: HTTPAuthorizationCredentials = Depends(security)
):
    await db.sessions.delete_one({"token": credentials.credentials})
    await log_activity(user=user, action="logout", entity_type="user", entity_id=user["id"])
    return {"success": True}


@router.get("/me")
async def get_me(user: dict = Depends(get_current_user)):
    return user


# ==================== COMPTES ADMIN (users.manage) ====================

@router.get("/users")
async def list_users(
    role: Optional[str] = None,
    active_only: bool = False,
    user: dict = Depends(require_permission("users.manage"))
):
    query = {}
    if role:
        query["role"] = role
    if active_only:
        query["is_active"] = {"$ne": False}

    users = await db.admin_users.find(query, PUBLIC_USER_FIELDS).sort("created_at", 1).to_list(200)
    return {"users": users, "count": len(users)}


@router.post("/users")
async def create_user(data: UserCreate, user: dict = Depends(require_permission("users.manage"))):
    """
    Crée un compte administrateur.
    Sans permissions explicites, le preset du rôle s'applique.
    """
    _guard_super_admin(user, data.role, "Seul un super_admin peut créer un super_admin")

    email = data.email.lower().strip()
    if await db.admin_users.find_one({"email": email}):
        raise HTTPException(status_code=400, detail="Cet email existe déjà")

    permissions = _permissions_or_400(data.permissions) if data.permissions else get_preset_permissions(data.role)

    new_user = {
        "id": str(uuid.uuid4()),
        "email": email,
        "password": hash_password(data.password),
        "nom": data.nom.strip(),
        "role": data.role,
        "permissions": permissions,
        "is_active": True,
        "last_login": None,
        "created_by": user.get("id"),
        "created_at": now_iso(),
        "updated_at": now_iso(),
    }
    await db.admin_users.insert_one(new_user)

    await log_activity(user, "create", "user", new_user["id"], email, details={"role": data.role})

    return {"success": True, "user": await _get_admin_or_404(new_user["id"])}


@router.put("/users/{user_id}")
async def update_user(user_id: str, data: UserUpdate, user: dict = Depends(require_permission("users.manage"))):
    """
    Un changement de rôle sans permissions explicites réapplique le preset.
    Désactiver un compte ferme ses sessions.
    """
    target = await _get_admin_or_404(user_id)
    _guard_super_admin(user, target.get("role"), "Impossible de modifier un super_admin")
    _guard_super_admin(user, data.role, "Impossible d'attribuer le rôle super_admin")

    changes = {}
    if data.nom is not None:
        changes["nom"] = data.nom.strip()
    if data.role is not None:
        changes["role"] = data.role
        changes["permissions"] = get_preset_permissions(data.role)
    if data.permissions is not None:
        changes["permissions"] = _permissions_or_400(data.permissions)
    if data.is_active is not None:
        if data.is_active is False and user_id == user.get("id"):
            raise HTTPException(status_code=400, detail="Impossible de désactiver votre propre compte")
        changes["is_active"] = data.is_active

    if changes:
        await db.admin_users.update_one({"id": user_id}, {"$set": {**changes, "updated_at": now_iso()}})
        if changes.get("is_active") is False:
            await db.sessions.delete_many({"user_id": user_id})
        await log_activity(user, "update", "user", user_id, target.get("email"), details=changes)

    return {"success": True, "user": await _get_admin_or_404(user_id)}


@router.delete("/users/{user_id}")
async def deactivate_user(user_id: str, user: dict = Depends(require_permission("users.manage"))):
    """Les comptes ne sont jamais supprimés: l'historique d'activité y reste rattaché."""
    target = await _get_admin_or_404(user_id)

    if user_id == user.get("id"):
        raise HTTPException(status_code=400, detail="Impossible de désactiver votre propre compte")
    _guard_super_admin(user, target.get("role"), "Impossible de désactiver un super_admin")

    await db.admin_users.update_one({"id": user_id}, {"$set": {"is_active": False, "updated_at": now_iso()}})
    await db.sessions.delete_many({"user_id": user_id})

    await log_activity(user, "delete", "user", user_id, target.get("email"))
    return {"success": True}


@router.get("/permission-keys")
async def list_permission_keys(user: dict = Depends(require_permission("users.manage"))):
    """Écran de gestion des comptes: clés, presets et rôles."""
    return {"keys": ALL_PERMISSION_KEYS, "presets": ROLE_PRESETS, "roles": VALID_ROLES}


# ==================== JOURNAL (activity.view) ====================

@router.get("/activity-logs")
async def get_activity_logs(
    user_id: Optional[str] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    action: Optional[str] = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    limit: int = 100,
    skip: int = 0,
    user: dict = Depends(require_permission("activity.view"))
):
    return await fetch_activity_logs(
        user_id=user_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        skip=skip,
    )
