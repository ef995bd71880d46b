"""
Sakkanal - Permission System
Granular permission keys + role presets + FastAPI dependencies.
Permissions are the source of truth. Roles are presets only.
"""

import logging
from typing import Dict
from fastapi import Depends, HTTPException

logger = logging.getLogger("permissions")

# ════════════════════════════════════════════════════════════════════════
# ALL PERMISSION KEYS
# ════════════════════════════════════════════════════════════════════════

ALL_PERMISSION_KEYS = [
    "dashboard.view",

    "leads.view",
    "leads.edit",
    "leads.delete",
    "leads.export",

    "catalog.view",
    "catalog.manage",

    "segments.view",
    "segments.manage",

    "crm.manage",

    "notifications.view",

    "analytics.view",

    "training.view",
    "training.manage",

    "activity.view",

    "users.manage",
]

# ════════════════════════════════════════════════════════════════════════
# ROLE PRESETS (defaults when creating a user with a role)
# ════════════════════════════════════════════════════════════════════════

ROLE_PRESETS: Dict[str, Dict[str, bool]] = {
    "super_admin": {k: True for k in ALL_PERMISSION_KEYS},

    "admin": {
        "dashboard.view": True,
        "leads.view": True, "leads.edit": True, "leads.delete": True, "leads.export": True,
        "catalog.view": True, "catalog.manage": True,
        "segments.view": True, "segments.manage": True,
        "crm.manage": True,
        "notifications.view": True,
        "analytics.view": True,
        "training.view": True, "training.manage": True,
        "activity.view": True,
        "users.manage": False,
    },

    "commercial": {
        "dashboard.view": True,
        "leads.view": True, "leads.edit": True, "leads.delete": False, "leads.export": True,
        "catalog.view": True, "catalog.manage": False,
        "segments.view": True, "segments.manage": True,
        "crm.manage": False,
        "notifications.view": True,
        "analytics.view": True,
        "training.view": False, "training.manage": False,
        "activity.view": False,
        "users.manage": False,
    },

    "viewer": {
        "dashboard.view": True,
        "leads.view": True, "leads.edit": False, "leads.delete": False, "leads.export": False,
        "catalog.view": True, "catalog.manage": False,
        "segments.view": True, "segments.manage": False,
        "crm.manage": False,
        "notifications.view": True,
        "analytics.view": True,
        "training.view": True, "training.manage": False,
        "activity.view": False,
        "users.manage": False,
    },
}

VALID_ROLES = list(ROLE_PRESETS.keys())


def get_preset_permissions(role: str) -> Dict[str, bool]:
    """Returns the default permissions for a role."""
    return dict(ROLE_PRESETS.get(role, ROLE_PRESETS["viewer"]))


class UnknownPermission(ValueError):
    pass


def normalize_permissions(permissions: Dict[str, bool]) -> Dict[str, bool]:
    """
    Complète un jeu de permissions saisi à la main: toutes les clés
    présentes, absentes = False. Une clé inconnue lève UnknownPermission.
    """
    unknown = sorted(set(permissions) - set(ALL_PERMISSION_KEYS))
    if unknown:
        raise UnknownPermission(f"Permission inconnue: {', '.join(unknown)}")
    return {key: permissions.get(key, False) is True for key in ALL_PERMISSION_KEYS}


# ════════════════════════════════════════════════════════════════════════
# PERMISSION CHECK HELPERS
# ════════════════════════════════════════════════════════════════════════

def user_has_permission(user: dict, key: str) -> bool:
    """Check if user has a specific permission."""
    if user.get("role") == "super_admin":
        return True
    perms = user.get("permissions", {})
    return perms.get(key, False) is True


def check_permission(user: dict, key: str):
    """Raise 403 when the user lacks the permission."""
    if not user_has_permission(user, key):
        logger.warning(
            f"[PERMISSION_DENIED] user={user.get('email')} "
            f"key={key} role={user.get('role')}"
        )
        raise HTTPException(status_code=403, detail=f"Permission requise: {key}")


# ════════════════════════════════════════════════════════════════════════
# FASTAPI DEPENDENCIES
# ════════════════════════════════════════════════════════════════════════

def require_permission(permission_key: str):
    """
    FastAPI dependency factory.
    Usage: user: dict = Depends(require_permission("leads.view"))
    """
    from routes.auth import get_current_user

    async def _check(user: dict = Depends(get_current_user)):
        check_permission(user, permission_key)
        return user

    return _check
