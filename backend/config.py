"""
Configuration et utilitaires partagés
"""

import os
import hashlib
import secrets
import math
import re
import unicodedata
from collections import Counter
from datetime import datetime, timezone
from motor.motor_asyncio import AsyncIOMotorClient
from dotenv import load_dotenv
from pathlib import Path

# Charger .env
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# MongoDB
MONGO_URL = os.environ.get('MONGO_URL', 'mongodb://localhost:27017')
DB_NAME = os.environ.get('DB_NAME', 'sakkanal')

client = AsyncIOMotorClient(MONGO_URL)
db = client[DB_NAME]

CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')
SESSION_DAYS = int(os.environ.get('SESSION_DAYS', '7'))
SCHEDULER_ENABLED = os.environ.get('SCHEDULER_ENABLED', 'true').lower() in ('1', 'true', 'yes')


# ==================== HELPERS ====================

def hash_password(password: str) -> str:
    """Hash un mot de passe avec SHA256"""
    return hashlib.sha256(password.encode()).hexdigest()

def generate_token() -> str:
    """Génère un token de session sécurisé"""
    return secrets.token_urlsafe(32)

def now_iso() -> str:
    """Retourne la date/heure actuelle en ISO"""
    return datetime.now(timezone.utc).isoformat()

def timestamp() -> int:
    """Retourne le timestamp actuel"""
    return int(datetime.now(timezone.utc).timestamp())

def round_half_up(value: float, digits: int = 0) -> float:
    """Arrondi commercial (0.5 -> 1), round() de Python arrondit au pair"""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


# ==================== TÉLÉPHONE SÉNÉGAL ====================

# 70/75/76/77/78 mobiles, 33 fixe, 30 VoIP
VALID_PREFIXES_SN = ("70", "75", "76", "77", "78", "33", "30")

BLOCKED_NUMBERS_SN = {
    "771234567",  # Numéro test ultra commun
    "781234567",
}

BLOCKED_SEQUENCES_SN = {
    "123456789",
    "987654321",
}


def validate_phone_sn(phone: str) -> tuple[bool, str]:
    """
    Wrapper simple autour de normalize_phone_sn.
    Returns: (is_valid, cleaned_phone_or_error)
    """
    status, normalized, _quality = normalize_phone_sn(phone)
    if status == "invalid":
        return False, normalized
    return True, normalized


def normalize_phone_sn(phone: str) -> tuple[str, str, str]:
    """
    Normalise et valide un numéro de téléphone sénégalais.
    FORMAT UNIQUE EN BASE: XXXXXXXXX (9 chiffres, sans indicatif)

    Pipeline:
      1. Supprimer tous les caractères non numériques
      2. Gestion indicatif Sénégal (+221, 00221, 221)
      3. Validation stricte (longueur=9, préfixe opérateur connu)
      4. Blocage faux numéros évidents
      5. Détection patterns suspects

    Returns: (status, normalized_or_error, quality)
      status:  "valid" | "invalid"
      normalized_or_error: "771234568" si valid, message d'erreur si invalid
      quality: "valid" | "suspicious" | "invalid"
    """
    if not phone or not phone.strip():
        return "invalid", "Numéro vide", "invalid"

    # ═══════ ÉTAPE 1: Nettoyer ═══════
    digits = ''.join(filter(str.isdigit, phone))

    if not digits:
        return "invalid", "Aucun chiffre détecté", "invalid"

    # ═══════ ÉTAPE 2: Indicatif Sénégal ═══════
    if digits.startswith("00221") and len(digits) == 14:
        digits = digits[5:]

    if digits.startswith("221") and len(digits) == 12:
        digits = digits[3:]

    # ═══════ ÉTAPE 3: Validation stricte ═══════
    if len(digits) != 9:
        return "invalid", f"Format invalide: {len(digits)} chiffres (9 requis)", "invalid"

    if not digits.startswith(VALID_PREFIXES_SN):
        return "invalid", f"Préfixe inconnu: {digits[:2]}", "invalid"

    # ═══════ ÉTAPE 4: Blocage faux numéros ═══════
    if len(set(digits)) == 1:
        return "invalid", f"Numéro bloqué: {digits} (chiffres identiques)", "invalid"

    if digits in BLOCKED_SEQUENCES_SN:
        return "invalid", "Numéro bloqué: séquence interdite", "invalid"

    if digits in BLOCKED_NUMBERS_SN:
        return "invalid", "Numéro bloqué: numéro test", "invalid"

    # ═══════ ÉTAPE 5: Patterns suspects ═══════
    quality = "valid"
    after_prefix = digits[2:]  # Les 7 derniers chiffres

    # Même chiffre 6+ fois sur 7 (ex: 771111111)
    counts = Counter(after_prefix)
    if counts.most_common(1)[0][1] >= 6:
        quality = "suspicious"

    # Alternance ABABABA (ex: 777676767)
    if after_prefix[0::2] == after_prefix[0] * 4 and after_prefix[1::2] == after_prefix[1] * 3:
        quality = "suspicious"

    return "valid", digits, quality


def format_thousands(value: float) -> str:
    """1234567 -> '1 234 567'"""
    return f"{int(round_half_up(value or 0)):,}".replace(",", " ")


def format_date_fr(iso_value: str) -> str:
    """ISO -> jj/mm/aaaa, chaîne vide si absente ou illisible"""
    if not iso_value:
        return ""
    try:
        return datetime.fromisoformat(str(iso_value).replace("Z", "+00:00")).strftime("%d/%m/%Y")
    except ValueError:
        return ""


def ascii_slug(text: str, fallback: str = "export") -> str:
    """Texte libre -> fragment de nom de fichier ASCII ("Clients d’été" -> "Clients_d_ete")"""
    bare = "".join(c for c in unicodedata.normalize("NFKD", text or "") if not unicodedata.combining(c))
    return re.sub(r"[^A-Za-z0-9]+", "_", bare).strip("_") or fallback


def created_at_range(date_from: str = None, date_to: str = None) -> dict:
    """
    Filtre Mongo sur created_at. Une date seule (YYYY-MM-DD) en borne haute
    couvre toute la journée.
    """
    bounds = {}
    if date_from:
        bounds["$gte"] = date_from
    if date_to:
        bounds["$lte"] = date_to + "T23:59:59.999999+00:00" if len(date_to) == 10 else date_to
    return {"created_at": bounds} if bounds else {}
