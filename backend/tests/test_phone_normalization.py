"""
Sakkanal - Tests normalisation téléphone Sénégal
Tests: normalize_phone_sn / validate_phone_sn + intégration avec la capture de lead.
Run: cd backend && pytest tests/test_phone_normalization.py -v
"""

from config import normalize_phone_sn, validate_phone_sn
from tests.helpers import SITE_BUREAU, run


# ═══════════════════════════════════════════════════════════════
# 1. NORMALISATION
# ═══════════════════════════════════════════════════════════════

class TestNormalizationPipeline:
    """Tests de normalize_phone_sn"""

    # --- Numéros valides ---

    def test_standard_mobile(self):
        s, n, q = normalize_phone_sn("771234568")
        assert s == "valid"
        assert n == "771234568"
        assert q == "valid"

    def test_with_spaces(self):
        s, n, q = normalize_phone_sn("77 123 45 68")
        assert s == "valid"
        assert n == "771234568"

    def test_plus221_prefix(self):
        s, n, q = normalize_phone_sn("+221 77 123 45 68")
        assert s == "valid"
        assert n == "771234568"

    def test_00221_prefix(self):
        s, n, q = normalize_phone_sn("00221771234568")
        assert s == "valid"
        assert n == "771234568"

    def test_221_prefix_12_digits(self):
        s, n, q = normalize_phone_sn("221781234569")
        assert s == "valid"
        assert n == "781234569"

    def test_landline_33(self):
        s, n, q = normalize_phone_sn("338234567")
        assert s == "valid"
        assert n == "338234567"

    def test_dots_and_dashes(self):
        s, n, q = normalize_phone_sn("76-123.45.67")
        assert s == "valid"
        assert n == "761234567"

    # --- Numéros invalides ---

    def test_empty(self):
        s, n, q = normalize_phone_sn("")
        assert s == "invalid"
        assert n == "Numéro vide"
        assert q == "invalid"

    def test_no_digits(self):
        s, n, q = normalize_phone_sn("abc")
        assert s == "invalid"
        assert n == "Aucun chiffre détecté"

    def test_too_short(self):
        s, n, q = normalize_phone_sn("77123")
        assert s == "invalid"
        assert "5 chiffres" in n

    def test_unknown_prefix(self):
        s, n, q = normalize_phone_sn("991234567")
        assert s == "invalid"
        assert n == "Préfixe inconnu: 99"

    def test_identical_digits(self):
        s, n, q = normalize_phone_sn("777777777")
        assert s == "invalid"
        assert "chiffres identiques" in n

    def test_blocked_test_number(self):
        s, n, q = normalize_phone_sn("771234567")
        assert s == "invalid"
        assert n == "Numéro bloqué: numéro test"

    def test_french_number_rejected(self):
        s, n, q = normalize_phone_sn("0612345679")
        assert s == "invalid"

    # --- Numéros suspects (acceptés) ---

    def test_repeated_digit_suspicious(self):
        s, n, q = normalize_phone_sn("771111112")
        assert s == "valid"
        assert q == "suspicious"

    def test_alternating_suspicious(self):
        s, n, q = normalize_phone_sn("777676767")
        assert s == "valid"
        assert q == "suspicious"


class TestValidateWrapper:

    def test_valid(self):
        assert validate_phone_sn("+221771234568") == (True, "771234568")

    def test_invalid(self):
        ok, error = validate_phone_sn("12")
        assert ok is False
        assert "chiffres" in error


# ═══════════════════════════════════════════════════════════════
# 2. INTÉGRATION CAPTURE DE LEAD
# ═══════════════════════════════════════════════════════════════

class TestLeadSubmissionPhone:

    def _submit(self, client, phone):
        return client.post("/api/public/leads", json={
            "contact": {"full_name": "Awa Diop", "email": "Awa@Example.sn", "phone": phone, "company": "Diop SARL"},
            "questionnaire": SITE_BUREAU,
        })

    def test_invalid_phone_rejected(self, client):
        response = self._submit(client, "12345")
        assert response.status_code == 400
        assert response.json()["detail"].startswith("Téléphone invalide")

    def test_missing_phone_rejected(self, client):
        response = self._submit(client, "")
        assert response.status_code == 400

    def test_phone_stored_normalized(self, client, db):
        response = self._submit(client, "+221 77 123 45 68")
        assert response.status_code == 200, response.text

        lead = run(db.leads.find_one({"id": response.json()["lead_id"]}))
        assert lead["phone"] == "771234568"
        assert lead["phone_quality"] == "valid"
        assert lead["email"] == "awa@example.sn"
