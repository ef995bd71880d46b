"""
Sakkanal - Tests scoring des leads
"""

from services.lead_scoring import (
    calculate_lead_score,
    priority_for,
    get_score_color,
    get_score_gradient,
    estimate_commercial_potential,
    analyze_lead_needs,
    get_lead_insights,
)
from tests.helpers import SITE_BUREAU


class TestCalculateLeadScore:

    def test_maximum_score(self):
        score = calculate_lead_score({
            "electricity_bill": 600000,
            "installation_power": 120,
            "budget": 20000000,
            "specific_needs": ["a", "b", "c", "d"],
            "zones_to_monitor": ["1", "2", "3", "4"],
        })
        assert score["breakdown"] == {"electricity": 30, "power": 25, "budget": 20, "needs": 15, "zones": 10}
        assert score["total"] == 100
        assert score["priority"] == "HOT"

    def test_minimal_lead(self):
        """Valeurs par défaut: 5 + 5, budget non renseigné = 0"""
        score = calculate_lead_score({"electricity_bill": 10000})
        assert score["breakdown"]["electricity"] == 5
        assert score["breakdown"]["power"] == 5
        assert score["breakdown"]["budget"] == 0
        assert score["total"] == 10
        assert score["priority"] == "COLD"

    def test_bureau_just_below_warm(self):
        score = calculate_lead_score(SITE_BUREAU)
        assert score["breakdown"] == {"electricity": 20, "power": 10, "budget": 5, "needs": 4, "zones": 5}
        assert score["total"] == 44
        assert score["priority"] == "COLD"

    def test_half_point_rounds_up(self):
        score = calculate_lead_score({
            "electricity_bill": 50000,
            "installation_power": 25,
            "budget": 3000000,
            "specific_needs": ["a", "b"],
            "zones_to_monitor": ["1", "2", "3"],
        })
        # 10 + 10 + 10 + 8 + 7.5
        assert score["total"] == 46
        assert score["priority"] == "WARM"

    def test_needs_capped(self):
        score = calculate_lead_score({"specific_needs": list("abcdefgh")})
        assert score["breakdown"]["needs"] == 15


class TestPriority:

    def test_thresholds(self):
        assert priority_for(70) == "HOT"
        assert priority_for(69.5) == "WARM"
        assert priority_for(45) == "WARM"
        assert priority_for(44) == "COLD"

    def test_colors(self):
        assert get_score_color(80) == "#e74c3c"
        assert get_score_color(50) == "#f39c12"
        assert get_score_color(10) == "#3498db"

    def test_gradients(self):
        assert get_score_gradient(80) == "linear-gradient(135deg, #e74c3c, #c0392b)"
        assert get_score_gradient(10).endswith("#2980b9)")


class TestCommercialAnalysis:

    def test_potential_without_budget(self):
        assert estimate_commercial_potential({"electricity_bill": 100000}) == 3000000

    def test_potential_capped_by_budget(self):
        assert estimate_commercial_potential({"electricity_bill": 100000, "budget": 1000000}) == 1000000

    def test_cost_reduction_urgent(self):
        analysis = analyze_lead_needs({"electricity_bill": 350000, "specific_needs": ["Réduire les coûts"]})
        assert analysis["primary_need"] == "Réduction des coûts énergétiques"
        assert analysis["urgency"] == "high"
        assert analysis["recommended_scenario"] == "economic"

    def test_large_budget_recommends_premium(self):
        analysis = analyze_lead_needs({"electricity_bill": 50000, "budget": 12000000})
        assert analysis["recommended_scenario"] == "premium"
        assert analysis["primary_need"] == "Surveillance générale"
        assert analysis["urgency"] == "low"

    def test_insights_for_hot_lead(self):
        insights = get_lead_insights({
            "electricity_bill": 600000,
            "installation_power": 120,
            "budget": 20000000,
            "specific_needs": ["a", "b", "c"],
            "zones_to_monitor": ["1", "2", "3", "4", "5"],
        })
        assert insights[0].startswith("🔥")
        assert any("Facture élevée" in i for i in insights)
        assert any("Potentiel commercial estimé: 18.0M FCFA" in i for i in insights)
        assert any("Nombreuses zones" in i for i in insights)

    def test_no_insight_for_small_lead(self):
        assert get_lead_insights({"electricity_bill": 20000}) == []
