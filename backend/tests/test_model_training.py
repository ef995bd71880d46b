"""
Sakkanal - Tests panneau d'entraînement
"""

import random
from datetime import datetime, timezone

import pytest

from services.model_training import (
    SIMULATED_METRIC_RANGES,
    training_stats,
    simulate_metrics,
    next_model_version,
    realtime_stats,
    train_model,
    activate_model,
    get_model_metrics,
    collect_project_data,
    ModelNotFound,
    LeadNotFound,
)
from tests.helpers import lead_doc, SITE_BUREAU

ROWS = [
    {"site_type": "bureau", "chosen_scenario_category": "standard", "actual_savings_percent": 20, "roi_months": 30},
    {"site_type": "bureau", "chosen_scenario_category": "standard", "actual_savings_percent": 30, "roi_months": 20},
    {"site_type": "bureau", "chosen_scenario_category": "premium", "actual_savings_percent": 40, "roi_months": 40},
    {"site_type": "usine", "chosen_scenario_category": "premium", "actual_savings_percent": 35},
]


class TestTrainingStats:

    def test_site_patterns(self):
        stats = training_stats(ROWS)
        bureau = stats["site_patterns"]["bureau"]

        assert stats["total_samples"] == 4
        assert bureau["count"] == 3
        assert bureau["avg_savings"] == 30
        assert bureau["scenarios"] == {"standard": 2, "premium": 1}
        assert bureau["most_chosen"] == "standard"

    def test_scenario_patterns(self):
        premium = training_stats(ROWS)["scenario_patterns"]["premium"]
        assert premium["count"] == 2
        assert premium["avg_savings"] == 37.5
        assert premium["avg_roi"] == 20

    def test_empty(self):
        assert training_stats([]) == {"site_patterns": {}, "scenario_patterns": {}, "total_samples": 0}


class TestSimulatedMetrics:

    def test_within_ranges(self):
        metrics = simulate_metrics(random.Random(42))
        for name, (low, span) in SIMULATED_METRIC_RANGES.items():
            assert low <= metrics[name] <= low + span

    def test_version_naming(self):
        assert next_model_version(0) == "v1.0"
        assert next_model_version(4) == "v5.0"


class TestRealtimeStats:

    def test_no_prediction(self):
        assert realtime_stats([]) == {"message": "Aucune prédiction disponible"}

    def test_error_and_accuracy(self):
        stats = realtime_stats([
            {"predicted_savings": 20, "actual_savings": 22},
            {"predicted_savings": 25, "actual_savings": 15},
            {"predicted_savings": 18, "actual_savings": 18.5},
        ])
        # erreurs 2, 10, 0.5
        assert stats["total_predictions"] == 3
        assert stats["avg_error"] == 4.17
        assert stats["accuracy"] == 67


class TestModelLifecycle:

    @pytest.mark.asyncio
    async def test_train_creates_active_version(self, db):
        await db.ai_training_data.insert_many([dict(row) for row in ROWS])

        first = await train_model()
        second = await train_model()

        assert first["model"]["model_version"] == "v1.0"
        assert second["model"]["model_version"] == "v2.0"
        assert second["model"]["training_samples"] == 4
        assert second["stats"]["site_patterns"]["bureau"]["most_chosen"] == "standard"

        active = await db.ai_model_metrics.find({"is_active": True}).to_list(10)
        assert [m["model_version"] for m in active] == ["v2.0"]

    @pytest.mark.asyncio
    async def test_activate_previous_version(self, db):
        await train_model()
        await train_model()

        result = await activate_model("v1.0")
        assert result["success"] is True

        active = await db.ai_model_metrics.find({"is_active": True}).to_list(10)
        assert [m["model_version"] for m in active] == ["v1.0"]

    @pytest.mark.asyncio
    async def test_activate_unknown_version(self, db):
        with pytest.raises(ModelNotFound):
            await activate_model("v9.0")

    @pytest.mark.asyncio
    async def test_metrics(self, db):
        await train_model()
        await db.ai_predictions.insert_many([
            {"id": "p1", "predicted_savings": 20, "actual_savings": 21, "created_at": "2026-03-01"},
            {"id": "p2", "predicted_savings": 20, "actual_savings": None, "created_at": "2026-03-02"},
        ])

        metrics = await get_model_metrics()
        assert metrics["active_model"]["model_version"] == "v1.0"
        assert metrics["realtime_stats"]["total_predictions"] == 1
        assert metrics["realtime_stats"]["accuracy"] == 100
        assert len(metrics["model_history"]) == 1


class TestCollectProjectData:

    @pytest.mark.asyncio
    async def test_unknown_lead(self, db):
        with pytest.raises(LeadNotFound):
            await collect_project_data("inconnu", {"savings_percent": 20})

    @pytest.mark.asyncio
    async def test_updates_prediction_and_history(self, db):
        await db.scenarios.insert_one({"id": "std", "category": "standard"})
        lead = lead_doc(form_data=SITE_BUREAU, selected_scenario_id="std")
        await db.leads.insert_one(dict(lead))
        await db.ai_predictions.insert_one({
            "id": "pred1", "lead_id": lead["id"], "predicted_savings": 20,
            "actual_savings": None, "created_at": "2026-03-01T00:00:00+00:00",
        })

        result = await collect_project_data(lead["id"], {"savings_percent": 23, "success": True, "satisfaction": 9})

        assert result["success"] is True
        assert result["should_retrain"] is False
        assert result["new_data_count"] == 1

        prediction = await db.ai_predictions.find_one({"id": "pred1"})
        assert prediction["actual_savings"] == 23
        assert prediction["feedback_score"] == 9

        row = await db.ai_training_data.find_one({}, {"_id": 0})
        assert row["chosen_scenario_category"] == "standard"
        assert row["site_type"] == "bureau"
        assert row["zones_count"] == 2
        assert row["actual_savings_percent"] == 23

    @pytest.mark.asyncio
    async def test_should_retrain_after_ten_rows(self, db):
        now = datetime.now(timezone.utc)
        await db.ai_training_data.insert_many([
            {"id": str(i), "created_at": now.isoformat()} for i in range(9)
        ])
        await db.leads.insert_one(lead_doc(id="lead-10"))

        result = await collect_project_data("lead-10", {"savings_percent": 18}, now=now)
        assert result["should_retrain"] is True
        assert result["new_data_count"] == 10
