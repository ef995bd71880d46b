"""
Sakkanal - Tests notifications et tâches planifiées
"""

from datetime import datetime, timezone

import pytest

from scheduler_service import TaskScheduler
from services.notifier import (
    notify_admins,
    notify_new_lead,
    remind_inactive_leads,
    list_notifications,
)
from tests.helpers import make_admin, lead_doc

NOW = datetime(2026, 3, 20, 9, 0, tzinfo=timezone.utc)


class TestFanOut:

    @pytest.mark.asyncio
    async def test_one_per_active_admin_with_permission(self, db):
        make_admin(db, "super_admin")
        make_admin(db, "viewer")
        make_admin(db, "admin", is_active=False)
        make_admin(db, "commercial", permissions={"leads.view": True})

        count = await notify_admins("urgent", "Test", "Message", priority="high")

        assert count == 2
        assert await db.notifications.count_documents({"is_read": False, "priority": "high"}) == 2

    @pytest.mark.asyncio
    async def test_unknown_type_or_priority(self, db):
        make_admin(db, "admin")
        with pytest.raises(ValueError, match="Type de notification inconnu: promo"):
            await notify_admins("promo", "Test", "Message")
        with pytest.raises(ValueError, match="Priorité inconnue: critical"):
            await notify_admins("urgent", "Test", "Message", priority="critical")
        assert await db.notifications.count_documents({}) == 0

    @pytest.mark.asyncio
    async def test_no_admin(self, db):
        assert await notify_admins("urgent", "Test", "Message") == 0

    @pytest.mark.asyncio
    async def test_hot_lead_two_notifications(self, db):
        make_admin(db, "admin")
        lead = lead_doc(score=82, priority="HOT")

        assert await notify_new_lead(lead) == 2

        high = await db.notifications.find_one({"type": "high_value"})
        assert high["priority"] == "high"
        assert high["message"] == "Société Test a un score de 82/100 - contact immédiat recommandé"

    @pytest.mark.asyncio
    async def test_since_filter(self, db):
        admin = make_admin(db, "admin")
        await db.notifications.insert_many([
            {"id": "old", "admin_user_id": admin["id"], "is_read": False, "created_at": "2026-03-01T00:00:00+00:00"},
            {"id": "new", "admin_user_id": admin["id"], "is_read": False, "created_at": "2026-03-10T00:00:00+00:00"},
        ])

        polled = await list_notifications(admin["id"], since="2026-03-05T00:00:00+00:00")
        assert [n["id"] for n in polled] == ["new"]

    @pytest.mark.asyncio
    async def test_since_pages_oldest_first(self, db):
        admin = make_admin(db, "admin")
        await db.notifications.insert_many([
            {"id": f"n{i}", "admin_user_id": admin["id"], "is_read": False,
             "created_at": f"2026-03-10T10:00:{i:02d}+00:00"}
            for i in range(5)
        ])

        first = await list_notifications(admin["id"], since="2026-03-01T00:00:00+00:00", limit=3)
        assert [n["id"] for n in first] == ["n0", "n1", "n2"]

        second = await list_notifications(admin["id"], since=first[-1]["created_at"], limit=3)
        assert [n["id"] for n in second] == ["n3", "n4"]

        latest = await list_notifications(admin["id"], limit=2)
        assert [n["id"] for n in latest] == ["n4", "n3"]


class TestReminders:

    @pytest.mark.asyncio
    async def test_inactive_open_leads_only(self, db):
        make_admin(db, "admin")
        await db.leads.insert_many([
            lead_doc(id="idle", updated_at="2026-03-01T00:00:00+00:00"),
            lead_doc(id="recent", updated_at="2026-03-19T00:00:00+00:00"),
            lead_doc(id="won", status="converted", updated_at="2026-03-01T00:00:00+00:00"),
        ])

        assert await remind_inactive_leads(now=NOW) == 1

        reminder = await db.notifications.find_one({"type": "reminder"})
        assert reminder["lead_id"] == "idle"
        assert reminder["metadata"] == {"inactive_days": 7}

    @pytest.mark.asyncio
    async def test_once_per_day(self, db):
        make_admin(db, "admin")
        await db.leads.insert_one(lead_doc(updated_at="2026-03-01T00:00:00+00:00"))

        assert await remind_inactive_leads(now=NOW) == 1
        assert await remind_inactive_leads(now=NOW) == 0
        assert await db.notifications.count_documents({"type": "reminder"}) == 1


class TestScheduler:

    @pytest.mark.asyncio
    async def test_jobs_registered(self):
        scheduler = TaskScheduler()
        scheduler.start()
        try:
            jobs = {job["id"] for job in scheduler.list_jobs()}
        finally:
            scheduler.stop()

        assert jobs == {"crm_sync_hourly", "crm_sync_daily", "crm_retry_queue", "inactive_lead_reminders"}

    @pytest.mark.asyncio
    async def test_job_errors_are_logged(self, db, monkeypatch):
        from services import crm_sync

        async def broken(frequency):
            raise RuntimeError("mongo indisponible")

        monkeypatch.setattr(crm_sync, "sync_integrations", broken)
        # ne lève pas
        await TaskScheduler().sync_hourly_crms()


class TestEmailAlerts:

    def test_no_api_key(self):
        from email_service import email_service
        assert email_service.send_hot_lead_alert(lead_doc(score=82)) is False

    def test_hot_lead_content(self, monkeypatch):
        from email_service import email_service
        sent = []
        monkeypatch.setattr(email_service, "_send_email", lambda to, subject, html: sent.append((subject, html)) or True)

        lead = lead_doc(score=82, company_name="Ciment <Sahel>", electricity_bill=600000, budget=0)
        assert email_service.send_hot_lead_alert(lead) is True

        subject, html = sent[0]
        assert subject == "🔥 Lead HOT - Ciment <Sahel> (82/100)"
        assert "Ciment &lt;Sahel&gt;" in html
        assert "600 000 FCFA" in html
        assert "Non précisé" in html
