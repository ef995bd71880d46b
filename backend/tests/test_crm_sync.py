"""
Sakkanal - Tests synchronisation CRM (webhooks)
Le transport httpx est remplacé par httpx.MockTransport.
"""

from datetime import datetime, timezone, timedelta

import httpx
import pytest

from services import crm_sync
from services.crm_sync import (
    build_payload,
    build_headers,
    send_lead_to_webhook,
    deliver_lead,
    add_to_queue,
    process_queue,
    get_queue_stats,
    push_new_lead,
    sync_integrations,
    MAX_RETRY_ATTEMPTS,
)
from tests.helpers import lead_doc

INTEGRATION = {
    "id": "crm-1",
    "name": "HubSpot INESIC",
    "webhook_url": "https://crm.example.com/hooks/lead",
    "is_active": True,
    "sync_frequency": "realtime",
    "config": {"api_key": "secret-key", "headers": {"X-Source": "sakkanal"}},
}

PAST = (datetime.now(timezone.utc) - timedelta(minutes=5)).isoformat()


@pytest.fixture
def webhook(monkeypatch):
    """Installe un handler httpx; retourne la liste des requêtes reçues"""
    calls = []
    real_client = httpx.AsyncClient

    def install(handler):
        def recording_handler(request):
            calls.append(request)
            return handler(request)

        def client_factory(*args, **kwargs):
            return real_client(*args, transport=httpx.MockTransport(recording_handler), **kwargs)

        monkeypatch.setattr(crm_sync.httpx, "AsyncClient", client_factory)
        return calls

    return install


def reply(status_code, body=None):
    return lambda request: httpx.Response(status_code, json=body or {})


class TestPayload:

    def test_payload_fields(self):
        lead = lead_doc(form_data={"interne": True})
        payload = build_payload(lead)

        assert payload["event"] == "lead.created"
        assert payload["source"] == "sakkanal"
        assert payload["lead"]["email"] == "moussa@test.sn"
        assert "form_data" not in payload["lead"]

    def test_headers(self):
        headers = build_headers(INTEGRATION)
        assert headers["Authorization"] == "Bearer secret-key"
        assert headers["X-Source"] == "sakkanal"

    def test_headers_without_config(self):
        assert "Authorization" not in build_headers({"id": "x"})


class TestSendLead:

    @pytest.mark.asyncio
    async def test_success(self, webhook):
        calls = webhook(reply(201, {"id": "hs-1"}))
        status, response, should_queue = await send_lead_to_webhook(lead_doc(), INTEGRATION)

        assert status == "success"
        assert should_queue is False
        assert calls[0].headers["authorization"] == "Bearer secret-key"
        assert str(calls[0].url) == INTEGRATION["webhook_url"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code,expected,queued", [
        (401, "auth_error", False),
        (403, "auth_error", False),
        (422, "validation_error", False),
        (400, "validation_error", False),
        (503, "server_error", True),
        (404, "failed", False),
    ])
    async def test_status_classification(self, webhook, code, expected, queued):
        webhook(reply(code))
        status, _response, should_queue = await send_lead_to_webhook(lead_doc(), INTEGRATION)
        assert status == expected
        assert should_queue is queued

    @pytest.mark.asyncio
    async def test_timeout(self, webhook):
        def handler(request):
            raise httpx.ReadTimeout("trop lent", request=request)

        webhook(handler)
        status, response, should_queue = await send_lead_to_webhook(lead_doc(), INTEGRATION)
        assert status == "timeout"
        assert should_queue is True
        assert response.startswith("Timeout après 30s")

    @pytest.mark.asyncio
    async def test_connection_error(self, webhook):
        def handler(request):
            raise httpx.ConnectError("refusé", request=request)

        webhook(handler)
        status, _response, should_queue = await send_lead_to_webhook(lead_doc(), INTEGRATION)
        assert status == "connection_error"
        assert should_queue is True

    @pytest.mark.asyncio
    async def test_non_json_response(self, webhook):
        webhook(lambda request: httpx.Response(200, text="OK"))
        status, response, _ = await send_lead_to_webhook(lead_doc(), INTEGRATION)
        assert status == "success"
        assert response == "OK"


class TestDeliverAndQueue:

    @pytest.mark.asyncio
    async def test_success_recorded_on_lead(self, db, webhook):
        webhook(reply(200))
        lead = lead_doc()
        await db.leads.insert_one(dict(lead))

        assert await deliver_lead(lead, INTEGRATION) == "success"

        stored = await db.leads.find_one({"id": lead["id"]})
        assert stored["crm_sync_status"]["crm-1"]["status"] == "success"
        assert await db.crm_sync_queue.count_documents({}) == 0

    @pytest.mark.asyncio
    async def test_server_error_queued_once(self, db, webhook):
        webhook(reply(500))
        lead = lead_doc()
        await db.leads.insert_one(dict(lead))

        await deliver_lead(lead, INTEGRATION)
        await deliver_lead(lead, INTEGRATION)

        entries = await db.crm_sync_queue.find({}).to_list(10)
        assert len(entries) == 1
        assert entries[0]["attempts"] == 1
        assert entries[0]["reason"] == "server_error"

    @pytest.mark.asyncio
    async def test_retry_success(self, db, webhook):
        webhook(reply(200))
        lead = lead_doc()
        await db.leads.insert_one(dict(lead))
        await db.crm_integrations.insert_one(dict(INTEGRATION))
        entry = await add_to_queue(lead, INTEGRATION, reason="timeout")
        await db.crm_sync_queue.update_one({"id": entry["id"]}, {"$set": {"next_retry_at": PAST}})

        results = await process_queue()

        assert results == {"processed": 1, "success": 1, "failed": 0, "exhausted": 0}
        stored = await db.crm_sync_queue.find_one({"id": entry["id"]})
        assert stored["status"] == "success"
        assert stored["attempts"] == 2

    @pytest.mark.asyncio
    async def test_retry_rescheduled_with_backoff(self, db, webhook):
        webhook(reply(502))
        lead = lead_doc()
        await db.leads.insert_one(dict(lead))
        await db.crm_integrations.insert_one(dict(INTEGRATION))
        entry = await add_to_queue(lead, INTEGRATION)
        await db.crm_sync_queue.update_one({"id": entry["id"]}, {"$set": {"next_retry_at": PAST}})

        before = datetime.now(timezone.utc)
        results = await process_queue()

        assert results["failed"] == 1
        stored = await db.crm_sync_queue.find_one({"id": entry["id"]})
        assert stored["status"] == "pending"
        assert stored["attempts"] == 2
        # 2e attente = 300s
        next_retry = datetime.fromisoformat(stored["next_retry_at"])
        assert before + timedelta(seconds=290) < next_retry < before + timedelta(seconds=310)

    @pytest.mark.asyncio
    async def test_exhausted_after_max_attempts(self, db, webhook, monkeypatch):
        webhook(reply(500))
        alerts = []
        import email_service
        monkeypatch.setattr(
            email_service.email_service, "send_critical_alert",
            lambda alert_type, message, details=None: alerts.append(alert_type) or False
        )

        lead = lead_doc()
        await db.leads.insert_one(dict(lead))
        await db.crm_integrations.insert_one(dict(INTEGRATION))
        entry = await add_to_queue(lead, INTEGRATION)
        await db.crm_sync_queue.update_one(
            {"id": entry["id"]},
            {"$set": {"next_retry_at": PAST, "attempts": MAX_RETRY_ATTEMPTS - 1}}
        )

        results = await process_queue()

        assert results["exhausted"] == 1
        stored = await db.crm_sync_queue.find_one({"id": entry["id"]})
        assert stored["status"] == "exhausted"
        assert alerts == ["CRM_SYNC_EXHAUSTED"]

    @pytest.mark.asyncio
    async def test_missing_integration_cancels_entry(self, db, webhook):
        calls = webhook(reply(200))
        lead = lead_doc()
        await db.leads.insert_one(dict(lead))
        entry = await add_to_queue(lead, INTEGRATION)
        await db.crm_sync_queue.update_one({"id": entry["id"]}, {"$set": {"next_retry_at": PAST}})

        results = await process_queue()

        assert results["processed"] == 0
        assert calls == []
        stats = await get_queue_stats()
        assert stats["cancelled"] == 1
        assert stats["total"] == 1

    @pytest.mark.asyncio
    async def test_future_entries_not_processed(self, db, webhook):
        calls = webhook(reply(200))
        lead = lead_doc()
        await db.leads.insert_one(dict(lead))
        await db.crm_integrations.insert_one(dict(INTEGRATION))
        await add_to_queue(lead, INTEGRATION)

        results = await process_queue()
        assert results["processed"] == 0
        assert calls == []


class TestSync:

    @pytest.mark.asyncio
    async def test_push_only_realtime_active(self, db, webhook):
        calls = webhook(reply(200))
        await db.crm_integrations.insert_many([
            dict(INTEGRATION),
            {**INTEGRATION, "id": "crm-2", "is_active": False},
            {**INTEGRATION, "id": "crm-3", "sync_frequency": "daily"},
        ])
        lead = lead_doc()
        await db.leads.insert_one(dict(lead))

        results = await push_new_lead(lead)

        assert results == [{"integration_id": "crm-1", "status": "success"}]
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_sync_since_last_sync(self, db, webhook):
        calls = webhook(reply(200))
        await db.crm_integrations.insert_one({
            **INTEGRATION, "sync_frequency": "hourly", "last_sync": "2026-03-01T00:00:00+00:00",
        })
        await db.leads.insert_many([
            lead_doc(created_at="2026-02-28T23:00:00+00:00"),
            lead_doc(created_at="2026-03-01T10:00:00+00:00"),
            lead_doc(created_at="2026-03-02T10:00:00+00:00"),
        ])

        summaries = await sync_integrations("hourly")

        assert summaries[0]["sent"] == 2
        assert summaries[0]["errors"] == 0
        assert len(calls) == 2

        integration = await db.crm_integrations.find_one({"id": "crm-1"})
        assert integration["last_sync"] > "2026-03-02"

    @pytest.mark.asyncio
    async def test_sync_other_frequency_untouched(self, db, webhook):
        calls = webhook(reply(200))
        await db.crm_integrations.insert_one({**INTEGRATION, "sync_frequency": "daily"})
        await db.leads.insert_one(lead_doc())

        assert await sync_integrations("hourly") == []
        assert calls == []
