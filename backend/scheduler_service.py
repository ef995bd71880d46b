"""
Scheduler pour les tâches automatiques Sakkanal
- Synchro CRM horaire et quotidienne
- Retry des synchros CRM échouées
- Rappels pour les leads sans suivi
"""

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

logger = logging.getLogger("scheduler")

SCHEDULER_TIMEZONE = "Africa/Dakar"


class TaskScheduler:
    """Gestionnaire de tâches planifiées"""

    def __init__(self):
        self.scheduler = AsyncIOScheduler(timezone=SCHEDULER_TIMEZONE)

    def start(self):
        """Démarre le scheduler avec toutes les tâches"""
        # Synchro CRM "hourly" à chaque heure pile
        self.scheduler.add_job(
            self.sync_hourly_crms,
            CronTrigger(minute=0),
            id="crm_sync_hourly",
            name="Synchro CRM horaire",
            replace_existing=True
        )

        # Synchro CRM "daily" à 6h (heure de Dakar)
        self.scheduler.add_job(
            self.sync_daily_crms,
            CronTrigger(hour=6, minute=0),
            id="crm_sync_daily",
            name="Synchro CRM quotidienne",
            replace_existing=True
        )

        # Retry des envois CRM échoués toutes les heures
        self.scheduler.add_job(
            self.retry_failed_syncs,
            CronTrigger(minute=30),
            id="crm_retry_queue",
            name="Retry synchros CRM",
            replace_existing=True
        )

        # Rappels leads inactifs à 9h
        self.scheduler.add_job(
            self.remind_inactive_leads,
            CronTrigger(hour=9, minute=0),
            id="inactive_lead_reminders",
            name="Rappels leads inactifs",
            replace_existing=True
        )

        self.scheduler.start()
        logger.info("Scheduler démarré avec succès")

    def stop(self):
        """Arrête le scheduler"""
        if self.scheduler.running:
            self.scheduler.shutdown()
            logger.info("Scheduler arrêté")

    def list_jobs(self) -> list:
        return [
            {
                "id": job.id,
                "name": job.name,
                "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
            }
            for job in self.scheduler.get_jobs()
        ]

    # ==================== TÂCHES PLANIFIÉES ====================

    async def sync_hourly_crms(self):
        from services.crm_sync import sync_integrations

        try:
            results = await sync_integrations("hourly")
            logger.info(f"Synchro horaire: {len(results)} intégration(s)")
        except Exception as e:
            logger.error(f"Erreur synchro horaire: {str(e)}")

    async def sync_daily_crms(self):
        from services.crm_sync import sync_integrations

        try:
            results = await sync_integrations("daily")
            logger.info(f"Synchro quotidienne: {len(results)} intégration(s)")
        except Exception as e:
            logger.error(f"Erreur synchro quotidienne: {str(e)}")

    async def retry_failed_syncs(self):
        """Rejoue la file crm_sync_queue"""
        from services.crm_sync import process_queue

        try:
            results = await process_queue()
            if results["processed"]:
                logger.info(f"Retry CRM: {results}")
        except Exception as e:
            logger.error(f"Erreur retry CRM: {str(e)}")

    async def remind_inactive_leads(self):
        from services.notifier import remind_inactive_leads

        try:
            count = await remind_inactive_leads()
            logger.info(f"Rappels envoyés pour {count} lead(s)")
        except Exception as e:
            logger.error(f"Erreur rappels leads: {str(e)}")


# Instance globale
task_scheduler = TaskScheduler()
