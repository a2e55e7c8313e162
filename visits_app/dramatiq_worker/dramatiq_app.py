import logging

import dramatiq
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from dramatiq.brokers.redis import RedisBroker
from dramatiq.middleware import AgeLimit, AsyncIO, Callbacks, Retries, TimeLimit

from core.settings import settings
from tasks.appointment_reminder_tasks import (
    create_daily_reminder_task,
    create_unassigned_warning_task,
)
from tasks.outbox_tasks import create_outbox_drain_task

logger = logging.getLogger(__name__)


class DramatiqManager:
    def __init__(self, start_scheduler: bool = True):
        self.REDIS_URL = settings.REDIS_URL

        self.broker = RedisBroker(url=self.REDIS_URL)

        self.broker.add_middleware(AgeLimit(max_age=3600000))
        self.broker.add_middleware(TimeLimit(time_limit=600000))
        self.broker.add_middleware(Retries(max_retries=3))
        self.broker.add_middleware(Callbacks())
        self.broker.add_middleware(AsyncIO())

        dramatiq.set_broker(self.broker)

        self._register_tasks()

        self.scheduler = BackgroundScheduler(timezone="UTC")
        self._register_cron_jobs()
        if start_scheduler:
            self.scheduler.start()

    def _register_tasks(self):
        create_daily_reminder_task()
        create_unassigned_warning_task()
        create_outbox_drain_task()

    def _register_cron_jobs(self):
        self.scheduler.add_job(
            func=lambda: self.delay("send_daily_appointment_reminders"),
            trigger=CronTrigger(hour=settings.REMINDER_HOUR, minute=0),
            id="appointment-reminders-daily",
            replace_existing=True,
        )

        self.scheduler.add_job(
            func=lambda: self.delay("send_unassigned_appointment_warnings"),
            trigger=CronTrigger(hour=settings.UNASSIGNED_WARNING_HOUR, minute=0),
            id="unassigned-appointment-warnings-daily",
            replace_existing=True,
        )

        self.scheduler.add_job(
            func=lambda: self.delay("drain_event_outbox"),
            trigger=CronTrigger(minute="*"),
            id="event-outbox-drain",
            replace_existing=True,
        )

    async def connect(self):
        logger.info("Connecting to Dramatiq broker: %s", self.REDIS_URL)
        try:
            self.broker.client.ping()
            logger.info("Dramatiq connected successfully.")
        except Exception:
            logger.exception("Dramatiq connection failed")

    def delay(self, actor_name: str, *args, **kwargs):
        actor = self.broker.get_actor(actor_name)
        return actor.send(*args, **kwargs)


dramatiq_app = DramatiqManager()
