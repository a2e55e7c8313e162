import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from core.rabbitmq import rabbitmq
from core.settings import settings
from services.notification_dispatcher import NotificationDispatcher

from .get_db import AsyncSessionLocal

logger = logging.getLogger("startup")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Waiting for application startup...")

    if rabbitmq.enabled:
        try:
            await rabbitmq.connect()
            await rabbitmq.declare_exchange_with_dlq(settings.RABBITMQ_MAIN_EXCHANGE)
            logger.info("RabbitMQ connected.")
        except Exception:
            logger.exception("RabbitMQ connection failed")
    else:
        logger.info("RABBITMQ_URL not set, events stay in the outbox only.")

    try:
        async with AsyncSessionLocal() as db:
            dispatched = await NotificationDispatcher(db).dispatch_pending()
            logger.info("Outbox drained on startup: %s event(s).", dispatched)
    except Exception:
        logger.exception("Failed to drain the event outbox on startup")

    logger.info("Application startup complete.")

    yield

    try:
        await rabbitmq.close()
    except Exception:
        logger.exception("Failed to close RabbitMQ connection")
