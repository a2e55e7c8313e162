import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import aiosmtplib

from core.breaker import email_breaker
from core.settings import settings

logger = logging.getLogger(__name__)


def _build_message(to: str, subject: str, html_content: str) -> MIMEMultipart:
    message = MIMEMultipart("alternative")
    message["Subject"] = subject
    message["From"] = settings.EMAIL_USER or ""
    message["To"] = to
    message.attach(MIMEText(html_content, "html"))
    return message


async def _deliver(to: str, subject: str, html_content: str) -> bool:
    if not settings.EMAIL_SERVER:
        logger.info("EMAIL_SERVER not configured, skipping '%s' to %s", subject, to)
        return False

    async def handler():
        try:
            await aiosmtplib.send(
                _build_message(to, subject, html_content),
                hostname=settings.EMAIL_SERVER,
                port=settings.EMAIL_PORT,
                username=settings.EMAIL_USER,
                password=settings.EMAIL_PASSWORD,
                start_tls=settings.EMAIL_USE_TLS,
            )
        except Exception:
            logger.exception("Error sending '%s' email to %s", subject, to)
            raise
        return True

    return await email_breaker.call(handler)


def _visit_line(appointment) -> str:
    return (
        f"{appointment.appointment_date:%Y-%m-%d} "
        f"{appointment.start_time:%H:%M}-{appointment.end_time:%H:%M}"
    )


async def send_customer_reminder_email(email: str, name: str, appointment, property_title: str):
    html_content = f"""
    <html>
    <body style="font-family: Arial, sans-serif; line-height: 1.6;">
        <h2>Appointment Reminder</h2>
        <p>Hello {name},</p>
        <p>This is a reminder of your visit to <strong>{property_title}</strong> tomorrow.</p>
        <p>When: {_visit_line(appointment)}</p>
        <p>Best regards,<br>Your Support Team</p>
    </body>
    </html>
    """
    return await _deliver(email, "Your property visit is tomorrow", html_content)


async def send_agent_reminder_email(
    email: str, name: str, appointment, property_title: str, customer_name: str
):
    html_content = f"""
    <html>
    <body style="font-family: Arial, sans-serif; line-height: 1.6;">
        <h2>Appointment Reminder</h2>
        <p>Hello {name},</p>
        <p>You have a property visit tomorrow with {customer_name}.</p>
        <p>Property: <strong>{property_title}</strong></p>
        <p>When: {_visit_line(appointment)}</p>
        <p>Best regards,<br>Your Support Team</p>
    </body>
    </html>
    """
    return await _deliver(email, "Upcoming property visit tomorrow", html_content)


async def send_unassigned_warning_email(email: str, name: str, appointment, property_title: str):
    html_content = f"""
    <html>
    <body style="font-family: Arial, sans-serif; line-height: 1.6;">
        <h2>Unassigned Appointment</h2>
        <p>Hello {name},</p>
        <p>No agent has accepted the visit to <strong>{property_title}</strong>
        scheduled for {_visit_line(appointment)}.</p>
        <p>Please assign an agent manually.</p>
        <p>Best regards,<br>Your Support Team</p>
    </body>
    </html>
    """
    return await _deliver(email, "Appointment still has no agent", html_content)
