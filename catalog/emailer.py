# catalog/emailer.py
import os
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import List

from .logger import get_logger

logger = get_logger(__name__)


def _smtp_settings() -> dict:
    return {
        "from": os.getenv("EMAIL_FROM", "").strip(),
        "host": os.getenv("SMTP_HOST", "").strip(),
        "port": int(os.getenv("SMTP_PORT", "587")),
        "user": os.getenv("SMTP_USER", "").strip(),
        "password": os.getenv("SMTP_PASS", "").strip(),
        "use_ssl": os.getenv("SMTP_USE_SSL", "false").lower() == "true",
    }


def get_global_recipients() -> List[str]:
    # Comma or semicolon separated
    raw = os.getenv("EMAIL_TO", "").strip()
    parts = [p.strip() for p in raw.replace(";", ",").split(",")]
    return [p for p in parts if p]


def build_message(subject: str, html_body: str, text_body: str | None, sender: str, recipients: List[str]) -> MIMEMultipart:
    msg = MIMEMultipart("alternative")
    msg["From"] = sender
    msg["To"] = ", ".join(recipients)
    msg["Subject"] = subject
    msg.attach(MIMEText(text_body or "HTML capable email client required to view this report.", "plain", "utf-8"))
    msg.attach(MIMEText(html_body, "html", "utf-8"))
    return msg


def send_email(subject: str, html_body: str, text_body: str | None, recipients: List[str]) -> bool:
    """Send the report; returns False when skipped for lack of configuration."""
    if not recipients:
        logger.warning("No recipients for email '%s'; skipping send.", subject)
        return False

    smtp = _smtp_settings()
    if not (smtp["from"] and smtp["host"]):
        logger.warning(
            "Email not fully configured (EMAIL_FROM/SMTP_HOST); skipping email: %s",
            subject,
        )
        return False

    msg = build_message(subject, html_body, text_body, smtp["from"], recipients)

    if smtp["use_ssl"]:
        server = smtplib.SMTP_SSL(smtp["host"], smtp["port"], timeout=30)
    else:
        server = smtplib.SMTP(smtp["host"], smtp["port"], timeout=30)

    try:
        if not smtp["use_ssl"]:
            server.starttls()
        if smtp["user"]:
            server.login(smtp["user"], smtp["password"])
        server.sendmail(smtp["from"], recipients, msg.as_string())
        logger.info("Email sent to %s: %s", recipients, subject)
    finally:
        try:
            server.quit()
        except smtplib.SMTPException as e:
            logger.debug("SMTP quit failed: %s", e)
    return True
