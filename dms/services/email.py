"""Outbound mail for assignment notices."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError

from ..config import settings
from ..errors import UpstreamUnavailable
from .aws import boto3_client

logger = logging.getLogger(__name__)


@dataclass
class Notice:
    to: str
    subject: str
    body: str


def assignment_notice(
    *,
    to: str,
    assigned_by: str,
    letter_no: str,
    subject: Optional[str],
    due_date: Optional[datetime],
    note: Optional[str],
) -> Notice:
    due_text = due_date.date().isoformat() if due_date else "no due date"
    return Notice(
        to=to,
        subject=f"New assignment: {letter_no}",
        body=(
            f"{assigned_by} assigned you letter {letter_no} ({subject or 'no subject'}).\n\n"
            f"Due: {due_text}\n"
            f"Note: {note or '-'}"
        ),
    )


class Mailer:
    def send(self, notice: Notice) -> None:  # pragma: no cover - interface
        raise NotImplementedError


class SesMailer(Mailer):
    def __init__(self, client=None) -> None:
        self._client = client or boto3_client("ses")

    def send(self, notice: Notice) -> None:
        try:
            self._client.send_email(
                Source=settings.email_from,
                Destination={"ToAddresses": [notice.to]},
                Message={
                    "Subject": {"Data": notice.subject},
                    "Body": {"Text": {"Data": notice.body}},
                },
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("ses_send_failed to=%s error=%s", notice.to, exc)
            raise UpstreamUnavailable("Failed to send email") from exc


class LogMailer(Mailer):
    """Writes notices to the log. Used outside deployments with SES configured."""

    def send(self, notice: Notice) -> None:
        logger.info("notice to=%s subject=%s", notice.to, notice.subject)
        logger.debug("notice body: %s", notice.body)


def get_mailer() -> Mailer:
    if settings.email_backend == "ses":
        return SesMailer()
    return LogMailer()
