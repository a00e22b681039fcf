"""
Adapter pour les notifications.

Abstraction sur l'envoi d'alertes (stock épuisé) pour que la
service layer ne dépende pas d'un transport concret.
"""

from __future__ import annotations

import abc
import logging
import smtplib
from email.message import EmailMessage

logger = logging.getLogger(__name__)

EXPÉDITEUR = "inventaire@example.com"


class AbstractNotifications(abc.ABC):
    @abc.abstractmethod
    def send(self, destination: str, sujet: str, message: str) -> None:
        raise NotImplementedError


class EmailNotifications(AbstractNotifications):
    """Envoie les alertes par email via SMTP."""

    def __init__(self, smtp_host: str = "localhost", smtp_port: int = 587):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port

    def composer(self, destination: str, sujet: str, message: str) -> EmailMessage:
        email = EmailMessage()
        email["From"] = EXPÉDITEUR
        email["To"] = destination
        email["Subject"] = f"[Inventaire] {sujet}"
        email.set_content(message)
        return email

    def send(self, destination: str, sujet: str, message: str) -> None:
        logger.debug("Envoi de l'alerte %r à %s via %s:%d", sujet, destination, self.smtp_host, self.smtp_port)
        with smtplib.SMTP(self.smtp_host, self.smtp_port) as smtp:
            smtp.send_message(self.composer(destination, sujet, message))
