"""
Configuration de l'application.

Toutes les valeurs sont lues dans l'environnement au moment de
l'appel, avec des valeurs par défaut adaptées au développement local.
"""

import os


def get_database_uri() -> str:
    return os.environ.get("INVENTAIRE_DATABASE_URI", "sqlite:///inventaire.db")


def get_smtp_host() -> str:
    return os.environ.get("INVENTAIRE_SMTP_HOST", "localhost")


def get_smtp_port() -> int:
    return int(os.environ.get("INVENTAIRE_SMTP_PORT", "587"))


def get_alert_email() -> str:
    """Destinataire des alertes de stock épuisé."""
    return os.environ.get("INVENTAIRE_ALERT_EMAIL", "stock@example.com")


def get_log_level() -> str:
    return os.environ.get("INVENTAIRE_LOG_LEVEL", "INFO").upper()
