"""
Bootstrap : assemblage de l'application (Composition Root).

Seul endroit qui connaît les implémentations concrètes : on y démarre
le mapping ORM, on y choisit le Unit of Work et l'adapter de
notifications, puis on construit le MessageBus. Les tests injectent
ici leurs fakes.
"""

from __future__ import annotations

from typing import Any

from inventaire import config
from inventaire.adapters import notifications, orm
from inventaire.domain import commands, events
from inventaire.service_layer import handlers, messagebus, unit_of_work


def bootstrap(
    start_orm: bool = True,
    uow: unit_of_work.AbstractUnitOfWork | None = None,
    notifications_adapter: notifications.AbstractNotifications | None = None,
    **extra_dependencies: Any,
) -> messagebus.MessageBus:
    """Construit le MessageBus ; les paramètres permettent d'injecter des fakes."""
    if start_orm:
        orm.start_mappers()

    if uow is None:
        uow = unit_of_work.SqlAlchemyUnitOfWork()

    if notifications_adapter is None:
        notifications_adapter = notifications.EmailNotifications(
            smtp_host=config.get_smtp_host(),
            smtp_port=config.get_smtp_port(),
        )

    return messagebus.MessageBus(
        uow=uow,
        event_handlers=EVENT_HANDLERS,
        command_handlers=COMMAND_HANDLERS,
        dependencies={"notifications": notifications_adapter, **extra_dependencies},
    )


# --- Routage des messages vers les handlers ---

EVENT_HANDLERS: dict[type[events.Event], list] = {
    events.CommandeComplétée: [handlers.publier_événement_commande],
    events.CommandeAnnulée: [handlers.publier_événement_commande],
    events.CommandeRestaurée: [handlers.publier_événement_commande],
    events.StockÉpuisé: [handlers.envoyer_notification_stock_épuisé],
}

COMMAND_HANDLERS: dict[type[commands.Command], Any] = {
    commands.CréerCommande: handlers.créer_commande,
    commands.ModifierCommande: handlers.modifier_commande,
    commands.SupprimerCommande: handlers.supprimer_commande,
    commands.CompléterCommande: handlers.compléter_commande,
    commands.AnnulerCommande: handlers.annuler_commande,
    commands.RestaurerCommande: handlers.restaurer_commande,
    commands.AjusterStock: handlers.ajuster_stock,
}
