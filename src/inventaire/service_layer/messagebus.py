"""
Message Bus.

Point unique de dispatch des commands et des events vers leurs
handlers. Après chaque handler, le bus récupère auprès du Unit of Work
les événements levés par les agrégats et les traite à leur tour,
jusqu'à ce que la file soit vide.

- Une command a exactement un handler ; son erreur remonte telle quelle
  à l'appelant (TransitionInvalide, StockInsuffisant...).
- Un event a de 0 à N handlers ; une erreur est loggée et n'empêche
  pas les autres handlers de s'exécuter.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Union

from inventaire.domain import commands, events
from inventaire.service_layer import unit_of_work

logger = logging.getLogger(__name__)

Message = Union[commands.Command, events.Event]


class MessageBus:
    """
    Message Bus avec injection de dépendances par nom de paramètre.

    Un handler déclare ce dont il a besoin dans sa signature (`uow`,
    `notifications`...) ; le bus lui passe la dépendance du même nom.
    """

    def __init__(
        self,
        uow: unit_of_work.AbstractUnitOfWork,
        event_handlers: dict[type[events.Event], list[Callable]],
        command_handlers: dict[type[commands.Command], Callable],
        dependencies: dict[str, Any] | None = None,
    ):
        self.uow = uow
        self.event_handlers = event_handlers
        self.command_handlers = command_handlers
        self.dependencies = {"uow": uow, **(dependencies or {})}
        self.queue: list[Message] = []

    def handle(self, message: Message) -> list[Any]:
        """
        Traite un message puis tous les événements qui en découlent.

        Retourne la liste des résultats des command handlers
        (le premier élément est le résultat de la command initiale).
        """
        self.queue = [message]
        results: list[Any] = []
        while self.queue:
            message = self.queue.pop(0)
            if isinstance(message, commands.Command):
                results.append(self._handle_command(message))
            elif isinstance(message, events.Event):
                self._handle_event(message)
            else:
                raise ValueError(f"Message de type inconnu : {type(message)}")
        return results

    def _handle_command(self, command: commands.Command) -> Any:
        handler = self.command_handlers.get(type(command))
        if handler is None:
            raise ValueError(f"Aucun handler pour la command {type(command).__name__}")
        logger.debug("Command %s -> %s", command, handler.__name__)
        try:
            result = self._call(handler, command)
        except Exception:
            logger.info("Échec de la command %s", command, exc_info=True)
            raise
        self.queue.extend(self.uow.collect_new_events())
        return result

    def _handle_event(self, event: events.Event) -> None:
        for handler in self.event_handlers.get(type(event), []):
            try:
                logger.debug("Event %s -> %s", event, handler.__name__)
                self._call(handler, event)
                self.queue.extend(self.uow.collect_new_events())
            except Exception:
                logger.exception("Erreur lors du traitement de l'event %s", event)

    def _call(self, handler: Callable, message: Message) -> Any:
        # Le premier paramètre reçoit le message, les suivants sont résolus par nom.
        noms = list(inspect.signature(handler).parameters)[1:]
        kwargs = {nom: self.dependencies[nom] for nom in noms if nom in self.dependencies}
        return handler(message, **kwargs)
