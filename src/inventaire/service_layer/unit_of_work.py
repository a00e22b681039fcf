"""
Pattern Unit of Work.

Le Unit of Work délimite une transaction atomique couvrant les
commandes, les stocks et le journal des mouvements. Il s'utilise
comme un context manager :

    with uow:
        # ... opérations sur les repositories ...
        uow.commit()

Sans appel à commit(), la sortie du bloc annule tout (rollback),
y compris en cas d'exception ou de retour anticipé.
"""

from __future__ import annotations

import abc
import logging
import threading
from dataclasses import dataclass
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from inventaire import config
from inventaire.adapters import repository
from inventaire.domain import events
from inventaire.domain.model import ErreurDomaine

logger = logging.getLogger(__name__)

DEFAULT_SESSION_FACTORY = sessionmaker(
    bind=create_engine(
        config.get_database_uri(),
        isolation_level="SERIALIZABLE",
    )
)


class ÉchecDePersistance(ErreurDomaine):
    """
    La transaction n'a pas pu aboutir (verrou expiré, connexion perdue...).

    L'opération a été annulée en entier : l'appelant peut la relancer.
    Une command déjà validée relancée échouera proprement avec
    TransitionInvalide.
    """

    retryable = True


class IntégritéViolée(ÉchecDePersistance):
    """
    La base a refusé l'écriture (clé étrangère, unicité...).

    Relancer l'opération à l'identique échouera de la même façon.
    """

    retryable = False


class AbstractUnitOfWork(abc.ABC):
    """
    Interface abstraite du Unit of Work.

    Expose les repositories `commandes`, `stocks`, `mouvements`,
    `entrepôts` et `produits`, tous liés à la même transaction.
    """

    commandes: repository.AbstractRepository
    stocks: repository.AbstractStockRepository
    mouvements: repository.AbstractMouvementRepository
    entrepôts: repository.AbstractEntrepôtRepository
    produits: repository.AbstractProduitRepository

    def __enter__(self) -> AbstractUnitOfWork:
        return self

    def __exit__(self, *args: object) -> None:
        self.rollback()

    def commit(self) -> None:
        self._commit()

    def collect_new_events(self) -> Iterator[events.Event]:
        """Vide et retourne les événements des commandes et stocks vus."""
        for agrégat in [*self.commandes.seen, *self.stocks.seen]:
            while agrégat.événements:
                yield agrégat.événements.pop(0)

    @abc.abstractmethod
    def _commit(self) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def rollback(self) -> None:
        raise NotImplementedError


@dataclass
class _Transaction:
    """Session et repositories d'un bloc `with`."""

    session: Session
    commandes: repository.SqlAlchemyRepository
    stocks: repository.SqlAlchemyStockRepository
    mouvements: repository.SqlAlchemyMouvementRepository
    entrepôts: repository.SqlAlchemyEntrepôtRepository
    produits: repository.SqlAlchemyProduitRepository

    @classmethod
    def ouvrir(cls, session: Session) -> _Transaction:
        return cls(
            session=session,
            commandes=repository.SqlAlchemyRepository(session),
            stocks=repository.SqlAlchemyStockRepository(session),
            mouvements=repository.SqlAlchemyMouvementRepository(session),
            entrepôts=repository.SqlAlchemyEntrepôtRepository(session),
            produits=repository.SqlAlchemyProduitRepository(session),
        )


class SqlAlchemyUnitOfWork(AbstractUnitOfWork):
    """
    Implémentation SQLAlchemy du Unit of Work.

    Une session par bloc `with`. Une même instance est partagée par
    tous les threads du serveur : chaque thread empile ses propres
    transactions, et un bloc imbriqué ne touche pas à la session du
    bloc englobant. Après la sortie, `commandes` et `stocks` désignent
    encore les repositories du dernier bloc fermé, le temps que le bus
    collecte leurs événements.

    Les objets restent lisibles après le commit (expire_on_commit=False) :
    un handler peut retourner l'agrégat mis à jour. Toute SQLAlchemyError
    sortant du bloc est convertie en ÉchecDePersistance après rollback.
    """

    def __init__(self, session_factory: sessionmaker = DEFAULT_SESSION_FACTORY):
        self.session_factory = session_factory
        self._local = threading.local()

    def _pile(self) -> list[_Transaction]:
        if not hasattr(self._local, "pile"):
            self._local.pile = []
        return self._local.pile

    @property
    def _courante(self) -> _Transaction:
        pile = self._pile()
        if pile:
            return pile[-1]
        dernière = getattr(self._local, "dernière", None)
        if dernière is None:
            raise RuntimeError("Unit of Work utilisé hors d'un bloc `with`")
        return dernière

    @property
    def session(self) -> Session:
        return self._courante.session

    @property
    def commandes(self) -> repository.SqlAlchemyRepository:
        return self._courante.commandes

    @property
    def stocks(self) -> repository.SqlAlchemyStockRepository:
        return self._courante.stocks

    @property
    def mouvements(self) -> repository.SqlAlchemyMouvementRepository:
        return self._courante.mouvements

    @property
    def entrepôts(self) -> repository.SqlAlchemyEntrepôtRepository:
        return self._courante.entrepôts

    @property
    def produits(self) -> repository.SqlAlchemyProduitRepository:
        return self._courante.produits

    def __enter__(self) -> SqlAlchemyUnitOfWork:
        session = self.session_factory(expire_on_commit=False)
        self._pile().append(_Transaction.ouvrir(session))
        return super().__enter__()

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            super().__exit__(exc_type, exc, tb)
        finally:
            transaction = self._pile().pop()
            transaction.session.close()
            self._local.dernière = transaction
        if isinstance(exc, IntegrityError):
            logger.warning("Écriture refusée par la base : %s", exc)
            raise IntégritéViolée(f"Écriture refusée : {exc.orig}") from exc
        if isinstance(exc, SQLAlchemyError):
            logger.warning("Transaction annulée suite à une erreur de persistance : %s", exc)
            raise ÉchecDePersistance(f"Échec de la transaction : {exc}") from exc

    def _commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
