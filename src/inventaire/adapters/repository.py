"""
Pattern Repository.

Chaque repository offre une interface de type collection sur une
entité persistée et masque les détails SQL. Les noms de méthodes du
pattern (add, get, delete) restent en anglais ; les méthodes propres
au domaine (liste_pour_stock) sont en français.

Les repositories de Commande et de Stock tracent les agrégats vus
pendant la transaction (`seen`) pour que le Unit of Work puisse
collecter leurs événements.
"""

from __future__ import annotations

import abc

from sqlalchemy.orm import Session

from inventaire.domain import model


class AbstractRepository(abc.ABC):
    """
    Repository des commandes.

    Template Method : les méthodes publiques gèrent `seen`, puis
    délèguent aux méthodes abstraites préfixées _.
    """

    def __init__(self) -> None:
        self.seen: set[model.Commande] = set()

    def add(self, commande: model.Commande) -> None:
        """Ajoute une commande ; son id est attribué immédiatement."""
        self._add(commande)
        self.seen.add(commande)

    def get(self, id_commande: int) -> model.Commande | None:
        commande = self._get(id_commande)
        if commande:
            self.seen.add(commande)
        return commande

    def delete(self, commande: model.Commande) -> None:
        self._delete(commande)
        self.seen.discard(commande)

    @abc.abstractmethod
    def _add(self, commande: model.Commande) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def _get(self, id_commande: int) -> model.Commande | None:
        raise NotImplementedError

    @abc.abstractmethod
    def _delete(self, commande: model.Commande) -> None:
        raise NotImplementedError


class AbstractStockRepository(abc.ABC):
    """
    Repository des stocks, indexés par (id_produit, id_entrepôt).

    get(..., verrouiller=True) pose un verrou de ligne pour la durée
    de la transaction : la vérification de suffisance et la déduction
    qui suit voient alors la même quantité.
    """

    def __init__(self) -> None:
        self.seen: set[model.Stock] = set()

    def add(self, stock: model.Stock) -> None:
        self._add(stock)
        self.seen.add(stock)

    def get(self, id_produit: int, id_entrepôt: int, verrouiller: bool = False) -> model.Stock | None:
        stock = self._get(id_produit, id_entrepôt, verrouiller)
        if stock:
            self.seen.add(stock)
        return stock

    @abc.abstractmethod
    def _add(self, stock: model.Stock) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def _get(self, id_produit: int, id_entrepôt: int, verrouiller: bool) -> model.Stock | None:
        raise NotImplementedError


class AbstractMouvementRepository(abc.ABC):
    """Journal append-only : aucune méthode de mise à jour ni de suppression."""

    @abc.abstractmethod
    def add(self, mouvement: model.MouvementDeStock) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def liste_pour_stock(self, id_stock: int) -> list[model.MouvementDeStock]:
        """Mouvements d'un stock dans l'ordre de rejeu (créé_le, id)."""
        raise NotImplementedError


class AbstractEntrepôtRepository(abc.ABC):
    @abc.abstractmethod
    def add(self, entrepôt: model.Entrepôt) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def get(self, id_entrepôt: int) -> model.Entrepôt | None:
        raise NotImplementedError


class AbstractProduitRepository(abc.ABC):
    @abc.abstractmethod
    def add(self, produit: model.Produit) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def get(self, id_produit: int) -> model.Produit | None:
        raise NotImplementedError


# --- Implémentations SQLAlchemy ---


class SqlAlchemyRepository(AbstractRepository):
    def __init__(self, session: Session):
        super().__init__()
        self.session = session

    def _add(self, commande: model.Commande) -> None:
        self.session.add(commande)
        self.session.flush()

    def _get(self, id_commande: int) -> model.Commande | None:
        return self.session.get(model.Commande, id_commande)

    def _delete(self, commande: model.Commande) -> None:
        self.session.delete(commande)


class SqlAlchemyStockRepository(AbstractStockRepository):
    def __init__(self, session: Session):
        super().__init__()
        self.session = session

    def _add(self, stock: model.Stock) -> None:
        self.session.add(stock)
        self.session.flush()

    def _get(self, id_produit: int, id_entrepôt: int, verrouiller: bool) -> model.Stock | None:
        query = self.session.query(model.Stock).filter_by(
            id_produit=id_produit, id_entrepôt=id_entrepôt
        )
        if verrouiller:
            # SELECT ... FOR UPDATE ; sans effet sous SQLite.
            # populate_existing relit la quantité même si l'objet est déjà en session.
            query = query.with_for_update().populate_existing()
        return query.first()


class SqlAlchemyMouvementRepository(AbstractMouvementRepository):
    def __init__(self, session: Session):
        self.session = session

    def add(self, mouvement: model.MouvementDeStock) -> None:
        self.session.add(mouvement)
        self.session.flush()

    def liste_pour_stock(self, id_stock: int) -> list[model.MouvementDeStock]:
        return (
            self.session.query(model.MouvementDeStock)
            .filter_by(id_stock=id_stock)
            .order_by(model.MouvementDeStock.créé_le, model.MouvementDeStock.id)
            .all()
        )


class SqlAlchemyEntrepôtRepository(AbstractEntrepôtRepository):
    def __init__(self, session: Session):
        self.session = session

    def add(self, entrepôt: model.Entrepôt) -> None:
        self.session.add(entrepôt)
        self.session.flush()

    def get(self, id_entrepôt: int) -> model.Entrepôt | None:
        return self.session.get(model.Entrepôt, id_entrepôt)


class SqlAlchemyProduitRepository(AbstractProduitRepository):
    def __init__(self, session: Session):
        self.session = session

    def add(self, produit: model.Produit) -> None:
        self.session.add(produit)
        self.session.flush()

    def get(self, id_produit: int) -> model.Produit | None:
        return self.session.get(model.Produit, id_produit)
