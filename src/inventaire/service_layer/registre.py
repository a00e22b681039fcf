"""
Registre de stock.

Le registre est le seul point d'entrée pour faire varier la quantité
d'un Stock. Il travaille dans la transaction du Unit of Work qu'on lui
passe et ne commite jamais lui-même.

Aucun plancher n'est imposé ici : vérifier que le stock suffit avant
une sortie est la responsabilité de l'appelant.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from inventaire.domain import model

if TYPE_CHECKING:
    from inventaire.service_layer.unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)


class RegistreDeStock:
    def __init__(self, uow: AbstractUnitOfWork, id_commande: Optional[int] = None):
        self.uow = uow
        # Contexte ajouté aux erreurs StockIntrouvable
        self.id_commande = id_commande

    def consulter(
        self, id_produit: int, id_entrepôt: int, requis: int = 0, verrouiller: bool = True
    ) -> model.Stock:
        """
        Retourne le stock (verrouillé par défaut) du couple (produit, entrepôt).

        Lève StockIntrouvable si le produit n'est pas stocké dans l'entrepôt.
        """
        stock = self.uow.stocks.get(id_produit, id_entrepôt, verrouiller=verrouiller)
        if stock is None:
            raise model.StockIntrouvable(self.id_commande, id_produit, id_entrepôt, requis)
        return stock

    def approvisionner(self, id_produit: int, id_entrepôt: int) -> model.Stock:
        """Retourne le stock du couple, en le créant à zéro s'il n'existe pas."""
        stock = self.uow.stocks.get(id_produit, id_entrepôt, verrouiller=True)
        if stock is None:
            stock = model.Stock(id_produit=id_produit, id_entrepôt=id_entrepôt, quantité=0)
            self.uow.stocks.add(stock)
            logger.info("Stock créé pour le produit %d dans l'entrepôt %d", id_produit, id_entrepôt)
        return stock

    def ajuster(self, id_produit: int, id_entrepôt: int, delta: int) -> int:
        """Applique un delta signé au stock et retourne la nouvelle quantité."""
        stock = self.consulter(id_produit, id_entrepôt)
        nouvelle_quantité = stock.ajuster(delta)
        logger.debug(
            "Stock produit=%d entrepôt=%d : %+d -> %d",
            id_produit, id_entrepôt, delta, nouvelle_quantité,
        )
        return nouvelle_quantité

