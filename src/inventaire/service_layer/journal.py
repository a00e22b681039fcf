"""
Journal des mouvements de stock.

Append-only : on enregistre un mouvement par variation de stock, on
ne le modifie ni ne le supprime jamais. Trier les mouvements d'un
stock par (créé_le, id) permet d'en rejouer l'historique.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from inventaire.domain import model

if TYPE_CHECKING:
    from inventaire.service_layer.unit_of_work import AbstractUnitOfWork


class JournalDesMouvements:
    def __init__(self, uow: AbstractUnitOfWork):
        self.uow = uow

    def enregistrer(
        self,
        id_stock: int,
        variation: int,
        type_opération: model.TypeOpération,
        source: model.SourceMouvement,
        motif: Optional[str] = None,
        id_acteur: Optional[int] = None,
    ) -> int:
        """Ajoute un mouvement au journal et retourne son id."""
        if variation == 0:
            raise ValueError("Un mouvement de stock ne peut pas être nul")
        mouvement = model.MouvementDeStock(
            id_stock=id_stock,
            variation=variation,
            type_opération=type_opération,
            source=source,
            motif=motif,
            id_acteur=id_acteur,
        )
        self.uow.mouvements.add(mouvement)
        return mouvement.id

    def historique(self, id_stock: int) -> list[model.MouvementDeStock]:
        return self.uow.mouvements.liste_pour_stock(id_stock)
