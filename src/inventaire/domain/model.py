"""
Modèle de domaine pour la gestion des commandes et du stock.

Ce module contient les entités, value objects et erreurs du domaine.
Une Commande est liée à un seul Entrepôt et consomme, lorsqu'elle est
complétée, le Stock de ses produits dans cet entrepôt. Chaque variation
de Stock est tracée par un MouvementDeStock immuable.

Les transitions de statut autorisées sont décrites par la table
TRANSITIONS_AUTORISÉES ; l'agrégat Commande ne fait que vérifier et
appliquer le changement de statut. La coordination avec le stock
est le travail de la service layer.
"""

from __future__ import annotations

import enum
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional

from inventaire.domain import events


# --- Erreurs du domaine ---


class ErreurDomaine(Exception):
    """Classe de base de toutes les erreurs métier remontées à l'appelant."""
    pass


class TransitionInvalide(ErreurDomaine):
    """Levée quand le statut de la commande interdit la transition demandée."""

    def __init__(self, id_commande: Optional[int], statut: StatutCommande, transition: str):
        self.id_commande = id_commande
        self.statut = statut
        self.transition = transition
        super().__init__(
            f"Impossible de {transition} la commande #{id_commande} "
            f"(statut : {statut.value})"
        )


class StockInsuffisant(ErreurDomaine):
    """Levée quand le stock disponible ne couvre pas la quantité requise."""

    def __init__(self, id_commande: Optional[int], id_produit: int, disponible: int, requis: int):
        self.id_commande = id_commande
        self.id_produit = id_produit
        self.disponible = disponible
        self.requis = requis
        super().__init__(self._message())

    def _message(self) -> str:
        return (
            f"Stock insuffisant pour le produit {self.id_produit} "
            f"(commande #{self.id_commande}). "
            f"Disponible : {self.disponible}, requis : {self.requis}"
        )


class StockIntrouvable(StockInsuffisant):
    """
    Levée quand aucun stock n'existe pour le couple (produit, entrepôt).

    Traitée comme un stock insuffisant avec zéro disponible :
    le produit n'est tout simplement pas stocké dans cet entrepôt.
    """

    def __init__(self, id_commande: Optional[int], id_produit: int, id_entrepôt: int, requis: int = 0):
        self.id_entrepôt = id_entrepôt
        super().__init__(id_commande, id_produit, disponible=0, requis=requis)

    def _message(self) -> str:
        return (
            f"Aucun stock pour le produit {self.id_produit} "
            f"dans l'entrepôt {self.id_entrepôt}"
        )


class QuantitéInvalide(ErreurDomaine):
    """Levée quand une ligne de commande a une quantité inférieure à 1."""

    def __init__(self, id_produit: int, quantité: int):
        self.id_produit = id_produit
        self.quantité = quantité
        super().__init__(
            f"Quantité invalide pour le produit {id_produit} : {quantité} (minimum 1)"
        )


class VariationNulle(ErreurDomaine):
    """Levée quand un ajustement de stock ne fait rien varier."""

    def __init__(self, id_produit: int):
        self.id_produit = id_produit
        super().__init__(f"Variation nulle pour le produit {id_produit}")


class CommandeVide(ErreurDomaine):
    """Levée quand on tente de créer ou remplir une commande sans ligne."""
    pass


class CommandeNonModifiable(ErreurDomaine):
    """Levée quand on remplace les lignes d'une commande déjà complétée."""

    def __init__(self, id_commande: Optional[int], statut: StatutCommande):
        self.id_commande = id_commande
        self.statut = statut
        super().__init__(
            f"Les lignes de la commande #{id_commande} ne sont pas modifiables "
            f"(statut : {statut.value})"
        )


# --- Énumérations ---


class StatutCommande(str, enum.Enum):
    ACTIVE = "active"
    COMPLÉTÉE = "completed"
    ANNULÉE = "canceled"


class TypeOpération(str, enum.Enum):
    """Nature de l'opération à l'origine d'un mouvement de stock."""

    COMPLÉTION_COMMANDE = "order_completion"
    ANNULATION_COMMANDE = "order_cancellation"
    RESTAURATION_COMMANDE = "order_restoration"
    AJUSTEMENT = "adjustment"


class TypeSource(str, enum.Enum):
    """Type d'entité ayant déclenché un mouvement de stock."""

    COMMANDE = "order"
    INVENTAIRE = "inventory"


# Transition -> statuts de départ acceptés
TRANSITIONS_AUTORISÉES: dict[str, frozenset[StatutCommande]] = {
    "compléter": frozenset({StatutCommande.ACTIVE}),
    "annuler": frozenset({StatutCommande.ACTIVE, StatutCommande.COMPLÉTÉE}),
    "restaurer": frozenset({StatutCommande.ANNULÉE}),
}


def maintenant() -> datetime:
    return datetime.now(timezone.utc)


# --- Value Objects ---


@dataclass(frozen=True)
class SourceMouvement:
    """
    Value Object désignant l'entité à l'origine d'un mouvement.

    Union étiquetée (type, id) : le journal reste typé tout en
    acceptant de nouveaux types de source plus tard.
    """

    type_source: TypeSource
    id_source: int

    @classmethod
    def commande(cls, id_commande: int) -> SourceMouvement:
        return cls(TypeSource.COMMANDE, id_commande)

    @classmethod
    def inventaire(cls, id_stock: int) -> SourceMouvement:
        return cls(TypeSource.INVENTAIRE, id_stock)


@dataclass
class LigneDeCommande:
    """Ligne de commande : un produit et la quantité demandée."""

    id_produit: int
    quantité: int

    def valider(self) -> None:
        if self.quantité < 1:
            raise QuantitéInvalide(self.id_produit, self.quantité)


# --- Entités ---


class Entrepôt:
    """Entrepôt physique auquel sont rattachés stocks et commandes."""

    def __init__(self, nom: str, id: Optional[int] = None):
        self.id = id
        self.nom = nom

    def __repr__(self) -> str:
        return f"<Entrepôt {self.id} {self.nom!r}>"


class Produit:
    """Produit du catalogue ; son stock est tenu entrepôt par entrepôt."""

    def __init__(self, nom: str, prix: Optional[Decimal] = None, id: Optional[int] = None):
        self.id = id
        self.nom = nom
        self.prix = prix

    def __repr__(self) -> str:
        return f"<Produit {self.id} {self.nom!r}>"


class Stock:
    """
    Quantité d'un produit disponible dans un entrepôt.

    La quantité n'est jamais réécrite : elle évolue uniquement par
    application d'un delta signé via ajuster(). Aucun plancher n'est
    imposé ici ; la suffisance est vérifiée par l'appelant.
    """

    def __init__(self, id_produit: int, id_entrepôt: int, quantité: int = 0, id: Optional[int] = None):
        self.id = id
        self.id_produit = id_produit
        self.id_entrepôt = id_entrepôt
        self.quantité = quantité
        self.événements: list[events.Event] = []

    def __repr__(self) -> str:
        return f"<Stock produit={self.id_produit} entrepôt={self.id_entrepôt} quantité={self.quantité}>"

    def peut_fournir(self, quantité: int) -> bool:
        return self.quantité >= quantité

    def ajuster(self, delta: int) -> int:
        """Applique un delta signé et retourne la nouvelle quantité."""
        self.quantité += delta
        if delta < 0 and self.quantité <= 0:
            self.événements.append(
                events.StockÉpuisé(
                    id_produit=self.id_produit,
                    id_entrepôt=self.id_entrepôt,
                    quantité=self.quantité,
                )
            )
        return self.quantité


class MouvementDeStock:
    """
    Enregistrement immuable d'une variation de stock.

    variation > 0 : entrée ; variation < 0 : sortie.
    Un mouvement n'est jamais modifié ni supprimé : une correction
    est un nouveau mouvement de sens inverse.
    """

    def __init__(
        self,
        id_stock: int,
        variation: int,
        type_opération: TypeOpération,
        source: SourceMouvement,
        motif: Optional[str] = None,
        id_acteur: Optional[int] = None,
        créé_le: Optional[datetime] = None,
    ):
        self.id: Optional[int] = None
        self.id_stock = id_stock
        self.variation = variation
        self.type_opération = type_opération
        self.type_source = source.type_source
        self.id_source = source.id_source
        self.motif = motif
        self.id_acteur = id_acteur
        self.créé_le = créé_le or maintenant()

    def __repr__(self) -> str:
        signe = "+" if self.variation > 0 else ""
        return f"<MouvementDeStock {signe}{self.variation} {self.type_opération.value}>"

    @property
    def source(self) -> SourceMouvement:
        return SourceMouvement(TypeSource(self.type_source), self.id_source)


class Commande:
    """
    Agrégat racine d'une commande client.

    Une commande est créée active, liée pour toujours à son entrepôt.
    Son statut n'évolue que par compléter(), annuler() et restaurer(),
    qui vérifient la table TRANSITIONS_AUTORISÉES et maintiennent
    l'invariant sur les horodatages :
    - active    : complétée_le et annulée_le sont nuls
    - completed : seul complétée_le est renseigné
    - canceled  : seul annulée_le est renseigné
    """

    def __init__(
        self,
        client: str,
        id_entrepôt: int,
        lignes: Optional[list[LigneDeCommande]] = None,
        id: Optional[int] = None,
    ):
        self.id = id
        self.client = client
        self.id_entrepôt = id_entrepôt
        self.statut = StatutCommande.ACTIVE
        self.complétée_le: Optional[datetime] = None
        self.annulée_le: Optional[datetime] = None
        self.lignes = lignes or []
        self.événements: list[events.Event] = []

    def __repr__(self) -> str:
        return f"<Commande #{self.id} {self.statut.value}>"

    def quantités_requises(self) -> dict[int, int]:
        """
        Quantité totale requise par produit, triée par id de produit.

        Un même produit peut apparaître sur plusieurs lignes : la
        vérification de suffisance porte sur la somme. L'ordre croissant
        des ids sert d'ordre canonique de verrouillage des stocks.
        """
        totaux: dict[int, int] = defaultdict(int)
        for ligne in self.lignes:
            totaux[ligne.id_produit] += ligne.quantité
        return dict(sorted(totaux.items()))

    def vérifier_transition(self, transition: str) -> None:
        """Lève TransitionInvalide si la transition est interdite depuis le statut courant."""
        if self.statut not in TRANSITIONS_AUTORISÉES[transition]:
            raise TransitionInvalide(self.id, self.statut, transition)
        # complétée_le doit être nul avant de compléter ou restaurer.
        if transition in ("compléter", "restaurer") and self.complétée_le is not None:
            raise TransitionInvalide(self.id, self.statut, transition)

    def compléter(self, le: Optional[datetime] = None) -> None:
        self.vérifier_transition("compléter")
        self.statut = StatutCommande.COMPLÉTÉE
        self.complétée_le = le or maintenant()
        self.événements.append(events.CommandeComplétée(id_commande=self.id))

    def annuler(self, le: Optional[datetime] = None) -> bool:
        """
        Annule la commande.

        Retourne True si la commande était complétée, c'est-à-dire
        si son stock doit être restitué par l'appelant.
        """
        self.vérifier_transition("annuler")
        était_complétée = self.statut is StatutCommande.COMPLÉTÉE
        self.statut = StatutCommande.ANNULÉE
        self.annulée_le = le or maintenant()
        self.complétée_le = None
        self.événements.append(
            events.CommandeAnnulée(id_commande=self.id, stock_restitué=était_complétée)
        )
        return était_complétée

    def restaurer(self) -> None:
        self.vérifier_transition("restaurer")
        self.statut = StatutCommande.ACTIVE
        self.annulée_le = None
        self.complétée_le = None
        self.événements.append(events.CommandeRestaurée(id_commande=self.id))

    def remplacer_lignes(self, lignes: Iterable[LigneDeCommande]) -> None:
        """
        Remplace toutes les lignes de la commande.

        Interdit sur une commande complétée : le stock déjà déduit ne
        correspondrait plus aux lignes restituées par une annulation.
        """
        if self.statut is StatutCommande.COMPLÉTÉE:
            raise CommandeNonModifiable(self.id, self.statut)
        nouvelles = list(lignes)
        if not nouvelles:
            raise CommandeVide(f"La commande #{self.id} doit contenir au moins une ligne")
        for ligne in nouvelles:
            ligne.valider()
        self.lignes = nouvelles
