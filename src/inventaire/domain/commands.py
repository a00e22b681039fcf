"""
Commands du domaine.

Une command exprime une intention adressée au système et peut
échouer. L'acteur (id_acteur) est transmis explicitement dans
chaque command qui produit des mouvements de stock ; il n'existe
pas d'utilisateur courant global.
"""

from dataclasses import dataclass, field
from typing import Optional


class Command:
    """Classe de base pour toutes les commands."""
    pass


@dataclass(frozen=True)
class Ligne:
    """Ligne demandée : (id_produit, quantité)."""

    id_produit: int
    quantité: int


@dataclass(frozen=True)
class CréerCommande(Command):
    client: str
    id_entrepôt: int
    lignes: tuple[Ligne, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ModifierCommande(Command):
    """Met à jour le client et/ou remplace toutes les lignes."""

    id_commande: int
    client: Optional[str] = None
    lignes: Optional[tuple[Ligne, ...]] = None


@dataclass(frozen=True)
class SupprimerCommande(Command):
    id_commande: int


@dataclass(frozen=True)
class CompléterCommande(Command):
    id_commande: int
    id_acteur: Optional[int] = None


@dataclass(frozen=True)
class AnnulerCommande(Command):
    id_commande: int
    id_acteur: Optional[int] = None


@dataclass(frozen=True)
class RestaurerCommande(Command):
    id_commande: int
    id_acteur: Optional[int] = None


@dataclass(frozen=True)
class AjusterStock(Command):
    """Ajustement administratif d'un stock (inventaire, casse, réception...)."""

    id_produit: int
    id_entrepôt: int
    variation: int
    motif: str
    id_acteur: Optional[int] = None
