"""
Events du domaine.

Les events sont des faits accomplis, nommés au passé.
Ils sont levés par les agrégats (Commande, Stock) et collectés
par le Unit of Work une fois le handler de command terminé.
"""

from dataclasses import dataclass


class Event:
    """Classe de base pour tous les events du domaine."""
    pass


@dataclass(frozen=True)
class CommandeComplétée(Event):
    """Une commande a été complétée et son stock déduit."""

    id_commande: int


@dataclass(frozen=True)
class CommandeAnnulée(Event):
    """Une commande a été annulée ; stock_restitué si elle était complétée."""

    id_commande: int
    stock_restitué: bool


@dataclass(frozen=True)
class CommandeRestaurée(Event):
    """Une commande annulée est redevenue active et son stock a été déduit."""

    id_commande: int


@dataclass(frozen=True)
class StockÉpuisé(Event):
    """Une sortie a laissé le stock d'un produit à zéro (ou moins)."""

    id_produit: int
    id_entrepôt: int
    quantité: int
