"""
Handlers pour les commands et events.

Les command handlers de ce module forment le service de cycle de vie
des commandes : ils vérifient les préconditions, font varier le stock
via le RegistreDeStock, tracent chaque variation dans le
JournalDesMouvements et mettent à jour la Commande, le tout dans un
seul Unit of Work.

Compléter et restaurer suivent un schéma en deux phases :
1. verrouiller et vérifier le stock de TOUS les produits, dans l'ordre
   croissant des ids (ordre canonique de verrouillage) ;
2. seulement ensuite, déduire le stock ligne par ligne.
Une ligne insuffisante fait donc échouer la command sans qu'aucun
stock n'ait été touché.

- Command handlers : exécutent une action (peuvent échouer)
- Event handlers : réagissent à un fait passé (ne doivent pas échouer)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable

from inventaire import config
from inventaire.domain import commands, events, model
from inventaire.service_layer.journal import JournalDesMouvements
from inventaire.service_layer.registre import RegistreDeStock

if TYPE_CHECKING:
    from inventaire.adapters.notifications import AbstractNotifications
    from inventaire.service_layer.unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)


# --- Exceptions ---


class CommandeIntrouvable(model.ErreurDomaine):
    """Levée quand l'id de commande ne correspond à aucune commande."""

    def __init__(self, id_commande: int):
        self.id_commande = id_commande
        super().__init__(f"Commande introuvable : #{id_commande}")


class EntrepôtIntrouvable(model.ErreurDomaine):
    """Levée quand l'entrepôt référencé n'existe pas (ou plus)."""

    def __init__(self, id_entrepôt: int):
        self.id_entrepôt = id_entrepôt
        super().__init__(f"Entrepôt introuvable : {id_entrepôt}")


class ProduitIntrouvable(model.ErreurDomaine):
    """Levée quand une ligne ou un ajustement référence un produit inconnu."""

    def __init__(self, id_produit: int):
        self.id_produit = id_produit
        super().__init__(f"Produit introuvable : {id_produit}")


# --- Helpers ---


def _charger_commande(uow: AbstractUnitOfWork, id_commande: int) -> model.Commande:
    commande = uow.commandes.get(id_commande)
    if commande is None:
        raise CommandeIntrouvable(id_commande)
    return commande


def _vérifier_entrepôt(uow: AbstractUnitOfWork, id_entrepôt: int) -> None:
    if uow.entrepôts.get(id_entrepôt) is None:
        raise EntrepôtIntrouvable(id_entrepôt)


def _vérifier_produits(uow: AbstractUnitOfWork, ids_produits: Iterable[int]) -> None:
    for id_produit in sorted(set(ids_produits)):
        if uow.produits.get(id_produit) is None:
            raise ProduitIntrouvable(id_produit)


def _construire_lignes(lignes: tuple[commands.Ligne, ...]) -> list[model.LigneDeCommande]:
    return [model.LigneDeCommande(id_produit=l.id_produit, quantité=l.quantité) for l in lignes]


def _verrouiller_stocks(registre: RegistreDeStock, commande: model.Commande) -> dict[int, model.Stock]:
    """Verrouille les stocks de la commande dans l'ordre croissant des produits."""
    return {
        id_produit: registre.consulter(id_produit, commande.id_entrepôt, requis=requis)
        for id_produit, requis in commande.quantités_requises().items()
    }


def _vérifier_disponibilité(registre: RegistreDeStock, commande: model.Commande) -> dict[int, model.Stock]:
    """
    Phase 1 : verrouille chaque stock et vérifie qu'il couvre la commande.

    Aucune écriture n'a lieu ici ; la première insuffisance lève
    StockInsuffisant (ou StockIntrouvable).
    """
    stocks = _verrouiller_stocks(registre, commande)
    for id_produit, requis in commande.quantités_requises().items():
        stock = stocks[id_produit]
        if not stock.peut_fournir(requis):
            raise model.StockInsuffisant(commande.id, id_produit, stock.quantité, requis)
    return stocks


def _appliquer_mouvements(
    uow: AbstractUnitOfWork,
    registre: RegistreDeStock,
    commande: model.Commande,
    stocks: dict[int, model.Stock],
    sens: int,
    type_opération: model.TypeOpération,
    motif: str,
    id_acteur: int | None,
) -> None:
    """Phase 2 : un ajustement et un mouvement par ligne de commande."""
    journal = JournalDesMouvements(uow)
    source = model.SourceMouvement.commande(commande.id)
    for ligne in commande.lignes:
        variation = sens * ligne.quantité
        registre.ajuster(ligne.id_produit, commande.id_entrepôt, variation)
        journal.enregistrer(
            id_stock=stocks[ligne.id_produit].id,
            variation=variation,
            type_opération=type_opération,
            source=source,
            motif=motif,
            id_acteur=id_acteur,
        )


# --- Command Handlers : cycle de vie ---


def compléter_commande(
    cmd: commands.CompléterCommande,
    uow: AbstractUnitOfWork,
) -> model.Commande:
    """
    Complète une commande active et déduit son stock.

    Lève TransitionInvalide, EntrepôtIntrouvable, StockInsuffisant ou
    StockIntrouvable ; dans tous ces cas rien n'est modifié.
    """
    with uow:
        commande = _charger_commande(uow, cmd.id_commande)
        commande.vérifier_transition("compléter")
        _vérifier_entrepôt(uow, commande.id_entrepôt)

        registre = RegistreDeStock(uow, id_commande=commande.id)
        stocks = _vérifier_disponibilité(registre, commande)
        _appliquer_mouvements(
            uow, registre, commande, stocks,
            sens=-1,
            type_opération=model.TypeOpération.COMPLÉTION_COMMANDE,
            motif=f"Complétion de la commande #{commande.id}",
            id_acteur=cmd.id_acteur,
        )
        commande.compléter()
        uow.commit()
    logger.info("Commande #%d complétée (%d ligne(s))", commande.id, len(commande.lignes))
    return commande


def annuler_commande(
    cmd: commands.AnnulerCommande,
    uow: AbstractUnitOfWork,
) -> model.Commande:
    """
    Annule une commande active ou complétée.

    Le stock n'est restitué que si la commande était complétée : une
    commande active n'a encore rien déduit.
    """
    with uow:
        commande = _charger_commande(uow, cmd.id_commande)
        commande.vérifier_transition("annuler")

        if commande.statut is model.StatutCommande.COMPLÉTÉE:
            registre = RegistreDeStock(uow, id_commande=commande.id)
            stocks = _verrouiller_stocks(registre, commande)
            _appliquer_mouvements(
                uow, registre, commande, stocks,
                sens=+1,
                type_opération=model.TypeOpération.ANNULATION_COMMANDE,
                motif=f"Annulation de la commande complétée #{commande.id}",
                id_acteur=cmd.id_acteur,
            )
        commande.annuler()
        uow.commit()
    logger.info("Commande #%d annulée", commande.id)
    return commande


def restaurer_commande(
    cmd: commands.RestaurerCommande,
    uow: AbstractUnitOfWork,
) -> model.Commande:
    """
    Réactive une commande annulée et déduit de nouveau son stock.

    Toute la vérification de stock a lieu avant la première déduction.
    """
    with uow:
        commande = _charger_commande(uow, cmd.id_commande)
        commande.vérifier_transition("restaurer")
        _vérifier_entrepôt(uow, commande.id_entrepôt)

        registre = RegistreDeStock(uow, id_commande=commande.id)
        stocks = _vérifier_disponibilité(registre, commande)
        _appliquer_mouvements(
            uow, registre, commande, stocks,
            sens=-1,
            type_opération=model.TypeOpération.RESTAURATION_COMMANDE,
            motif=f"Restauration de la commande #{commande.id}",
            id_acteur=cmd.id_acteur,
        )
        commande.restaurer()
        uow.commit()
    logger.info("Commande #%d restaurée", commande.id)
    return commande


# --- Command Handlers : gestion des commandes ---


def créer_commande(
    cmd: commands.CréerCommande,
    uow: AbstractUnitOfWork,
) -> model.Commande:
    """Crée une commande active ; aucun stock n'est touché à la création."""
    lignes = _construire_lignes(cmd.lignes)
    if not lignes:
        raise model.CommandeVide("Une commande doit contenir au moins une ligne")
    for ligne in lignes:
        ligne.valider()
    with uow:
        _vérifier_entrepôt(uow, cmd.id_entrepôt)
        _vérifier_produits(uow, (l.id_produit for l in lignes))
        commande = model.Commande(client=cmd.client, id_entrepôt=cmd.id_entrepôt, lignes=lignes)
        uow.commandes.add(commande)
        uow.commit()
    logger.info("Commande #%d créée pour %s", commande.id, commande.client)
    return commande


def modifier_commande(
    cmd: commands.ModifierCommande,
    uow: AbstractUnitOfWork,
) -> model.Commande:
    """
    Met à jour le client et/ou remplace les lignes d'une commande.

    Le statut et l'entrepôt ne sont pas modifiables ici.
    """
    with uow:
        commande = _charger_commande(uow, cmd.id_commande)
        if cmd.client is not None:
            commande.client = cmd.client
        if cmd.lignes is not None:
            _vérifier_produits(uow, (l.id_produit for l in cmd.lignes))
            commande.remplacer_lignes(_construire_lignes(cmd.lignes))
        uow.commit()
    return commande


def supprimer_commande(
    cmd: commands.SupprimerCommande,
    uow: AbstractUnitOfWork,
) -> None:
    """
    Supprime définitivement une commande et ses lignes.

    Le stock n'est PAS restitué, même pour une commande complétée :
    il faut l'annuler d'abord si l'on veut récupérer le stock.
    """
    with uow:
        commande = _charger_commande(uow, cmd.id_commande)
        if commande.statut is model.StatutCommande.COMPLÉTÉE:
            logger.warning(
                "Suppression de la commande complétée #%d : son stock n'est pas restitué",
                commande.id,
            )
        uow.commandes.delete(commande)
        uow.commit()
    logger.info("Commande #%d supprimée", cmd.id_commande)


# --- Command Handlers : stock ---


def ajuster_stock(
    cmd: commands.AjusterStock,
    uow: AbstractUnitOfWork,
) -> int:
    """
    Ajustement administratif d'un stock.

    Crée le stock à zéro s'il n'existe pas. Aucun plancher : un
    ajustement peut rendre le stock négatif. Retourne la nouvelle quantité.
    """
    if cmd.variation == 0:
        raise model.VariationNulle(cmd.id_produit)
    with uow:
        _vérifier_entrepôt(uow, cmd.id_entrepôt)
        _vérifier_produits(uow, [cmd.id_produit])
        registre = RegistreDeStock(uow)
        stock = registre.approvisionner(cmd.id_produit, cmd.id_entrepôt)
        quantité = registre.ajuster(cmd.id_produit, cmd.id_entrepôt, cmd.variation)
        JournalDesMouvements(uow).enregistrer(
            id_stock=stock.id,
            variation=cmd.variation,
            type_opération=model.TypeOpération.AJUSTEMENT,
            source=model.SourceMouvement.inventaire(stock.id),
            motif=cmd.motif,
            id_acteur=cmd.id_acteur,
        )
        uow.commit()
    if quantité < 0:
        logger.warning(
            "Stock négatif après ajustement : produit %d, entrepôt %d, quantité %d",
            cmd.id_produit, cmd.id_entrepôt, quantité,
        )
    return quantité


# --- Event Handlers ---


def publier_événement_commande(
    event: events.CommandeComplétée | events.CommandeAnnulée | events.CommandeRestaurée,
) -> None:
    """
    Publie un changement de statut de commande vers l'extérieur.

    Pour l'instant, une simple ligne de log structurée.
    """
    logger.info("Événement publié : %s", event)


def envoyer_notification_stock_épuisé(
    event: events.StockÉpuisé,
    notifications: AbstractNotifications,
) -> None:
    notifications.send(
        destination=config.get_alert_email(),
        sujet=f"Stock épuisé : produit {event.id_produit}, entrepôt {event.id_entrepôt}",
        message=(
            f"Stock épuisé pour le produit {event.id_produit} "
            f"dans l'entrepôt {event.id_entrepôt} (quantité : {event.quantité}).\n"
            "Un réapprovisionnement ou un ajustement d'inventaire est nécessaire."
        ),
    )
