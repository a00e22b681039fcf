"""
Tests unitaires du modèle de domaine.

Ces tests vérifient les règles de l'agrégat Commande et de l'entité
Stock en isolation complète, sans base de données ni I/O.
"""

from datetime import datetime, timezone

import pytest

from inventaire.domain import events
from inventaire.domain.model import (
    Commande,
    CommandeNonModifiable,
    CommandeVide,
    LigneDeCommande,
    MouvementDeStock,
    QuantitéInvalide,
    SourceMouvement,
    StatutCommande,
    Stock,
    StockInsuffisant,
    StockIntrouvable,
    TransitionInvalide,
    TypeOpération,
    TypeSource,
)


# --- Helpers ---


def créer_commande(*lignes: tuple[int, int], statut=StatutCommande.ACTIVE) -> Commande:
    commande = Commande(
        client="Boulangerie Dupont",
        id_entrepôt=1,
        lignes=[LigneDeCommande(id_produit=p, quantité=q) for p, q in lignes],
        id=42,
    )
    if statut is StatutCommande.COMPLÉTÉE:
        commande.compléter()
    elif statut is StatutCommande.ANNULÉE:
        commande.annuler()
    commande.événements.clear()
    return commande


# --- Tests des transitions ---


class TestCompléter:
    def test_compléter_une_commande_active(self):
        commande = créer_commande((1, 3))
        le = datetime(2025, 7, 20, 10, 0, tzinfo=timezone.utc)

        commande.compléter(le)

        assert commande.statut is StatutCommande.COMPLÉTÉE
        assert commande.complétée_le == le
        assert commande.annulée_le is None

    def test_émet_commande_complétée(self):
        commande = créer_commande((1, 3))
        commande.compléter()
        assert commande.événements == [events.CommandeComplétée(id_commande=42)]

    @pytest.mark.parametrize("statut", [StatutCommande.COMPLÉTÉE, StatutCommande.ANNULÉE])
    def test_refuse_une_commande_non_active(self, statut):
        commande = créer_commande((1, 3), statut=statut)

        with pytest.raises(TransitionInvalide) as exc:
            commande.compléter()

        assert exc.value.statut is statut
        assert exc.value.id_commande == 42
        assert commande.statut is statut


class TestAnnuler:
    def test_annuler_une_commande_active_ne_restitue_rien(self):
        commande = créer_commande((1, 3))

        à_restituer = commande.annuler()

        assert à_restituer is False
        assert commande.statut is StatutCommande.ANNULÉE
        assert commande.annulée_le is not None

    def test_annuler_une_commande_complétée_efface_complétée_le(self):
        commande = créer_commande((1, 3), statut=StatutCommande.COMPLÉTÉE)

        à_restituer = commande.annuler()

        assert à_restituer is True
        assert commande.complétée_le is None
        assert commande.annulée_le is not None
        assert commande.événements == [
            events.CommandeAnnulée(id_commande=42, stock_restitué=True)
        ]

    def test_refuse_une_commande_déjà_annulée(self):
        commande = créer_commande((1, 3), statut=StatutCommande.ANNULÉE)
        with pytest.raises(TransitionInvalide, match="annuler"):
            commande.annuler()


class TestRestaurer:
    def test_restaurer_remet_la_commande_active(self):
        commande = créer_commande((1, 3), statut=StatutCommande.ANNULÉE)

        commande.restaurer()

        assert commande.statut is StatutCommande.ACTIVE
        assert commande.annulée_le is None
        assert commande.complétée_le is None

    @pytest.mark.parametrize("statut", [StatutCommande.ACTIVE, StatutCommande.COMPLÉTÉE])
    def test_refuse_une_commande_non_annulée(self, statut):
        commande = créer_commande((1, 3), statut=statut)
        with pytest.raises(TransitionInvalide):
            commande.restaurer()

    def test_refuse_une_commande_annulée_avec_complétée_le(self):
        """Données incohérentes : complétée_le doit être nul pour restaurer."""
        commande = créer_commande((1, 3), statut=StatutCommande.ANNULÉE)
        commande.complétée_le = datetime(2025, 1, 1, tzinfo=timezone.utc)
        with pytest.raises(TransitionInvalide):
            commande.restaurer()


# --- Tests des lignes ---


class TestLignes:
    def test_quantités_requises_additionne_un_produit_répété(self):
        commande = créer_commande((7, 2), (3, 1), (7, 4))
        assert commande.quantités_requises() == {3: 1, 7: 6}

    def test_quantités_requises_triées_par_produit(self):
        commande = créer_commande((9, 1), (2, 1), (5, 1))
        assert list(commande.quantités_requises()) == [2, 5, 9]

    def test_commande_vide_ne_requiert_rien(self):
        assert créer_commande().quantités_requises() == {}

    def test_remplacer_lignes(self):
        commande = créer_commande((1, 3))
        commande.remplacer_lignes([LigneDeCommande(2, 5), LigneDeCommande(3, 1)])
        assert [l.id_produit for l in commande.lignes] == [2, 3]

    def test_remplacer_lignes_refusé_si_complétée(self):
        commande = créer_commande((1, 3), statut=StatutCommande.COMPLÉTÉE)
        with pytest.raises(CommandeNonModifiable):
            commande.remplacer_lignes([LigneDeCommande(2, 5)])
        assert commande.lignes == [LigneDeCommande(1, 3)]

    def test_remplacer_lignes_autorisé_si_annulée(self):
        commande = créer_commande((1, 3), statut=StatutCommande.ANNULÉE)
        commande.remplacer_lignes([LigneDeCommande(2, 5)])
        assert commande.lignes == [LigneDeCommande(2, 5)]

    def test_remplacer_par_aucune_ligne(self):
        commande = créer_commande((1, 3))
        with pytest.raises(CommandeVide):
            commande.remplacer_lignes([])

    def test_quantité_nulle_refusée(self):
        commande = créer_commande((1, 3))
        with pytest.raises(QuantitéInvalide) as exc:
            commande.remplacer_lignes([LigneDeCommande(2, 0)])
        assert exc.value.id_produit == 2
        assert commande.lignes == [LigneDeCommande(1, 3)]


# --- Tests du Stock ---


class TestStock:
    def test_ajuster_retourne_la_nouvelle_quantité(self):
        stock = Stock(id_produit=1, id_entrepôt=1, quantité=10)
        assert stock.ajuster(-3) == 7
        assert stock.ajuster(+5) == 12

    def test_ajuster_sans_plancher(self):
        stock = Stock(id_produit=1, id_entrepôt=1, quantité=2)
        assert stock.ajuster(-5) == -3

    def test_peut_fournir(self):
        stock = Stock(id_produit=1, id_entrepôt=1, quantité=5)
        assert stock.peut_fournir(5)
        assert not stock.peut_fournir(6)

    def test_émet_stock_épuisé_quand_une_sortie_vide_le_stock(self):
        stock = Stock(id_produit=1, id_entrepôt=2, quantité=5)
        stock.ajuster(-5)
        assert stock.événements == [
            events.StockÉpuisé(id_produit=1, id_entrepôt=2, quantité=0)
        ]

    def test_une_entrée_n_émet_rien(self):
        stock = Stock(id_produit=1, id_entrepôt=2, quantité=-4)
        stock.ajuster(+2)
        assert stock.événements == []


# --- Tests des mouvements et erreurs ---


class TestMouvementDeStock:
    def test_source_est_une_union_étiquetée(self):
        mouvement = MouvementDeStock(
            id_stock=1,
            variation=-3,
            type_opération=TypeOpération.COMPLÉTION_COMMANDE,
            source=SourceMouvement.commande(42),
        )
        assert mouvement.source == SourceMouvement(TypeSource.COMMANDE, 42)
        assert mouvement.créé_le.tzinfo is not None

    def test_valeurs_des_types_d_opération(self):
        assert TypeOpération.COMPLÉTION_COMMANDE.value == "order_completion"
        assert TypeOpération.ANNULATION_COMMANDE.value == "order_cancellation"
        assert TypeOpération.RESTAURATION_COMMANDE.value == "order_restoration"


class TestErreurs:
    def test_stock_insuffisant_porte_le_contexte(self):
        erreur = StockInsuffisant(id_commande=42, id_produit=3, disponible=2, requis=100)
        assert (erreur.disponible, erreur.requis) == (2, 100)
        assert "Disponible : 2, requis : 100" in str(erreur)

    def test_stock_introuvable_équivaut_à_zéro_disponible(self):
        erreur = StockIntrouvable(id_commande=42, id_produit=3, id_entrepôt=1, requis=4)
        assert isinstance(erreur, StockInsuffisant)
        assert erreur.disponible == 0
        assert erreur.requis == 4
