"""
Tests end-to-end de l'API Flask.

Flux complet : requête HTTP -> Flask -> Message Bus -> Handlers ->
Unit of Work -> SQLite en mémoire, puis lecture via les views.
"""

import pytest
from sqlalchemy import text

from inventaire.adapters import notifications
from inventaire.entrypoints.flask_app import create_app
from inventaire.service_layer import bootstrap, unit_of_work


class FakeNotifications(notifications.AbstractNotifications):
    def __init__(self):
        self.envoyées = []

    def send(self, destination: str, sujet: str, message: str) -> None:
        self.envoyées.append({"destination": destination, "sujet": sujet, "message": message})


@pytest.fixture
def client(session_factory):
    """Client de test Flask branché sur un bus SQLite en mémoire."""
    session = session_factory()
    session.execute(text("INSERT INTO warehouses (id, name) VALUES (1, 'Entrepôt Nord')"))
    session.execute(text("INSERT INTO products (id, name) VALUES (1, 'Farine'), (2, 'Sucre'), (3, 'Sel')"))
    session.commit()
    session.close()

    bus = bootstrap.bootstrap(
        start_orm=False,
        uow=unit_of_work.SqlAlchemyUnitOfWork(session_factory=session_factory),
        notifications_adapter=FakeNotifications(),
    )
    app = create_app(bus=bus)
    app.config["TESTING"] = True
    with app.test_client() as client:
        yield client


def approvisionner(client, id_produit: int, variation: int) -> None:
    r = client.post(
        "/stocks/ajuster",
        json={"id_produit": id_produit, "id_entrepot": 1, "variation": variation, "motif": "Réception"},
    )
    assert r.status_code == 200


def créer_commande(client, *lignes) -> int:
    r = client.post(
        "/commandes",
        json={
            "client": "Boulangerie Dupont",
            "id_entrepot": 1,
            "lignes": [{"id_produit": p, "quantite": q} for p, q in lignes],
        },
    )
    assert r.status_code == 201
    return r.get_json()["id"]


class TestCommandes:
    def test_créer_et_afficher(self, client):
        id_commande = créer_commande(client, (1, 3), (2, 5))

        r = client.get(f"/commandes/{id_commande}")

        assert r.status_code == 200
        data = r.get_json()
        assert data["statut"] == "active"
        assert data["lignes"] == [
            {"id_produit": 1, "quantite": 3},
            {"id_produit": 2, "quantite": 5},
        ]

    def test_commande_inconnue(self, client):
        assert client.get("/commandes/999").status_code == 404
        assert client.post("/commandes/999/completer").status_code == 404

    def test_créer_dans_un_entrepôt_inconnu(self, client):
        r = client.post(
            "/commandes",
            json={"client": "X", "id_entrepot": 42, "lignes": [{"id_produit": 1, "quantite": 1}]},
        )
        assert r.status_code == 400
        assert "Entrepôt introuvable" in r.get_json()["message"]

    def test_modifier_les_lignes(self, client):
        id_commande = créer_commande(client, (1, 3))

        r = client.patch(
            f"/commandes/{id_commande}",
            json={"client": "Épicerie Martin", "lignes": [{"id_produit": 3, "quantite": 2}]},
        )

        assert r.status_code == 200
        assert r.get_json()["client"] == "Épicerie Martin"
        assert r.get_json()["lignes"] == [{"id_produit": 3, "quantite": 2}]

    def test_le_statut_n_est_pas_modifiable(self, client):
        id_commande = créer_commande(client, (1, 3))
        r = client.patch(f"/commandes/{id_commande}", json={"statut": "completed"})
        assert r.status_code == 400

    def test_supprimer(self, client):
        id_commande = créer_commande(client, (1, 3))
        assert client.delete(f"/commandes/{id_commande}").status_code == 204
        assert client.get(f"/commandes/{id_commande}").status_code == 404


class TestCycleDeVie:
    def test_compléter_annuler_restaurer(self, client):
        approvisionner(client, 1, 10)
        approvisionner(client, 2, 5)
        id_commande = créer_commande(client, (1, 3), (2, 5))

        r = client.post(f"/commandes/{id_commande}/completer", headers={"X-Acteur-Id": "7"})
        assert r.status_code == 200
        assert r.get_json()["statut"] == "completed"
        assert r.get_json()["completee_le"] is not None

        r = client.post(f"/commandes/{id_commande}/annuler")
        assert r.status_code == 200
        assert r.get_json()["statut"] == "canceled"
        assert r.get_json()["completee_le"] is None

        r = client.post(f"/commandes/{id_commande}/restaurer")
        assert r.status_code == 200
        assert r.get_json()["statut"] == "active"

        # Stock 1 : +10 (réception), -3, +3, -3
        r = client.get("/stocks/1/mouvements")
        historique = r.get_json()
        assert [m["variation"] for m in historique] == [10, -3, 3, -3]
        assert [m["type_operation"] for m in historique] == [
            "adjustment", "order_completion", "order_cancellation", "order_restoration",
        ]
        assert historique[1]["id_acteur"] == 7
        assert historique[1]["source"] == {"type": "order", "id": id_commande}
        assert historique[-1]["cumul"] == 7

    def test_stock_insuffisant(self, client):
        approvisionner(client, 3, 2)
        id_commande = créer_commande(client, (3, 100))

        r = client.post(f"/commandes/{id_commande}/completer")

        assert r.status_code == 400
        assert "Disponible : 2, requis : 100" in r.get_json()["message"]
        assert client.get(f"/commandes/{id_commande}").get_json()["statut"] == "active"
        assert [m["variation"] for m in client.get("/stocks/1/mouvements").get_json()] == [2]

    def test_compléter_deux_fois(self, client):
        approvisionner(client, 1, 10)
        id_commande = créer_commande(client, (1, 3))
        client.post(f"/commandes/{id_commande}/completer")

        r = client.post(f"/commandes/{id_commande}/completer")

        assert r.status_code == 409


class TestStocks:
    def test_ajustement_négatif(self, client):
        approvisionner(client, 1, 2)
        r = client.post(
            "/stocks/ajuster",
            json={"id_produit": 1, "id_entrepot": 1, "variation": -5, "motif": "Casse"},
            headers={"X-Acteur-Id": "3"},
        )
        assert r.status_code == 200
        assert r.get_json() == {"quantite": -3}

    def test_vue_d_ensemble_par_produit(self, client, session_factory):
        session = session_factory()
        session.execute(text("INSERT INTO warehouses (id, name) VALUES (2, 'Entrepôt Sud')"))
        session.execute(text("UPDATE products SET price = 1.5 WHERE id = 1"))
        session.commit()
        session.close()
        approvisionner(client, 1, 10)
        client.post(
            "/stocks/ajuster",
            json={"id_produit": 1, "id_entrepot": 2, "variation": 4, "motif": "Réception"},
        )
        approvisionner(client, 2, 3)

        r = client.get("/produits/stocks")

        assert r.status_code == 200
        data = r.get_json()
        farine, sucre, sel = data["produits"]
        assert farine["prix"] == 1.5
        assert farine["stock_total"] == 14
        assert farine["entrepots"] == [
            {"id_entrepot": 1, "nom_entrepot": "Entrepôt Nord", "quantite": 10},
            {"id_entrepot": 2, "nom_entrepot": "Entrepôt Sud", "quantite": 4},
        ]
        assert sucre["stock_total"] == 3
        assert (sel["stock_total"], sel["entrepots"]) == (0, [])
        assert data["meta"] == {"total_produits": 3, "stock_total": 17, "nombre_entrepots": 2}


class TestRequêtesInvalides:
    def test_produit_inconnu(self, client):
        r = client.post(
            "/commandes",
            json={"client": "X", "id_entrepot": 1, "lignes": [{"id_produit": 999, "quantite": 1}]},
        )
        assert r.status_code == 400
        assert r.get_json()["message"] == "Produit introuvable : 999"

    def test_en_tête_acteur_invalide(self, client):
        id_commande = créer_commande(client, (1, 3))
        r = client.post(f"/commandes/{id_commande}/annuler", headers={"X-Acteur-Id": "abc"})
        assert r.status_code == 400
        assert client.get(f"/commandes/{id_commande}").get_json()["statut"] == "active"

    def test_champ_manquant(self, client):
        r = client.post("/stocks/ajuster", json={"id_produit": 1, "id_entrepot": 1, "variation": 5})
        assert r.status_code == 400
        assert r.get_json()["message"] == "Champ manquant : motif"

    def test_quantité_non_entière(self, client):
        r = client.post(
            "/commandes",
            json={"client": "X", "id_entrepot": 1, "lignes": [{"id_produit": 1, "quantite": "trois"}]},
        )
        assert r.status_code == 400

    def test_corps_absent(self, client):
        assert client.post("/commandes").status_code == 400
