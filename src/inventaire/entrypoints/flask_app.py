"""
Point d'entrée Flask.

L'API est un thin adapter : elle convertit les requêtes HTTP en
commands, les envoie au message bus et rend les résultats via les
views. Aucune logique métier ici.

L'identité de l'acteur est fournie par l'en-tête X-Acteur-Id
(résolu en amont par la couche d'authentification).

    flask --app inventaire.entrypoints.flask_app run
"""

from __future__ import annotations

import logging

from flask import Flask, abort, jsonify, request

from inventaire import config
from inventaire.domain import commands, model
from inventaire.service_layer import bootstrap, handlers, messagebus, unit_of_work
from inventaire.views import views

logger = logging.getLogger(__name__)

# Erreur -> code HTTP, la première classe qui correspond l'emporte ;
# les autres ErreurDomaine donnent 400
CODES_HTTP: dict[type[Exception], int] = {
    handlers.CommandeIntrouvable: 404,
    model.TransitionInvalide: 409,
    model.CommandeNonModifiable: 409,
    unit_of_work.IntégritéViolée: 409,
    unit_of_work.ÉchecDePersistance: 503,
}


def _acteur() -> int | None:
    valeur = request.headers.get("X-Acteur-Id")
    if not valeur:
        return None
    try:
        return int(valeur)
    except ValueError:
        abort(400, description=f"En-tête X-Acteur-Id invalide : {valeur!r}")


def _corps() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        abort(400, description="Corps JSON attendu")
    return data


def _champ(data: dict, nom: str, type_: type = int):
    """Lit un champ obligatoire du corps et vérifie son type."""
    if nom not in data:
        abort(400, description=f"Champ manquant : {nom}")
    valeur = data[nom]
    # bool est une sous-classe de int
    if not isinstance(valeur, type_) or isinstance(valeur, bool):
        abort(400, description=f"Champ {nom} invalide : {valeur!r}")
    return valeur


def _lignes(data: object) -> tuple[commands.Ligne, ...]:
    if not isinstance(data, list) or not all(isinstance(l, dict) for l in data):
        abort(400, description="Le champ lignes doit être une liste d'objets")
    return tuple(
        commands.Ligne(id_produit=_champ(l, "id_produit"), quantité=_champ(l, "quantite"))
        for l in data
    )


def create_app(bus: messagebus.MessageBus | None = None) -> Flask:
    """Fabrique de l'application ; les tests injectent leur propre bus."""
    logging.basicConfig(level=config.get_log_level())
    if bus is None:
        bus = bootstrap.bootstrap()

    app = Flask(__name__)

    @app.errorhandler(model.ErreurDomaine)
    def erreur_domaine(e: model.ErreurDomaine):
        code = next(
            (c for cls, c in CODES_HTTP.items() if isinstance(e, cls)),
            400,
        )
        return jsonify({"message": str(e)}), code

    @app.errorhandler(400)
    def requête_invalide(e):
        return jsonify({"message": e.description}), 400

    def _rendre(id_commande: int, code: int = 200):
        return jsonify(views.commande(id_commande, bus.uow)), code

    @app.route("/commandes", methods=["POST"])
    def créer_commande():
        """
        POST /commandes
        Body JSON : { client, id_entrepot, lignes: [{id_produit, quantite}] }
        """
        data = _corps()
        cmd = commands.CréerCommande(
            client=_champ(data, "client", str),
            id_entrepôt=_champ(data, "id_entrepot"),
            lignes=_lignes(data.get("lignes", [])),
        )
        commande = bus.handle(cmd)[0]
        return _rendre(commande.id, 201)

    @app.route("/commandes/<int:id_commande>", methods=["GET"])
    def afficher_commande(id_commande: int):
        résultat = views.commande(id_commande, bus.uow)
        if résultat is None:
            return jsonify({"message": f"Commande introuvable : #{id_commande}"}), 404
        return jsonify(résultat), 200

    @app.route("/commandes/<int:id_commande>", methods=["PATCH"])
    def modifier_commande(id_commande: int):
        """
        PATCH /commandes/<id>
        Body JSON : { client?, lignes? } ; le statut n'est pas modifiable ici.
        """
        data = _corps()
        if "statut" in data or "id_entrepot" in data:
            return jsonify({"message": "Le statut et l'entrepôt ne sont pas modifiables"}), 400
        lignes = data.get("lignes")
        bus.handle(
            commands.ModifierCommande(
                id_commande=id_commande,
                client=_champ(data, "client", str) if "client" in data else None,
                lignes=_lignes(lignes) if lignes is not None else None,
            )
        )
        return _rendre(id_commande)

    @app.route("/commandes/<int:id_commande>", methods=["DELETE"])
    def supprimer_commande(id_commande: int):
        bus.handle(commands.SupprimerCommande(id_commande=id_commande))
        return "", 204

    @app.route("/commandes/<int:id_commande>/completer", methods=["POST"])
    def compléter_commande(id_commande: int):
        bus.handle(commands.CompléterCommande(id_commande=id_commande, id_acteur=_acteur()))
        return _rendre(id_commande)

    @app.route("/commandes/<int:id_commande>/annuler", methods=["POST"])
    def annuler_commande(id_commande: int):
        bus.handle(commands.AnnulerCommande(id_commande=id_commande, id_acteur=_acteur()))
        return _rendre(id_commande)

    @app.route("/commandes/<int:id_commande>/restaurer", methods=["POST"])
    def restaurer_commande(id_commande: int):
        bus.handle(commands.RestaurerCommande(id_commande=id_commande, id_acteur=_acteur()))
        return _rendre(id_commande)

    @app.route("/stocks/ajuster", methods=["POST"])
    def ajuster_stock():
        """
        POST /stocks/ajuster
        Body JSON : { id_produit, id_entrepot, variation, motif }
        """
        data = _corps()
        quantité = bus.handle(
            commands.AjusterStock(
                id_produit=_champ(data, "id_produit"),
                id_entrepôt=_champ(data, "id_entrepot"),
                variation=_champ(data, "variation"),
                motif=_champ(data, "motif", str),
                id_acteur=_acteur(),
            )
        )[0]
        return jsonify({"quantite": quantité}), 200

    @app.route("/stocks/<int:id_stock>/mouvements", methods=["GET"])
    def mouvements(id_stock: int):
        return jsonify(views.mouvements(id_stock, bus.uow)), 200

    @app.route("/produits/stocks", methods=["GET"])
    def stocks_par_produit():
        """Stock de chaque produit par entrepôt, avec les totaux."""
        return jsonify(views.stocks_par_produit(bus.uow)), 200

    return app
