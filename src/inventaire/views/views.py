"""
Views (lecture) : côté Query de CQRS.

Fonctions de lecture pure qui interrogent directement les tables,
sans charger d'agrégat. Elles servent à rendre les réponses de l'API.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import text

from inventaire.service_layer import unit_of_work


def _iso(valeur: Any) -> Any:
    # SQLite renvoie des chaînes, PostgreSQL des datetime
    return valeur.isoformat() if hasattr(valeur, "isoformat") else valeur


def commande(id_commande: int, uow: unit_of_work.SqlAlchemyUnitOfWork) -> dict | None:
    """Retourne la commande et ses lignes, ou None si elle n'existe pas."""
    with uow:
        ligne = uow.session.execute(
            text(
                "SELECT id, customer, status, warehouse_id, completed_at, canceled_at"
                " FROM orders WHERE id = :id_commande"
            ),
            dict(id_commande=id_commande),
        ).first()
        if ligne is None:
            return None
        lignes = uow.session.execute(
            text(
                "SELECT product_id, count FROM order_lines"
                " WHERE order_id = :id_commande ORDER BY id"
            ),
            dict(id_commande=id_commande),
        )
        return {
            "id": ligne.id,
            "client": ligne.customer,
            "statut": ligne.status,
            "id_entrepot": ligne.warehouse_id,
            "completee_le": _iso(ligne.completed_at),
            "annulee_le": _iso(ligne.canceled_at),
            "lignes": [
                {"id_produit": l.product_id, "quantite": l.count} for l in lignes
            ],
        }


def mouvements(id_stock: int, uow: unit_of_work.SqlAlchemyUnitOfWork) -> list[dict]:
    """
    Historique des mouvements d'un stock, dans l'ordre de rejeu.

    Chaque entrée porte le cumul des variations depuis le premier
    mouvement, ce qui permet de reconstituer l'évolution du stock.
    """
    with uow:
        résultats = uow.session.execute(
            text(
                "SELECT id, amount, operation_type, source_type, source_id,"
                " reason, user_id, created_at"
                " FROM stock_movements WHERE stock_id = :id_stock"
                " ORDER BY created_at, id"
            ),
            dict(id_stock=id_stock),
        )
        historique = []
        cumul = 0
        for r in résultats:
            cumul += r.amount
            historique.append({
                "id": r.id,
                "variation": r.amount,
                "type_operation": r.operation_type,
                "source": {"type": r.source_type, "id": r.source_id},
                "motif": r.reason,
                "id_acteur": r.user_id,
                "cree_le": _iso(r.created_at),
                "cumul": cumul,
            })
        return historique


def stocks_par_produit(uow: unit_of_work.SqlAlchemyUnitOfWork) -> dict:
    """
    Vue d'ensemble du stock : chaque produit avec sa quantité par
    entrepôt et son total, plus des totaux sur l'ensemble du catalogue.

    Un produit sans aucun stock apparaît avec un total de 0.
    """
    with uow:
        résultats = uow.session.execute(
            text(
                "SELECT p.id, p.name, p.price, s.warehouse_id, w.name AS warehouse_name, s.quantity"
                " FROM products p"
                " LEFT JOIN stocks s ON s.product_id = p.id"
                " LEFT JOIN warehouses w ON w.id = s.warehouse_id"
                " ORDER BY p.id, s.warehouse_id"
            )
        )
        produits: dict[int, dict] = {}
        entrepôts: set[int] = set()
        for r in résultats:
            produit = produits.setdefault(r.id, {
                "id": r.id,
                "nom": r.name,
                "prix": float(r.price) if r.price is not None else None,
                "stock_total": 0,
                "entrepots": [],
            })
            if r.warehouse_id is None:
                continue
            entrepôts.add(r.warehouse_id)
            produit["stock_total"] += r.quantity
            produit["entrepots"].append({
                "id_entrepot": r.warehouse_id,
                "nom_entrepot": r.warehouse_name,
                "quantite": r.quantity,
            })
        return {
            "produits": list(produits.values()),
            "meta": {
                "total_produits": len(produits),
                "stock_total": sum(p["stock_total"] for p in produits.values()),
                "nombre_entrepots": len(entrepôts),
            },
        }
