"""
Mapping ORM avec SQLAlchemy (classical mapping).

Les tables sont définies séparément, puis les classes du domaine
sont mappées dessus : le modèle de domaine ignore tout de la
persistance.

Les noms de tables et de colonnes restent en anglais ASCII ;
le mapping les traduit vers les attributs français du domaine.
"""

import logging

from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import registry, relationship

from inventaire.domain import model

logger = logging.getLogger(__name__)

metadata = MetaData()
mapper_registry = registry(metadata=metadata)


def _enum(enum_cls: type, name: str) -> Enum:
    # On stocke la valeur ("completed") et non le nom du membre ("COMPLÉTÉE").
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=50,
        values_callable=lambda membres: [m.value for m in membres],
    )


# --- Définition des tables ---

warehouses = Table(
    "warehouses",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
)

products = Table(
    "products",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("price", Numeric(10, 2), nullable=True),
)

orders = Table(
    "orders",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("customer", String(255), nullable=False),
    Column("status", _enum(model.StatutCommande, "order_status"), nullable=False),
    Column("warehouse_id", Integer, ForeignKey("warehouses.id"), nullable=False),
    Column("completed_at", DateTime(timezone=True), nullable=True),
    Column("canceled_at", DateTime(timezone=True), nullable=True),
)

order_lines = Table(
    "order_lines",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("order_id", Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
    Column("product_id", Integer, ForeignKey("products.id"), nullable=False),
    Column("count", Integer, nullable=False),
)

stocks = Table(
    "stocks",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("product_id", Integer, ForeignKey("products.id"), nullable=False),
    Column("warehouse_id", Integer, ForeignKey("warehouses.id"), nullable=False),
    # Pas de contrainte >= 0 : seuls les handlers de commande imposent la suffisance.
    Column("quantity", Integer, nullable=False, server_default="0"),
    UniqueConstraint("product_id", "warehouse_id", name="uq_stocks_product_warehouse"),
)

stock_movements = Table(
    "stock_movements",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("stock_id", Integer, ForeignKey("stocks.id", ondelete="CASCADE"), nullable=False),
    Column("amount", Integer, nullable=False),
    Column("operation_type", _enum(model.TypeOpération, "operation_type"), nullable=False),
    Column("source_type", _enum(model.TypeSource, "source_type"), nullable=False),
    Column("source_id", Integer, nullable=False),
    Column("reason", Text, nullable=True),
    Column("user_id", Integer, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Index("ix_stock_movements_stock_id_created_at", "stock_id", "created_at"),
)


def start_mappers() -> None:
    """
    Configure le mapping entre les classes du domaine et les tables SQL.

    Les lignes sont chargées avec la commande (selectin) et ordonnées
    par id, pour que l'agrégat retourné par un handler soit complet
    même une fois la session fermée.
    """
    logger.debug("Démarrage des mappers ORM")
    lines_mapper = mapper_registry.map_imperatively(
        model.LigneDeCommande,
        order_lines,
        properties={
            "id_produit": order_lines.c.product_id,
            "quantité": order_lines.c.count,
        },
    )
    mapper_registry.map_imperatively(
        model.Commande,
        orders,
        properties={
            "client": orders.c.customer,
            "statut": orders.c.status,
            "id_entrepôt": orders.c.warehouse_id,
            "complétée_le": orders.c.completed_at,
            "annulée_le": orders.c.canceled_at,
            "lignes": relationship(
                lines_mapper,
                order_by=order_lines.c.id,
                cascade="all, delete-orphan",
                lazy="selectin",
            ),
        },
    )
    mapper_registry.map_imperatively(
        model.Entrepôt,
        warehouses,
        properties={"nom": warehouses.c.name},
    )
    mapper_registry.map_imperatively(
        model.Produit,
        products,
        properties={"nom": products.c.name, "prix": products.c.price},
    )
    mapper_registry.map_imperatively(
        model.Stock,
        stocks,
        properties={
            "id_produit": stocks.c.product_id,
            "id_entrepôt": stocks.c.warehouse_id,
            "quantité": stocks.c.quantity,
        },
    )
    mapper_registry.map_imperatively(
        model.MouvementDeStock,
        stock_movements,
        properties={
            "id_stock": stock_movements.c.stock_id,
            "variation": stock_movements.c.amount,
            "type_opération": stock_movements.c.operation_type,
            "type_source": stock_movements.c.source_type,
            "id_source": stock_movements.c.source_id,
            "motif": stock_movements.c.reason,
            "id_acteur": stock_movements.c.user_id,
            "créé_le": stock_movements.c.created_at,
        },
    )
    event.listen(model.Commande, "load", _initialiser_événements)
    event.listen(model.Stock, "load", _initialiser_événements)
    event.listen(model.MouvementDeStock, "before_update", _refuser_modification)
    event.listen(model.MouvementDeStock, "before_delete", _refuser_modification)


def _initialiser_événements(agrégat: object, _: object) -> None:
    """Initialise la liste d'événements d'un agrégat chargé depuis la BDD."""
    agrégat.événements = []


def _refuser_modification(mapper: object, connection: object, mouvement: model.MouvementDeStock) -> None:
    raise ValueError(
        f"Les mouvements de stock sont immuables (mouvement #{mouvement.id}). "
        "Pour corriger, enregistrez un mouvement de sens inverse."
    )
