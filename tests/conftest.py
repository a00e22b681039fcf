"""
Configuration partagée pour les tests.

Le mapping ORM est démarré une seule fois pour toute la session :
les tests unitaires manipulent alors des classes mappées sans base
de données, les tests d'intégration et e2e s'appuient sur SQLite
en mémoire.
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from inventaire.adapters import orm


@pytest.fixture(scope="session", autouse=True)
def mappers():
    orm.start_mappers()


@pytest.fixture
def session_factory():
    """Fabrique de sessions sur une base SQLite en mémoire, tables créées."""
    engine = create_engine("sqlite:///:memory:")
    orm.metadata.create_all(engine)
    yield sessionmaker(bind=engine)
    engine.dispose()


@pytest.fixture
def session(session_factory):
    session = session_factory()
    yield session
    session.close()
