# tests/conftest.py

"""
Pytest configuration and shared fixtures for testing.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from typing import Generator

import fisca.models  # noqa: F401
from fisca.core.security import create_access_token, hash_password
from fisca.db.base import Base
from fisca.db.seeds.bootstrap import bootstrap
from fisca.db.seeds.seed_sample_data import seed_sample_data
from fisca.db.session import build_engine, get_db
from fisca.main import create_app
from fisca.models import Circuito, Escuela, Localidad, Mesa, Role, User
from fisca.services.access_service import access_service

PASSWORD = "secret123"


@pytest.fixture(scope="function")
def engine():
    """In-memory SQLite shared by every session of one test."""
    test_engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def seeded_db(db):
    """Database with roles, permissions and the admin account."""
    bootstrap(db)
    return db


@pytest.fixture
def org(seeded_db):
    """Sample organization, indexed by short keys.

    San Fernando
      Circuito 1: Escuela N° 1 (mesas 1-3), Escuela N° 5 (mesas 4-5)
      Circuito 2: Escuela N° 12 (mesas 6-8)
    """
    seed_sample_data(seeded_db)
    localidad = seeded_db.query(Localidad).one()
    circuitos = {c.nombre: c.id for c in seeded_db.query(Circuito)}
    escuelas = {e.nombre.split()[2]: e.id for e in seeded_db.query(Escuela)}
    return {
        "localidad": localidad.id,
        "c1": circuitos["Circuito 1"],
        "c2": circuitos["Circuito 2"],
        "e1": escuelas["1"],
        "e5": escuelas["5"],
        "e12": escuelas["12"],
        "mesas": {m.numero: m.id for m in seeded_db.query(Mesa)},
    }


@pytest.fixture
def admin(seeded_db):
    return seeded_db.query(User).join(Role).filter(Role.name == "admin").one()


@pytest.fixture
def make_user(seeded_db):
    """Factory creating a user with a role and optional grants directly in the DB."""
    counter = {"n": 0}

    def _make(role_name, grants=(), created_by=None, email=None):
        counter["n"] += 1
        role = seeded_db.query(Role).filter(Role.name == role_name).one()
        user = User(
            email=email or f"{role_name}{counter['n']}@fisca.test",
            hashed_password=hash_password(PASSWORD),
            first_name=role.display_name,
            last_name=str(counter["n"]),
            role_id=role.id,
            created_by=created_by.id if created_by is not None else None,
        )
        seeded_db.add(user)
        seeded_db.commit()
        if grants:
            access_service.replace_grants(seeded_db, user.id, list(grants))
        seeded_db.refresh(user)
        return user

    return _make


@pytest.fixture
def role_id(seeded_db):
    def _lookup(name):
        return seeded_db.query(Role.id).filter(Role.name == name).scalar()
    return _lookup


@pytest.fixture
def auth_headers():
    """Bearer headers for a user, minted without going through login."""
    def _headers(user) -> dict:
        token = create_access_token({"sub": str(user.id), "role": user.role_name})
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture(scope="function")
def client(session_factory, seeded_db) -> Generator[TestClient, None, None]:
    """Test client whose requests use the test database."""
    app = create_app()

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
