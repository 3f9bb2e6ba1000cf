import os
import tempfile
from pathlib import Path

# must be set before stockroom.core.database / stockroom.main are imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("UPLOAD_ERROR_DIR", str(Path(tempfile.gettempdir()) / "stockroom_test_errors"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import stockroom.models  # noqa: F401  registers tables
from stockroom.core.database import get_session
from stockroom.models import Category


@pytest.fixture()
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(eng)
    yield eng
    SQLModel.metadata.drop_all(eng)


@pytest.fixture()
def session(engine):
    with Session(engine) as ses:
        yield ses


@pytest.fixture()
def categories(session):
    cats = {}
    for name in ("Raw Materials", "Finished Goods", "Paper"):
        cat = Category(category_name=name)
        session.add(cat)
        cats[name] = cat
    session.commit()
    for cat in cats.values():
        session.refresh(cat)
    return cats


@pytest.fixture()
def client(engine):
    from stockroom.main import app

    def _session_override():
        with Session(engine) as ses:
            yield ses

    app.dependency_overrides[get_session] = _session_override
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
