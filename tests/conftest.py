import os
import sys

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import pytest

from config import TestConfig
from portal import create_app
from portal.extensions import db
from portal.models.scenario import Scenario
from portal.models.user import User, ROLE_ADMIN, ROLE_APPLICANT


@pytest.fixture
def app(tmp_path):
    app = create_app(
        TestConfig,
        LOCAL_STORAGE_DIR=str(tmp_path / "storage"),
        RECORDING_SPOOL_DIR=str(tmp_path / "spool"),
    )
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make(email="applicant@example.com", password="password123", role=ROLE_APPLICANT, **fields):
        user = User(email=email, role=role, **fields)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture
def admin(make_user):
    return make_user(email="staff@example.com", role=ROLE_ADMIN)


@pytest.fixture
def make_scenario(app):
    counter = {"n": 0}

    def _make(title=None, response_type="text", active=True, display_order=None):
        counter["n"] += 1
        s = Scenario(
            title=title or f"Question {counter['n']}",
            description="Describe how you would handle it.",
            response_type=response_type,
            active=active,
            display_order=display_order if display_order is not None else counter["n"] * 10,
        )
        db.session.add(s)
        db.session.commit()
        return s
    return _make


def login(client, email, password="password123"):
    return client.post("/auth/login", data={"email": email, "password": password})
