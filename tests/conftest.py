"""
Pytest configuration and shared helpers.

Settings are read at import time, so the environment is prepared before any
devispro module is imported.
"""
import hashlib
import hmac
import json
import os
import tempfile
import time
from types import SimpleNamespace
from unittest.mock import patch

_DB_FILE = os.path.join(tempfile.mkdtemp(prefix="devispro-tests-"), "test.db")

os.environ["DATABASE_URL"] = f"sqlite:///{_DB_FILE}"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"
os.environ["STRIPE_PRICE_BASIC"] = "price_basic"
os.environ["STRIPE_PRICE_PRO"] = "price_pro"
os.environ["STRIPE_PRICE_CREDITS_25"] = "price_credits25"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel

from devispro.db import engine
from devispro.main import app

WEBHOOK_SECRET = "whsec_test"


@pytest.fixture(autouse=True)
def clean_db():
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    yield


@pytest.fixture(autouse=True)
def fake_stripe_customers():
    """No network: customer lookups/creation always succeed locally."""
    with patch("stripe.Customer.create", return_value=SimpleNamespace(id="cus_test")) as create, \
         patch("stripe.Customer.list", return_value=SimpleNamespace(data=[])):
        yield create


@pytest.fixture
def client():
    """Return a TestClient for the FastAPI app."""
    return TestClient(app)


def register(client, email="a@b.com", password="pw", first="A", last="B", **extra):
    body = {"email": email, "password": password, "firstName": first, "lastName": last, **extra}
    return client.post("/api/register", json=body)


@pytest.fixture
def auth(client):
    """Registers a user and returns (headers, user_json)."""
    res = register(client)
    assert res.status_code == 200, res.text
    data = res.json()
    return {"Authorization": f"Bearer {data['token']}"}, data["user"]


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Stripe-Signature header for a raw payload (t=<ts>,v1=<hmac-sha256>)."""
    ts = timestamp or int(time.time())
    signed = f"{ts}.{payload.decode('utf-8')}".encode("utf-8")
    sig = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={sig}"


def post_event(client, event: dict, secret: str = WEBHOOK_SECRET):
    payload = json.dumps(event).encode("utf-8")
    return client.post(
        "/api/stripe-webhook",
        content=payload,
        headers={"Stripe-Signature": sign_payload(payload, secret), "Content-Type": "application/json"},
    )
