"""Pytest fixtures: test client, in-memory SQLite, fake PayApp transport."""
import os
from urllib.parse import parse_qsl, urlencode

import pytest
from fastapi.testclient import TestClient

# Must be set before payapp is imported (settings are read once)
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("PAYAPP_USERID", "merchant01")
os.environ.setdefault("PAYAPP_LINKKEY", "test-link-key")
os.environ.setdefault("PAYAPP_LINKVAL", "test-link-val")
os.environ.setdefault("PAYAPP_FEEDBACK_URL", "https://shop.example/api/payapp/callback")
os.environ.setdefault("PAYAPP_RETURN_URL", "https://shop.example/thanks")
os.environ.setdefault("ADMIN_SECRET", "")
# High enough that no test trips the limiter
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "1000")

from sqlmodel import Session, SQLModel

from payapp.api.deps import get_gateway
from payapp.core.config import get_credentials
from payapp.core.database import engine, init_db
from payapp.main import app
from payapp.services.gateway import PayAppClient

CALLBACK_AUTH = {
    "userid": "merchant01",
    "linkkey": "test-link-key",
    "linkval": "test-link-val",
}


def payapp_answer(**fields) -> bytes:
    """Form-encoded PayApp response body, state=1 unless given."""
    return urlencode({"state": "1", **fields}).encode("utf-8")


class FakeTransport:
    """Stands in for urlopen: replays queued answers and records every call."""

    def __init__(self):
        self.answers: list[bytes | Exception] = []
        self.calls: list[dict[str, str]] = []

    def queue(self, answer: bytes | Exception) -> None:
        self.answers.append(answer)

    def __call__(self, url: str, body: bytes, timeout: float) -> bytes:
        self.calls.append(dict(parse_qsl(body.decode("utf-8"), keep_blank_values=True)))
        if not self.answers:
            raise AssertionError("Unexpected PayApp call: " + body.decode("utf-8"))
        answer = self.answers.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer


@pytest.fixture(autouse=True)
def _clean_db():
    init_db()
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    yield


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def gateway(transport: FakeTransport) -> PayAppClient:
    return PayAppClient(get_credentials(), transport=transport)


@pytest.fixture
def db():
    with Session(engine) as session:
        yield session


@pytest.fixture(scope="function")
def client(gateway: PayAppClient):
    """TestClient with the PayApp client swapped for the fake transport one."""
    app.dependency_overrides[get_gateway] = lambda: gateway
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
