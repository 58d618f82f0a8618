# tests/helpers.py

from __future__ import annotations


def register(client, email="a@x.com", password="secret1", name="Ann"):
    return client.post(
        "/auth/register", json={"email": email, "password": password, "name": name}
    )


def login(client, email="a@x.com", password="secret1"):
    return client.post("/auth/login", json={"email": email, "password": password})


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class FakeClock:
    """Epoch-seconds clock that only moves when told to."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FailingSession:
    """Wraps a real session but raises ``error`` from every commit."""

    def __init__(self, session, error: Exception) -> None:
        self._session = session
        self._error = error

    def __getattr__(self, name: str):
        return getattr(self._session, name)

    def commit(self) -> None:
        raise self._error


def db_error(kind, message: str):
    """A SQLAlchemy DBAPI error the way the driver would raise it."""
    return kind("INSERT INTO tasks", {}, Exception(message))
