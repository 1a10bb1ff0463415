from __future__ import annotations

import asyncio
import os
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, Optional, Tuple

import pytest

# Configure the app for tests before any collab module reads the environment.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "collab-test-secret-with-enough-bytes-for-hs256")

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from collab.auth_utils import create_access_token  # noqa: E402
from collab.db import Base  # noqa: E402
from collab.models import Permission, Project, ProjectMember, User  # noqa: E402
from collab.realtime import CollabHub  # noqa: E402
from collab.services.repository import ProjectRepository  # noqa: E402

FIXED_NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)

ALICE, BOB, CAROL = 1, 2, 3
SHARED_PROJECT, ALICE_ONLY_PROJECT, LOCKED_PROJECT = 100, 200, 42


class FakeEmitter:
    """Stands in for ``socketio.AsyncServer.emit`` and records every call."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, Any, str]] = []

    async def __call__(self, event: str, data: Any = None, to: str | None = None, **kwargs: Any) -> None:
        self.calls.append((event, data, to))

    def received(self, sid: str, event: str | None = None) -> List[Tuple[str, Any]]:
        return [(e, d) for e, d, to in self.calls if to == sid and (event is None or e == event)]

    def payloads(self, sid: str, event: str) -> List[Any]:
        return [d for _, d in self.received(sid, event)]

    def clear(self) -> None:
        self.calls.clear()


def token_for(user_id: int, **claims: Any) -> str:
    return create_access_token({"sub": str(user_id), **claims})


class HeldEmitter(FakeEmitter):
    """A FakeEmitter that stops on the first ``hold_on`` event until released.

    The call is recorded before it stops, so the caller is suspended at the
    point where a real emit would yield to the event loop.
    """

    def __init__(self) -> None:
        super().__init__()
        self.hold_on: Optional[str] = None
        self.held = asyncio.Event()
        self.release = asyncio.Event()

    async def __call__(self, event: str, data: Any = None, to: str | None = None, **kwargs: Any) -> None:
        await super().__call__(event, data, to, **kwargs)
        if event == self.hold_on and not self.held.is_set():
            self.held.set()
            await self.release.wait()


class Gate:
    """Wraps an async callable so calls wait until ``opened`` is set.

    Only the first ``holds`` calls wait (all of them when ``holds`` is None).
    """

    def __init__(self, fn: Callable[..., Awaitable[Any]], holds: Optional[int] = None) -> None:
        self._fn = fn
        self._holds = holds
        self.calls: List[Tuple[Any, ...]] = []
        self.entered = asyncio.Event()
        self.opened = asyncio.Event()

    async def __call__(self, *args: Any) -> Any:
        self.calls.append(args)
        if self._holds is None or len(self.calls) <= self._holds:
            self.entered.set()
            await self.opened.wait()
        return await self._fn(*args)


def assert_rooms_consistent(hub) -> None:
    """Every room's members are exactly the connections pointing at it."""
    live = hub.connections._connections
    rooms = set(hub.registry.rooms()) | {conn.room for conn in live.values() if conn.room is not None}
    for room in rooms:
        expected = {sid for sid, conn in live.items() if conn.room == room}
        assert set(hub.registry.members(room)) == expected


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    with factory() as db:
        creator = Permission(description="creator")
        collaborator = Permission(description="collaborator")
        db.add_all([creator, collaborator])
        db.add_all(
            [
                User(id=ALICE, email="alice@example.com", name="Alice"),
                User(id=BOB, email="bob@example.com", name="Bob"),
                User(id=CAROL, email="carol@example.com", name="Carol"),
                Project(id=SHARED_PROJECT, title="Shared class diagram"),
                Project(id=ALICE_ONLY_PROJECT, title="Alice's sketch"),
                Project(id=LOCKED_PROJECT, title="Nobody invited Carol"),
            ]
        )
        db.flush()
        db.add_all(
            [
                ProjectMember(user_id=ALICE, project_id=SHARED_PROJECT, permission_id=creator.id),
                ProjectMember(user_id=BOB, project_id=SHARED_PROJECT, permission_id=collaborator.id),
                ProjectMember(user_id=ALICE, project_id=ALICE_ONLY_PROJECT, permission_id=creator.id),
                ProjectMember(user_id=ALICE, project_id=LOCKED_PROJECT, permission_id=creator.id),
            ]
        )
        db.commit()

    yield factory
    engine.dispose()


@pytest.fixture
def repository(session_factory) -> ProjectRepository:
    return ProjectRepository(session_factory)


@pytest.fixture
def emitter() -> FakeEmitter:
    return FakeEmitter()


@pytest.fixture
def hub(emitter, repository) -> CollabHub:
    return CollabHub(emitter, repository, clock=lambda: FIXED_NOW)


@pytest.fixture
def held_emitter() -> HeldEmitter:
    return HeldEmitter()


@pytest.fixture
def held_hub(held_emitter, repository) -> CollabHub:
    return CollabHub(held_emitter, repository, clock=lambda: FIXED_NOW)
