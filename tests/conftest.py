# tests/conftest.py
"""
Pytest configuration and fixtures.

DB tests run against an in-memory SQLite database carrying the
ML-Metadata table layout, seeded per test through the `mlmd` fixture.
Graph builder tests can use `fake_store`, an in-memory store that
counts round trips.
"""

from collections import Counter
from typing import Dict, Iterable, List, Optional, Tuple, Union

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from mlmd_viewer.metadata.models import (
    Artifact,
    EntityKind,
    Event,
    EventStep,
    EventType,
    Execution,
    MetadataType,
    PropertyType,
    TypeKind,
)

MLMD_SCHEMA = [
    """
    CREATE TABLE Type (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name VARCHAR(255) NOT NULL,
        version VARCHAR(255),
        type_kind TINYINT NOT NULL,
        description TEXT,
        input_type TEXT,
        output_type TEXT,
        external_id VARCHAR(255)
    )
    """,
    """
    CREATE TABLE Artifact (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        type_id INT NOT NULL,
        uri TEXT,
        state INT,
        name VARCHAR(255),
        external_id VARCHAR(255),
        create_time_since_epoch INT NOT NULL DEFAULT 0,
        last_update_time_since_epoch INT NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE Execution (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        type_id INT NOT NULL,
        last_known_state INT,
        name VARCHAR(255),
        external_id VARCHAR(255),
        create_time_since_epoch INT NOT NULL DEFAULT 0,
        last_update_time_since_epoch INT NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE Context (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        type_id INT NOT NULL,
        name VARCHAR(255) NOT NULL,
        external_id VARCHAR(255),
        create_time_since_epoch INT NOT NULL DEFAULT 0,
        last_update_time_since_epoch INT NOT NULL DEFAULT 0
    )
    """,
    *[
        f"""
        CREATE TABLE {table} (
            {fk} INT NOT NULL,
            name VARCHAR(255) NOT NULL,
            is_custom_property BOOLEAN NOT NULL,
            int_value INT,
            double_value DOUBLE,
            string_value TEXT,
            byte_value BLOB,
            proto_value BLOB,
            bool_value BOOLEAN,
            PRIMARY KEY ({fk}, name, is_custom_property)
        )
        """
        for table, fk in [
            ("ArtifactProperty", "artifact_id"),
            ("ExecutionProperty", "execution_id"),
            ("ContextProperty", "context_id"),
        ]
    ],
    """
    CREATE TABLE Event (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        artifact_id INT NOT NULL,
        execution_id INT NOT NULL,
        type INT NOT NULL,
        milliseconds_since_epoch INT
    )
    """,
    """
    CREATE TABLE EventPath (
        event_id INT NOT NULL,
        is_index_step BOOLEAN NOT NULL,
        step_index INT,
        step_key TEXT
    )
    """,
    """
    CREATE TABLE Attribution (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        context_id INT NOT NULL,
        artifact_id INT NOT NULL
    )
    """,
    """
    CREATE TABLE Association (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        context_id INT NOT NULL,
        execution_id INT NOT NULL
    )
    """,
    """
    CREATE TABLE TypeProperty (
        type_id INT NOT NULL,
        name VARCHAR(255) NOT NULL,
        data_type INT,
        PRIMARY KEY (type_id, name)
    )
    """,
    "CREATE TABLE MLMDEnv (schema_version INTEGER PRIMARY KEY)",
    "INSERT INTO MLMDEnv (schema_version) VALUES (10)",
]


class MLMDSeeder:
    """Inserts MLMD rows the way an ML pipeline would have recorded them."""

    def __init__(self, session: Session):
        self.session = session
        self._clock = 1_600_000_000_000

    def _tick(self) -> int:
        self._clock += 1000
        return self._clock

    def _insert(self, query: str, params: Dict) -> int:
        result = self.session.execute(text(query), params)
        row_id = result.lastrowid
        self.session.commit()
        return row_id

    def add_type(
        self,
        name: str,
        kind: TypeKind,
        properties: Optional[Dict[str, PropertyType]] = None,
    ) -> int:
        type_id = self._insert(
            "INSERT INTO Type (name, type_kind) VALUES (:name, :kind)",
            {"name": name, "kind": int(kind)},
        )
        for property_name, data_type in (properties or {}).items():
            self.session.execute(
                text(
                    "INSERT INTO TypeProperty (type_id, name, data_type) "
                    "VALUES (:type_id, :name, :data_type)"
                ),
                {"type_id": type_id, "name": property_name, "data_type": int(data_type)},
            )
        self.session.commit()
        return type_id

    def _add_properties(self, table: str, fk: str, entity_id: int, properties, custom: bool):
        for name, value in (properties or {}).items():
            column = {int: "int_value", float: "double_value", str: "string_value"}[type(value)]
            self.session.execute(
                text(
                    f"INSERT INTO {table} ({fk}, name, is_custom_property, {column}) "
                    "VALUES (:id, :name, :custom, :value)"
                ),
                {"id": entity_id, "name": name, "custom": custom, "value": value},
            )
        self.session.commit()

    def add_artifact(
        self,
        type_id: int,
        name: Optional[str] = None,
        uri: Optional[str] = None,
        state: int = 2,
        properties: Optional[Dict] = None,
        custom_properties: Optional[Dict] = None,
    ) -> int:
        now = self._tick()
        artifact_id = self._insert(
            """
            INSERT INTO Artifact (type_id, uri, state, name,
                                  create_time_since_epoch, last_update_time_since_epoch)
            VALUES (:type_id, :uri, :state, :name, :now, :now)
            """,
            {"type_id": type_id, "uri": uri, "state": state, "name": name, "now": now},
        )
        self._add_properties("ArtifactProperty", "artifact_id", artifact_id, properties, False)
        self._add_properties("ArtifactProperty", "artifact_id", artifact_id, custom_properties, True)
        return artifact_id

    def add_execution(
        self,
        type_id: int,
        name: Optional[str] = None,
        state: int = 3,
        properties: Optional[Dict] = None,
        custom_properties: Optional[Dict] = None,
    ) -> int:
        now = self._tick()
        execution_id = self._insert(
            """
            INSERT INTO Execution (type_id, last_known_state, name,
                                   create_time_since_epoch, last_update_time_since_epoch)
            VALUES (:type_id, :state, :name, :now, :now)
            """,
            {"type_id": type_id, "state": state, "name": name, "now": now},
        )
        self._add_properties("ExecutionProperty", "execution_id", execution_id, properties, False)
        self._add_properties("ExecutionProperty", "execution_id", execution_id, custom_properties, True)
        return execution_id

    def add_context(self, type_id: int, name: str, properties: Optional[Dict] = None) -> int:
        now = self._tick()
        context_id = self._insert(
            """
            INSERT INTO Context (type_id, name, create_time_since_epoch, last_update_time_since_epoch)
            VALUES (:type_id, :name, :now, :now)
            """,
            {"type_id": type_id, "name": name, "now": now},
        )
        self._add_properties("ContextProperty", "context_id", context_id, properties, False)
        return context_id

    def attribute(self, context_id: int, artifact_id: int):
        self._insert(
            "INSERT INTO Attribution (context_id, artifact_id) VALUES (:c, :a)",
            {"c": context_id, "a": artifact_id},
        )

    def associate(self, context_id: int, execution_id: int):
        self._insert(
            "INSERT INTO Association (context_id, execution_id) VALUES (:c, :e)",
            {"c": context_id, "e": execution_id},
        )

    def add_event(
        self,
        artifact_id: int,
        execution_id: int,
        event_type: EventType,
        path: Iterable[Union[int, str]] = (),
    ) -> int:
        event_id = self._insert(
            """
            INSERT INTO Event (artifact_id, execution_id, type, milliseconds_since_epoch)
            VALUES (:a, :e, :t, :now)
            """,
            {"a": artifact_id, "e": execution_id, "t": int(event_type), "now": self._tick()},
        )
        for step in path:
            is_index = isinstance(step, int)
            self.session.execute(
                text(
                    "INSERT INTO EventPath (event_id, is_index_step, step_index, step_key) "
                    "VALUES (:id, :is_index, :idx, :key)"
                ),
                {
                    "id": event_id,
                    "is_index": is_index,
                    "idx": step if is_index else None,
                    "key": None if is_index else step,
                },
            )
        self.session.commit()
        return event_id


@pytest.fixture
def engine():
    """In-memory SQLite engine with the MLMD schema, shared across threads."""
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    with eng.begin() as conn:
        for statement in MLMD_SCHEMA:
            conn.execute(text(statement))
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine) -> Session:
    SessionFactory = sessionmaker(bind=engine)
    session = SessionFactory()

    yield session

    session.close()


@pytest.fixture
def mlmd(session) -> MLMDSeeder:
    """Seeding helper bound to the test session."""
    return MLMDSeeder(session)


@pytest.fixture
def store(session):
    from mlmd_viewer.metadata.store import MetadataStore
    return MetadataStore(session)


@pytest.fixture
def client(session):
    """
    TestClient with the request session bound to the test database
    and the renderer forced to DOT text.
    """
    from mlmd_viewer.api.routes_graph import get_graph_renderer
    from mlmd_viewer.db.engine import get_session
    from mlmd_viewer.graph.export import TextRenderer
    from mlmd_viewer.main import app

    def _session_override():
        yield session

    app.dependency_overrides[get_session] = _session_override
    app.dependency_overrides[get_graph_renderer] = TextRenderer
    yield TestClient(app)
    app.dependency_overrides.clear()


# ============================================================
# IN-MEMORY STORE FOR GRAPH BUILDER TESTS
# ============================================================


class FakeMetadataStore:
    """
    Dict-backed stand-in for MetadataStore.

    Records every call in `calls` as (method, kind, id) so tests can
    assert on round trips.
    """

    def __init__(self):
        self.types: Dict[Tuple[EntityKind, int], MetadataType] = {}
        self.entities: Dict[Tuple[EntityKind, int], Union[Artifact, Execution]] = {}
        self.events: List[Event] = []
        self.calls: Counter = Counter()
        self._type_ids: Dict[Tuple[EntityKind, str], int] = {}

    def _type_id(self, kind: EntityKind, type_name: str) -> int:
        key = (kind, type_name)
        if key not in self._type_ids:
            type_id = len(self._type_ids) + 1
            self._type_ids[key] = type_id
            self.types[(kind, type_id)] = MetadataType(
                id=type_id, name=type_name, kind=TypeKind.for_entity(kind)
            )
        return self._type_ids[key]

    def add_artifact(self, artifact_id: int, type_name: str = "Dataset") -> None:
        type_id = self._type_id(EntityKind.ARTIFACT, type_name)
        self.entities[(EntityKind.ARTIFACT, artifact_id)] = Artifact(id=artifact_id, type_id=type_id)

    def add_execution(self, execution_id: int, type_name: str = "Trainer") -> None:
        type_id = self._type_id(EntityKind.EXECUTION, type_name)
        self.entities[(EntityKind.EXECUTION, execution_id)] = Execution(id=execution_id, type_id=type_id)

    def add_event(
        self,
        artifact_id: int,
        execution_id: int,
        event_type: EventType,
        path: Iterable[Union[int, str]] = (),
    ) -> Event:
        steps = tuple(
            EventStep(index=s) if isinstance(s, int) else EventStep(key=s)
            for s in path
        )
        event = Event(
            id=len(self.events) + 1,
            artifact_id=artifact_id,
            execution_id=execution_id,
            type=event_type,
            path=steps,
        )
        self.events.append(event)
        return event

    def get_entity(self, kind: EntityKind, entity_id: int):
        self.calls[("get_entity", kind, entity_id)] += 1
        return self.entities.get((kind, entity_id))

    def get_type(self, type_id: int, kind: EntityKind):
        self.calls[("get_type", kind, type_id)] += 1
        return self.types.get((kind, type_id))

    def get_events_for(self, kind: EntityKind, entity_id: int) -> List[Event]:
        self.calls[("get_events_for", kind, entity_id)] += 1
        if kind == EntityKind.ARTIFACT:
            return [e for e in self.events if e.artifact_id == entity_id]
        return [e for e in self.events if e.execution_id == entity_id]


@pytest.fixture
def fake_store() -> FakeMetadataStore:
    return FakeMetadataStore()


# ============================================================
# AUTO-MARKER FOR DATABASE TESTS
# ============================================================
# Tests that touch the SQLite MLMD fixtures get @pytest.mark.requires_db,
# so "pytest -m 'not requires_db'" runs only the pure unit tests.

DB_FIXTURES = {"engine", "session", "mlmd", "store", "client"}


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests that use database fixtures."""
    requires_db_marker = pytest.mark.requires_db

    for item in items:
        if hasattr(item, "fixturenames"):
            if any(fixture in DB_FIXTURES for fixture in item.fixturenames):
                if not any(mark.name == "requires_db" for mark in item.iter_markers()):
                    item.add_marker(requires_db_marker)
