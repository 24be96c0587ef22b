from __future__ import annotations

import importlib.util
from pathlib import Path
from types import SimpleNamespace

MIGRATION_PATH = (
    Path(__file__).resolve().parents[1]
    / "alembic"
    / "versions"
    / "7a3c91d2e4b0_initial_farmflow_schema.py"
)


class _RecordingOp:
    def __init__(self, dialect_name: str):
        self._bind = SimpleNamespace(dialect=SimpleNamespace(name=dialect_name))
        self.statements = []

    def get_bind(self):
        return self._bind

    def execute(self, statement):
        self.statements.append(str(statement))

    def create_table(self, *args, **kwargs):
        pass

    def create_index(self, *args, **kwargs):
        pass

    def drop_table(self, *args, **kwargs):
        pass


def _load_migration():
    spec = importlib.util.spec_from_file_location("initial_farmflow_schema", MIGRATION_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_postgres_upgrade_forces_row_security_on_every_tenant_table(monkeypatch):
    migration = _load_migration()
    recorder = _RecordingOp("postgresql")
    monkeypatch.setattr(migration, "op", recorder)

    migration.upgrade()

    for table in migration.TENANT_TABLES:
        assert f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY" in recorder.statements
        assert f"ALTER TABLE {table} FORCE ROW LEVEL SECURITY" in recorder.statements
        assert any(
            statement.startswith(f"CREATE POLICY {table}_tenant_isolation")
            for statement in recorder.statements
        )


def test_postgres_downgrade_lifts_forced_row_security(monkeypatch):
    migration = _load_migration()
    recorder = _RecordingOp("postgresql")
    monkeypatch.setattr(migration, "op", recorder)

    migration.downgrade()

    assert "ALTER TABLE locations NO FORCE ROW LEVEL SECURITY" in recorder.statements
    assert "ALTER TABLE locations DISABLE ROW LEVEL SECURITY" in recorder.statements


def test_sqlite_upgrade_issues_no_policy_statements(monkeypatch):
    migration = _load_migration()
    recorder = _RecordingOp("sqlite")
    monkeypatch.setattr(migration, "op", recorder)

    migration.upgrade()

    assert recorder.statements == []
