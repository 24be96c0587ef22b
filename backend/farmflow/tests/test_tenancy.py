from __future__ import annotations

from types import SimpleNamespace

import pytest
from sqlalchemy import event, text
from sqlalchemy.orm import Session

from farmflow import tenancy
from farmflow.apps.accounts import models as account_models
from farmflow.apps.inventory import models as inventory_models


class _RecordingSession:
    """Just enough of a Session to capture the statements issued."""

    def __init__(self, dialect_name: str):
        self.dialect_name = dialect_name
        self.dialect = SimpleNamespace(name=dialect_name)
        self.executed = []
        self.info = {}

    def get_bind(self):
        return SimpleNamespace(dialect=SimpleNamespace(name=self.dialect_name))

    def execute(self, statement, params=None):
        self.executed.append((str(statement), params))
        return SimpleNamespace(returns_rows=False)


def test_normalize_tenant_context_fills_defaults():
    context = tenancy.normalize_tenant_context(None, None)

    assert context.tenant_id == tenancy.FALLBACK_TENANT_ID
    assert context.role == "user"
    assert tenancy.normalize_tenant_context("t-1", "admin") == tenancy.TenantContext("t-1", "admin")


def test_tenant_context_for_prefers_preview_tenant():
    user = SimpleNamespace(tenant_id="home", effective_tenant_id="previewed", role="owner")

    assert tenancy.tenant_context_for(user) == tenancy.TenantContext("previewed", "owner")


def test_apply_tenant_settings_sets_transaction_local_config_on_postgres():
    session = _RecordingSession("postgresql")

    tenancy.apply_tenant_settings(session, tenancy.TenantContext("tenant-42", "admin"))

    statements = [statement for statement, _ in session.executed]
    assert "set_config('TimeZone', 'UTC', true)" in statements[0]
    assert "set_config('app.tenant_id', :tenant_id, true)" in statements[1]
    assert session.executed[1][1] == {"tenant_id": "tenant-42"}
    assert session.executed[2][1] == {"role": "admin"}


def test_apply_tenant_settings_is_noop_on_sqlite():
    session = _RecordingSession("sqlite")

    tenancy.apply_tenant_settings(session, tenancy.TenantContext("tenant-42"))

    assert session.executed == []


def test_new_transaction_reapplies_remembered_tenant_settings():
    session = _RecordingSession("postgresql")
    context = tenancy.TenantContext("tenant-42", "admin")
    tenancy.apply_tenant_settings(session, context)
    session.executed.clear()

    # What the session does when refresh() opens a transaction after commit().
    connection = _RecordingSession("postgresql")
    tenancy.reapply_tenant_settings(session, None, connection)

    assert session.info[tenancy.TENANT_CONTEXT_KEY] == context
    assert "set_config('app.tenant_id', :tenant_id, true)" in connection.executed[1][0]
    assert connection.executed[1][1] == {"tenant_id": "tenant-42"}
    assert connection.executed[2][1] == {"role": "admin"}
    assert event.contains(Session, "after_begin", tenancy.reapply_tenant_settings)


def test_reapply_skips_sessions_without_context_and_non_postgres():
    connection = _RecordingSession("postgresql")
    tenancy.reapply_tenant_settings(SimpleNamespace(info={}), None, connection)
    assert connection.executed == []

    sqlite_connection = _RecordingSession("sqlite")
    remembered = SimpleNamespace(info={tenancy.TENANT_CONTEXT_KEY: tenancy.TenantContext("t-1")})
    tenancy.reapply_tenant_settings(remembered, None, sqlite_connection)
    assert sqlite_connection.executed == []


def test_tenant_context_survives_commit_on_real_session(db_session, tenant):
    context = tenancy.TenantContext(tenant.id, "admin")
    tenancy.tenant_query(db_session, inventory_models.Location, context).all()
    db_session.commit()

    assert db_session.info[tenancy.TENANT_CONTEXT_KEY] == context
    assert db_session.get(account_models.Tenant, tenant.id) is tenant


def test_run_tenant_queries_binds_tenant_and_runs_in_order(db_session, make_tenant):
    estate_a = make_tenant("Estate A")
    estate_b = make_tenant("Estate B")
    for tenant, quantity in ((estate_a, 3.0), (estate_b, 9.0)):
        db_session.add(
            inventory_models.TransactionHistory(
                tenant_id=tenant.id,
                item_type="UREA",
                quantity=quantity,
                transaction_type="restock",
            )
        )
    db_session.commit()

    context = tenancy.TenantContext(estate_a.id, "admin")
    count_rows, item_rows = tenancy.run_tenant_queries(
        db_session,
        context,
        [
            "SELECT COUNT(*) AS total FROM transaction_history WHERE tenant_id = :tenant_id",
            (
                text("SELECT item_type, quantity FROM transaction_history WHERE tenant_id = :tenant_id AND item_type = :item"),
                {"item": "UREA"},
            ),
        ],
    )

    assert count_rows == [{"total": 1}]
    assert item_rows == [{"item_type": "UREA", "quantity": 3.0}]


def test_run_tenant_query_returns_empty_list_for_writes(db_session, tenant):
    context = tenancy.TenantContext(tenant.id)

    rows = tenancy.run_tenant_query(
        db_session,
        context,
        "UPDATE tenants SET name = :name WHERE id = :tenant_id",
        {"name": "Renamed Estate"},
    )

    assert rows == []
    db_session.expire_all()
    assert db_session.get(account_models.Tenant, tenant.id).name == "Renamed Estate"


def test_tenant_query_filters_by_tenant(db_session, make_tenant):
    estate_a = make_tenant("Estate A")
    estate_b = make_tenant("Estate B")
    db_session.add_all(
        [
            inventory_models.Location(tenant_id=estate_a.id, name="A store", code="A"),
            inventory_models.Location(tenant_id=estate_b.id, name="B store", code="B"),
        ]
    )
    db_session.commit()

    rows = tenancy.tenant_query(db_session, inventory_models.Location, tenancy.TenantContext(estate_b.id)).all()

    assert [row.name for row in rows] == ["B store"]


def test_tenant_query_refuses_models_without_tenant_column(db_session):
    with pytest.raises(tenancy.TenantScopeError):
        tenancy.tenant_query(db_session, account_models.Tenant, tenancy.TenantContext("t-1"))
