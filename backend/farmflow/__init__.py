# backend/farmflow/__init__.py
"""
FarmFlow estate backend.

The ORM model modules are imported by `farmflow.models` so Alembic and
`Base.metadata.create_all()` see every table. Model classes live in
farmflow/apps/*/models.py.
"""
