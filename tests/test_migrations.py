"""The Alembic migration builds the same schema the models describe."""

from sqlalchemy import create_engine, inspect

from clm.db.migrations import downgrade_migrations, run_migrations
from clm.db.session import Base


def test_upgrade_creates_model_tables(tmp_path):
    url = f"sqlite:///{tmp_path / 'migrated.db'}"
    run_migrations(url)

    engine = create_engine(url)
    try:
        inspector = inspect(engine)
        tables = set(inspector.get_table_names())
        assert set(Base.metadata.tables) <= tables

        for name, table in Base.metadata.tables.items():
            columns = {c["name"] for c in inspector.get_columns(name)}
            assert columns == set(table.columns.keys()), name

        extraction_columns = {c["name"] for c in inspector.get_columns("extractions")}
        assert {"review_notes", "evidence"} <= extraction_columns

        indexes = {i["name"]: i for i in inspector.get_indexes("extraction_jobs")}
        assert indexes["uq_extraction_jobs_contract_in_flight"]["unique"]
    finally:
        engine.dispose()


def test_downgrade_drops_tables(tmp_path):
    url = f"sqlite:///{tmp_path / 'migrated.db'}"
    run_migrations(url)
    downgrade_migrations(url)

    engine = create_engine(url)
    try:
        assert set(inspect(engine).get_table_names()) <= {"alembic_version"}
    finally:
        engine.dispose()
