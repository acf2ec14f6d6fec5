from sqlalchemy import create_engine, inspect
from sqlalchemy.pool import StaticPool

import create_tables


def test_create_tables_builds_the_schema(monkeypatch, capsys):
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    monkeypatch.setattr(create_tables, "engine", engine)

    create_tables.create_tables()

    tables = set(inspect(engine).get_table_names())
    assert {"users", "payrolls", "asset_dates", "asset_reminders"} <= tables
    output = capsys.readouterr().out
    assert "Creating portal tables on sqlite://" in output
    assert "Portal schema is up to date." in output
