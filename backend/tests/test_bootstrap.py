from timetable_engine.db import bootstrap


def test_ensure_schema_skips_when_tables_exist(monkeypatch):
    calls = []
    monkeypatch.setattr(bootstrap, "missing_tables", lambda: [])
    monkeypatch.setattr(bootstrap.Base.metadata, "create_all", lambda bind: calls.append(bind))

    bootstrap.ensure_schema()

    assert calls == []


def test_ensure_schema_creates_missing_tables(monkeypatch):
    calls = []
    monkeypatch.setattr(bootstrap, "missing_tables", lambda: ["timetables"])
    monkeypatch.setattr(bootstrap.Base.metadata, "create_all", lambda bind: calls.append(bind))

    bootstrap.ensure_schema()

    assert calls == [bootstrap.engine]


def test_required_tables_match_models():
    assert bootstrap.REQUIRED_TABLES <= set(bootstrap.Base.metadata.tables)
