"""Unit tests for core.config."""

from querybridge.core.config import Settings, collect_query_entries, parse_cors


def test_collect_query_entries_sorted_by_key():
    environ = {
        "QUERY_B": "api;SELECT 2;/b",
        "PATH": "/usr/bin",
        "QUERY_A": "api;SELECT 1;/a",
    }
    assert collect_query_entries(environ) == [
        ("QUERY_A", "api;SELECT 1;/a"),
        ("QUERY_B", "api;SELECT 2;/b"),
    ]


def test_collect_query_entries_none_defined():
    assert collect_query_entries({"HOME": "/root"}) == []


def test_parse_cors():
    assert parse_cors("http://a.com, http://b.com") == ["http://a.com", "http://b.com"]
    assert parse_cors(["http://a.com"]) == ["http://a.com"]


def test_settings_defaults(monkeypatch):
    monkeypatch.delenv("PORT", raising=False)
    monkeypatch.delenv("SQL_INJECTION", raising=False)
    s = Settings(_env_file=None)
    assert s.PORT == 3000
    assert s.SQL_INJECTION is False
    assert s.PUBLISH_TRANSPORT == "mqtt"


def test_settings_cors_origins(monkeypatch):
    monkeypatch.setenv("BACKEND_CORS_ORIGINS", "http://localhost:5173/,http://example.com")
    s = Settings(_env_file=None)
    assert s.all_cors_origins == ["http://localhost:5173", "http://example.com"]
