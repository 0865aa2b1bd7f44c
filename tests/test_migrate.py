import pytest

from bloomtrack import migrate


class RecordingConn:
    """Stands in for a psycopg2 connection; answers the constraint lookup."""

    def __init__(self, constraints):
        self.constraints = constraints
        self.executed = []

    def cursor(self):
        return RecordingCursor(self)


class RecordingCursor:
    def __init__(self, conn):
        self.conn = conn
        self.rowcount = 0
        self._rows = []

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, sql, params=()):
        self.conn.executed.append(sql)
        if "pg_constraint" in str(sql):
            self._rows = [{"conname": c} for c in self.conn.constraints]

    def fetchall(self):
        return self._rows


def test_owner_serial_migration_drops_constraints_then_indexes():
    conn = RecordingConn(["sellers_serial_number_key"])
    dropped = migrate.migrate_owner_serial(conn)
    assert dropped == ["sellers_serial_number_key"]
    # lookup, one drop, one index
    assert len(conn.executed) == 3


def test_cli_needs_an_action():
    with pytest.raises(SystemExit) as exc:
        migrate.main([])
    assert exc.value.code == 2


def test_cli_exits_nonzero_without_config(monkeypatch):
    def unconfigured():
        raise migrate.ConfigError("DATABASE_URL is not configured in .env file")

    monkeypatch.setattr(migrate, "load_settings", unconfigured)
    assert migrate.main(["--schema"]) == 1
