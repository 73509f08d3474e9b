# checkin/db.py
from __future__ import annotations

from typing import Any, Dict
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from checkin import config

# libpq keys filled in when the URL does not set them
CONN_DEFAULTS = {
    "sslmode": "require",
    "connect_timeout": "5",
    "keepalives": "1",
    "keepalives_idle": "30",
    "keepalives_interval": "10",
    "keepalives_count": "5",
}


def augment_conninfo(url: str, *, statement_timeout: float | None = None) -> str:
    """
    Return ``url`` with CONN_DEFAULTS and a server-side statement_timeout
    added. Values already present in the URL win.
    """
    if not url:
        raise RuntimeError("DATABASE_URL missing")

    parts = urlsplit(url)
    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    for key, value in CONN_DEFAULTS.items():
        query.setdefault(key, value)

    seconds = config.DB_OP_TIMEOUT if statement_timeout is None else statement_timeout
    options = query.get("options", "")
    if "statement_timeout" not in options:
        query["options"] = f"{options} -c statement_timeout={int(seconds * 1000)}".strip()

    return urlunsplit(parts._replace(query=urlencode(query)))


# process-wide pool; opened by the app lifespan
pool: ConnectionPool | None = None


def open_pool() -> ConnectionPool:
    global pool
    if pool is None:
        pool = ConnectionPool(
            augment_conninfo(config.DATABASE_URL),
            min_size=config.DB_POOL_MIN_SIZE,
            max_size=config.DB_POOL_MAX_SIZE,
            timeout=config.DB_POOL_MAX_WAIT,
            max_idle=30,
            kwargs={"row_factory": dict_row},
            open=True,
        )
    return pool


def close_pool() -> None:
    global pool
    if pool is None:
        return
    try:
        pool.close()
    finally:
        pool = None


def ping() -> Dict[str, Any]:
    """Round-trip ``SELECT 1`` through the pool, for /health/db."""
    if pool is None:
        return {"ok": False, "error": "pool not initialized"}
    try:
        with pool.connection(timeout=config.DB_POOL_MAX_WAIT) as conn:
            row = conn.execute("SELECT 1 AS one;").fetchone()
    except Exception as e:
        return {"ok": False, "via": "pool", "error": type(e).__name__}
    return {"ok": bool(row and row["one"] == 1), "via": "pool"}
