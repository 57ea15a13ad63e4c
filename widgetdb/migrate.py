"""
Schema versioning for the widget store.

Every step is tagged with the version it produces and runs only when the
recorded version is below it. Steps check the live table shape first, so a
step that was already applied is logged and skipped instead of failing.
Callers own the transaction: a statement that fails propagates, the caller
rolls back, and the version record keeps its old value for the next attempt.
"""

import logging
import sqlite3

from .constants import VERSION_UNINITIALIZED, VERSION_UNSET
from .schema import (
    VERSION_SQL,
    category_column,
    count_column,
    direct_input_columns,
    mouse_event_column,
    tables_sql,
)

logger = logging.getLogger("WidgetDB")


def _statements(sql):
    # executescript() would commit the caller's transaction.
    return [s.strip() for s in sql.split(";") if s.strip()]


def get_version(conn):
    try:
        row = conn.execute("SELECT version FROM version").fetchone()
    except sqlite3.OperationalError:
        return VERSION_UNINITIALIZED
    if row is None:
        return VERSION_UNSET
    return int(row[0])


def set_version(conn, version):
    cur = conn.execute("UPDATE version SET version = ?", (version,))
    if cur.rowcount == 0:
        conn.execute("INSERT INTO version (version) VALUES (?)", (version,))


def table_columns(conn, table):
    return [row[1] for row in conn.execute(f"PRAGMA table_info({table})").fetchall()]


def _add_column(conn, table, column_def):
    name = column_def.split()[0]
    if name in table_columns(conn, table):
        logger.info("%s.%s already exists, no changes to DB", table, name)
        return
    conn.execute(f"ALTER TABLE {table} ADD COLUMN {column_def}")


def _upgrade_pkgmap_for_category(conn):
    _add_column(conn, "pkgmap", category_column())


def _upgrade_box_size_mouse_event(conn):
    _add_column(conn, "box_size", mouse_event_column())

    if "mouse_event" not in table_columns(conn, "client"):
        logger.info("client.mouse_event already dropped, no changes to DB")
        return

    rows = conn.execute("SELECT pkgid, mouse_event FROM client").fetchall()
    for pkgid, mouse_event in rows:
        if not pkgid:
            logger.warning("Package Id is not valid, skip mouse_event copy")
            continue
        conn.execute(
            "UPDATE box_size SET mouse_event = ? WHERE pkgid = ?",
            (int(mouse_event or 0), pkgid),
        )

    conn.execute("ALTER TABLE client DROP COLUMN mouse_event")


def _upgrade_provider_count(conn):
    _add_column(conn, "provider", count_column())


def _upgrade_provider_direct_input(conn):
    for column_def in direct_input_columns():
        _add_column(conn, "provider", column_def)


MIGRATIONS = [
    (2, "pkgmap.category", _upgrade_pkgmap_for_category),
    (3, "box_size.mouse_event", _upgrade_box_size_mouse_event),
    (4, "provider.count", _upgrade_provider_count),
    (5, "provider.direct_input/hw_acceleration", _upgrade_provider_direct_input),
]


def create_schema(conn, generation, version=None):
    """Create the version table and every package table at ``version``."""
    version = generation.schema_version if version is None else version
    for stmt in _statements(VERSION_SQL + tables_sql(version)):
        conn.execute(stmt)
    set_version(conn, version)
    return version


def migrate(conn, generation):
    """Bring the store to the generation's schema version and return it."""
    target = generation.schema_version
    version = get_version(conn)
    if version == target:
        return version
    if version > target:
        logger.warning("Store version %d is newer than %d, leave it as is", version, target)
        return version

    logger.info("Old version: %d, migrate to %d", version, target)

    if version == VERSION_UNINITIALIZED:
        conn.execute(VERSION_SQL.rstrip(";"))
        version = VERSION_UNSET

    if version == VERSION_UNSET:
        # Without a record the store is assumed to be the first layout.
        set_version(conn, target)
        version = 1

    for step_version, name, step in MIGRATIONS:
        if version < step_version <= target:
            logger.debug("Upgrade to %d: %s", step_version, name)
            step(conn)

    set_version(conn, target)
    return target
