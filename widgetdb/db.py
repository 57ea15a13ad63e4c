import errno
import logging
import os
import sqlite3
import stat
from contextlib import contextmanager

from .constants import WATCH_CATEGORY
from .errors import StoreError, WidgetDBError
from .migrate import create_schema, get_version, migrate
from .models import SIZE_TYPES, Generation
from .paths import get_db_path
from .schema import PACKAGE_TABLES

logger = logging.getLogger("WidgetDB")


class WidgetStore:
    """Widget registry for one store file.

    The caller opens and closes the store around one host operation. Each
    write runs in its own explicit transaction and leaves nothing behind
    when it fails.
    """

    def __init__(self, db_path=None, generation=Generation.WIDGET):
        self.generation = Generation(generation)
        self.db_path = db_path or get_db_path(self.generation)
        self.conn = None

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @property
    def is_open(self):
        return self.conn is not None

    def _connect(self):
        conn = sqlite3.connect(self.db_path, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA busy_timeout = 5000")
        return conn

    def _require_conn(self):
        if self.conn is None:
            raise StoreError("Store is not open")
        return self.conn

    def open(self):
        if self.conn is not None:
            return self

        is_new = True
        if os.path.lexists(self.db_path):
            st = os.lstat(self.db_path)
            if not stat.S_ISREG(st.st_mode):
                raise StoreError(f"Invalid file: {self.db_path}", code=-errno.EINVAL)
            is_new = st.st_size == 0

        directory = os.path.dirname(self.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        try:
            self.conn = self._connect()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to open {self.db_path}: {exc}") from exc

        try:
            with self.transaction() as conn:
                if is_new:
                    version = create_schema(conn, self.generation)
                    logger.info("Created %s store at version %d: %s", self.generation.value, version, self.db_path)
                else:
                    migrate(conn, self.generation)
        except WidgetDBError:
            self.close()
            raise
        return self

    def close(self):
        if self.conn is None:
            return
        self.conn.close()
        self.conn = None

    @contextmanager
    def transaction(self):
        conn = self._require_conn()
        if conn.in_transaction:
            raise StoreError("Transaction already in progress")

        try:
            conn.execute("BEGIN")
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to begin transaction: {exc}") from exc

        try:
            yield conn
        except sqlite3.Error as exc:
            logger.error("ROLLBACK: %s", exc)
            self._rollback(conn)
            raise StoreError(str(exc)) from exc
        except BaseException:
            logger.error("ROLLBACK")
            self._rollback(conn)
            raise

        try:
            conn.execute("COMMIT")
        except sqlite3.Error as exc:
            self._rollback(conn)
            raise StoreError(f"Failed to commit: {exc}") from exc

    @staticmethod
    def _rollback(conn):
        # SQLite may already have rolled back on its own.
        if conn.in_transaction:
            conn.execute("ROLLBACK")

    def get_version(self):
        return get_version(self._require_conn())

    # ------------------------------------------------------------------
    # install

    def install(self, desc, appid):
        """Write one Descriptor and everything it owns, all or nothing."""
        with self.transaction() as conn:
            self._insert_pkgmap(conn, appid, desc)
            self._insert_provider(conn, desc)
            self._insert_client(conn, desc)

            for label in desc.i18n:
                self._insert_i18n(conn, desc.pkgid, label)

            for size_type in SIZE_TYPES:
                attrs = desc.sizes.get(size_type)
                if attrs is not None:
                    self._insert_box_size(conn, desc.pkgid, size_type, attrs)

            for group in desc.groups:
                self._insert_group_binding(conn, desc.pkgid, group)

        logger.info("Installed %s (appid %s)", desc.pkgid, appid)

    def _insert_pkgmap(self, conn, appid, desc):
        conn.execute(
            "INSERT INTO pkgmap(appid,pkgid,uiapp,prime,category) VALUES(?,?,?,?,?)",
            (appid, desc.pkgid, desc.uiapp, int(desc.primary), desc.category),
        )

    def _insert_provider(self, conn, desc):
        columns = [
            ("pkgid", desc.pkgid),
            ("network", int(desc.network)),
            ("abi", desc.abi),
            ("secured", int(desc.secured)),
            ("box_type", int(desc.box_type)),
            ("box_src", desc.box_src),
            ("box_group", desc.box_group),
            ("gbar_type", int(desc.gbar_type)),
            ("gbar_src", desc.gbar_src),
            ("gbar_group", desc.gbar_group),
            ("libexec", desc.libexec),
            ("timeout", desc.timeout),
            ("period", desc.period),
            ("script", desc.script),
            ("pinup", int(desc.pinup)),
            ("count", desc.count),
        ]
        if self.generation.schema_version >= 5:
            columns.append(("direct_input", int(desc.direct_input)))
            columns.append(("hw_acceleration", desc.hw_acceleration))

        names = ",".join(name for name, _ in columns)
        placeholders = ",".join(["?"] * len(columns))
        conn.execute(
            f"INSERT INTO provider({names}) VALUES({placeholders})",
            [value for _, value in columns],
        )

    def _insert_client(self, conn, desc):
        conn.execute(
            """
            INSERT INTO client(pkgid,icon,name,auto_launch,gbar_size,content,nodisplay,setup)
            VALUES(?,?,?,?,?,?,?,?)
            """,
            (
                desc.pkgid,
                desc.icon,
                desc.name,
                desc.auto_launch,
                desc.gbar_size,
                desc.content,
                int(desc.nodisplay),
                desc.setup,
            ),
        )

    def _insert_i18n(self, conn, pkgid, label):
        conn.execute(
            "INSERT INTO i18n(pkgid,lang,name,icon) VALUES(?,?,?,?)",
            (pkgid, label.lang, label.name, label.icon),
        )

    def _insert_box_size(self, conn, pkgid, size_type, attrs):
        conn.execute(
            """
            INSERT INTO box_size(pkgid,size_type,preview,touch_effect,need_frame,mouse_event)
            VALUES(?,?,?,?,?,?)
            """,
            (
                pkgid,
                int(size_type),
                attrs.preview,
                int(attrs.touch_effect),
                int(attrs.need_frame),
                int(attrs.mouse_event),
            ),
        )

    @staticmethod
    def _get_group_id(conn, cluster, category):
        row = conn.execute(
            "SELECT id FROM groupinfo WHERE cluster = ? AND category = ?",
            (cluster, category),
        ).fetchone()
        return None if row is None else row["id"]

    @staticmethod
    def _get_option_id(conn, group_id, pkgid, ctx_item):
        row = conn.execute(
            "SELECT option_id FROM groupmap WHERE id = ? AND pkgid = ? AND ctx_item = ?",
            (group_id, pkgid, ctx_item),
        ).fetchone()
        return None if row is None else row["option_id"]

    def _insert_group(self, conn, pkgid, cluster, category):
        conn.execute(
            "INSERT INTO groupinfo(cluster,category,pkgid) VALUES(?,?,?)",
            (cluster, category, pkgid),
        )

    def _insert_groupmap(self, conn, group_id, pkgid, ctx_item):
        logger.debug("%d (%s) add to groupmap", group_id, pkgid)
        conn.execute(
            "INSERT INTO groupmap(id,pkgid,ctx_item) VALUES(?,?,?)",
            (group_id, pkgid, ctx_item),
        )

    def _insert_option(self, conn, pkgid, option_id, option):
        conn.execute(
            "INSERT INTO option(pkgid,option_id,key,value) VALUES(?,?,?,?)",
            (pkgid, option_id, option.key, option.value),
        )

    def _insert_group_binding(self, conn, pkgid, group):
        group_id = self._get_group_id(conn, group.cluster, group.category)
        if group_id is None:
            self._insert_group(conn, pkgid, group.cluster, group.category)
            group_id = self._get_group_id(conn, group.cluster, group.category)
            if group_id is None:
                raise StoreError(f"Failed to get group id for {group.cluster}/{group.category}")
            logger.debug("New group name is built - %s/%s", group.cluster, group.category)

        if group.ctx_item is None:
            logger.debug("%s, %s - has no ctx info", group.cluster, group.category)
            return

        self._insert_groupmap(conn, group_id, pkgid, group.ctx_item)
        option_id = self._get_option_id(conn, group_id, pkgid, group.ctx_item)
        if option_id is None:
            raise StoreError(f"Failed to get option id for {group.cluster}/{group.category}/{group.ctx_item}")

        for option in group.options:
            self._insert_option(conn, pkgid, option_id, option)

    # ------------------------------------------------------------------
    # removal

    def _delete_package(self, conn, pkgid, best_effort=False):
        for table in PACKAGE_TABLES:
            try:
                cur = conn.execute(f"DELETE FROM {table} WHERE pkgid = ?", (pkgid,))
            except sqlite3.Error as exc:
                if not best_effort:
                    raise
                logger.error("Remove %s for %s: %s", table, pkgid, exc)
                continue
            logger.debug("Remove %s for %s: %d", table, pkgid, cur.rowcount)

    def uninstall(self, pkgid):
        """Remove every row keyed by ``pkgid``; missing rows are not an error."""
        with self.transaction() as conn:
            self._delete_package(conn, pkgid)
        logger.info("Uninstalled %s", pkgid)

    def list_packages(self, appid, is_watch=False):
        if not appid:
            raise WidgetDBError("Invalid appid", code=-errno.EINVAL)

        conn = self._require_conn()
        if is_watch:
            dml = "SELECT pkgid, prime FROM pkgmap WHERE appid = ? AND category = ?"
        else:
            dml = "SELECT pkgid, prime FROM pkgmap WHERE appid = ? AND (category IS NULL OR category <> ?)"
        try:
            rows = conn.execute(dml, (appid, WATCH_CATEGORY)).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to list packages of {appid}: {exc}") from exc
        return [(row["pkgid"], row["prime"]) for row in rows if row["pkgid"]]

    def purge_all(self, appid, is_watch=False):
        """Drop every package registered under ``appid``; returns how many were visited.

        Individual delete failures are logged and skipped.
        """
        packages = self.list_packages(appid, is_watch)
        if not packages:
            return 0

        with self.transaction() as conn:
            for pkgid, _prime in packages:
                logger.warning("Remove old package info: appid(%s), pkgid(%s)", appid, pkgid)
                self._delete_package(conn, pkgid, best_effort=True)
        return len(packages)

    # ------------------------------------------------------------------
    # reads

    def count_rows(self, table, pkgid=None):
        if table not in PACKAGE_TABLES:
            raise KeyError(f"unknown table: {table}")
        conn = self._require_conn()
        if pkgid is None:
            row = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
        else:
            row = conn.execute(f"SELECT COUNT(*) FROM {table} WHERE pkgid = ?", (pkgid,)).fetchone()
        return row[0]

    def get_package(self, pkgid):
        conn = self._require_conn()
        row = conn.execute("SELECT * FROM pkgmap WHERE pkgid = ?", (pkgid,)).fetchone()
        if not row:
            raise KeyError("package not found")

        provider = conn.execute("SELECT * FROM provider WHERE pkgid = ?", (pkgid,)).fetchone()
        client = conn.execute("SELECT * FROM client WHERE pkgid = ?", (pkgid,)).fetchone()
        i18n = conn.execute(
            "SELECT lang, name, icon FROM i18n WHERE pkgid = ? ORDER BY rowid", (pkgid,)
        ).fetchall()
        sizes = conn.execute(
            "SELECT size_type, preview, touch_effect, need_frame, mouse_event FROM box_size WHERE pkgid = ? ORDER BY rowid",
            (pkgid,),
        ).fetchall()
        groups = conn.execute(
            """
            SELECT gi.id, gi.cluster, gi.category, gm.option_id, gm.ctx_item
            FROM groupmap gm JOIN groupinfo gi ON gi.id = gm.id
            WHERE gm.pkgid = ?
            ORDER BY gm.option_id
            """,
            (pkgid,),
        ).fetchall()

        out = dict(row)
        out["provider"] = dict(provider) if provider else {}
        out["client"] = dict(client) if client else {}
        out["i18n"] = [dict(r) for r in i18n]
        out["sizes"] = [dict(r) for r in sizes]
        out["groups"] = []
        for g in groups:
            options = conn.execute(
                "SELECT key, value FROM option WHERE pkgid = ? AND option_id = ? ORDER BY rowid",
                (pkgid, g["option_id"]),
            ).fetchall()
            item = dict(g)
            item["options"] = [dict(o) for o in options]
            out["groups"].append(item)
        return out
