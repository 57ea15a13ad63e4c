from .constants import DEFAULT_CATEGORY, DEFAULT_HW_ACCELERATION

VERSION_SQL = "CREATE TABLE IF NOT EXISTS version (version INTEGER);"

# Foreign keys document the layout only; rows are removed by pkgid, leaf first.
TABLES_SQL = r"""
CREATE TABLE IF NOT EXISTS pkgmap (
  pkgid TEXT PRIMARY KEY NOT NULL,
  appid TEXT,
  uiapp TEXT,
  prime INTEGER{pkgmap_extra}
);

CREATE TABLE IF NOT EXISTS provider (
  pkgid TEXT PRIMARY KEY NOT NULL,
  network INTEGER,
  abi TEXT,
  secured INTEGER,
  box_type INTEGER,
  box_src TEXT,
  box_group TEXT,
  gbar_type INTEGER,
  gbar_src TEXT,
  gbar_group TEXT,
  libexec TEXT,
  timeout INTEGER,
  period TEXT,
  script TEXT,
  pinup INTEGER{provider_extra},
  FOREIGN KEY (pkgid) REFERENCES pkgmap(pkgid)
);

CREATE TABLE IF NOT EXISTS client (
  pkgid TEXT PRIMARY KEY NOT NULL,
  icon TEXT,
  name TEXT,
  auto_launch TEXT,
  gbar_size TEXT,
  content TEXT,
  nodisplay INTEGER,
  setup TEXT{client_extra},
  FOREIGN KEY (pkgid) REFERENCES pkgmap(pkgid)
);

CREATE TABLE IF NOT EXISTS i18n (
  pkgid TEXT NOT NULL,
  lang TEXT COLLATE NOCASE,
  name TEXT,
  icon TEXT,
  FOREIGN KEY (pkgid) REFERENCES pkgmap(pkgid)
);

CREATE TABLE IF NOT EXISTS box_size (
  pkgid TEXT NOT NULL,
  size_type INTEGER,
  preview TEXT,
  touch_effect INTEGER,
  need_frame INTEGER{box_size_extra},
  FOREIGN KEY (pkgid) REFERENCES pkgmap(pkgid)
);

CREATE TABLE IF NOT EXISTS groupinfo (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  cluster TEXT NOT NULL,
  category TEXT NOT NULL,
  pkgid TEXT NOT NULL,
  FOREIGN KEY (pkgid) REFERENCES pkgmap(pkgid)
);

CREATE TABLE IF NOT EXISTS groupmap (
  option_id INTEGER PRIMARY KEY AUTOINCREMENT,
  id INTEGER,
  pkgid TEXT NOT NULL,
  ctx_item TEXT NOT NULL,
  FOREIGN KEY (id) REFERENCES groupinfo(id),
  FOREIGN KEY (pkgid) REFERENCES pkgmap(pkgid)
);

CREATE TABLE IF NOT EXISTS option (
  pkgid TEXT NOT NULL,
  option_id INTEGER,
  key TEXT NOT NULL,
  value TEXT NOT NULL,
  FOREIGN KEY (option_id) REFERENCES groupmap(option_id),
  FOREIGN KEY (pkgid) REFERENCES pkgmap(pkgid)
);
"""

# Leaf tables first; this is also the delete order.
PACKAGE_TABLES = (
    "box_size",
    "i18n",
    "client",
    "provider",
    "option",
    "groupmap",
    "groupinfo",
    "pkgmap",
)


def category_column():
    return f"category TEXT DEFAULT '{DEFAULT_CATEGORY}'"


def mouse_event_column():
    return "mouse_event INTEGER DEFAULT 0"


def count_column():
    return "count INTEGER DEFAULT 0"


def direct_input_columns():
    return ("direct_input INTEGER DEFAULT 0", f"hw_acceleration TEXT DEFAULT '{DEFAULT_HW_ACCELERATION}'")


def tables_sql(version):
    """DDL of the package tables as they look at schema ``version``."""
    provider = []
    if version >= 4:
        provider.append(count_column())
    if version >= 5:
        provider.extend(direct_input_columns())

    def extra(columns):
        return "".join(f",\n  {c}" for c in columns)

    return TABLES_SQL.format(
        pkgmap_extra=extra([category_column()] if version >= 2 else []),
        provider_extra=extra(provider),
        client_extra=extra(["mouse_event INTEGER"] if version < 3 else []),
        box_size_extra=extra([mouse_event_column()] if version >= 3 else []),
    )
