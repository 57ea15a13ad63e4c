import errno

APP_NAME = "WidgetDB"

# Latest generation; older generations stop at their own version.
SCHEMA_VERSION = 5

DEFAULT_CATEGORY = "http://tizen.org/category/default"
WATCH_CATEGORY = "org.tizen.wmanager.WATCH_CLOCK"

DEFAULT_ABI = "c"
DEFAULT_TIMEOUT = 10
DEFAULT_PERIOD = "0.0"
DEFAULT_SCRIPT = "edje"
DEFAULT_HW_ACCELERATION = "none"

WATCH_ABI = "app"
WATCH_HW_ACCELERATION = "use-sw"

DEFAULT_DATA_DIR = "/opt/dbspace"
DATA_DIR_ENV = "WIDGETDB_DATA_DIR"

# Version sentinels reported by the migrator.
VERSION_UNINITIALIZED = -errno.ENOSYS
VERSION_UNSET = -errno.ENOENT
