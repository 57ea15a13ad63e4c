import logging

from .constants import APP_NAME, SCHEMA_VERSION
from .db import WidgetStore
from .errors import ManifestError, StoreError, WidgetDBError
from .hooks import PackageParserPlugin
from .models import Descriptor, Generation
from .parser import load_manifest, parse_descriptor, parse_watch_descriptor
from .paths import abspath

VERSION = "1.0.0"

logger = logging.getLogger("WidgetDB")
logger.debug("%s %s (schema version %d)", APP_NAME, VERSION, SCHEMA_VERSION)

__all__ = [
    "Descriptor",
    "Generation",
    "ManifestError",
    "PackageParserPlugin",
    "StoreError",
    "WidgetDBError",
    "WidgetStore",
    "abspath",
    "load_manifest",
    "parse_descriptor",
    "parse_watch_descriptor",
]
