"""
Lifecycle entry points called by the package-installation host.

Every method returns 0 on success or a negative errno. One plugin instance
serves one package operation: ``pre_*`` opens the store, ``post_*`` closes
it.
"""

import errno
import logging

from .db import WidgetStore
from .errors import ManifestError, WidgetDBError
from .models import Generation
from .parser import load_manifest, parse_descriptor, parse_watch_descriptor
from .utils import node_lang, tag_name

logger = logging.getLogger("WidgetDB")

WATCH_TAG = "watch-application"


class PackageParserPlugin:
    def __init__(self, generation=Generation.WIDGET, db_path=None):
        self.generation = Generation(generation)
        self.store = WidgetStore(db_path=db_path, generation=self.generation)

    def _open(self):
        try:
            self.store.open()
        except WidgetDBError as exc:
            logger.error("Failed to open store %s: %s", self.store.db_path, exc)
            return exc.errno
        return 0

    def _purge(self, appid):
        try:
            self.store.purge_all(appid, is_watch=False)
            if self.generation.supports_watch:
                self.store.purge_all(appid, is_watch=True)
        except WidgetDBError as exc:
            logger.error("Failed to remove old packages of %s: %s", appid, exc)
            return exc.errno
        return 0

    def _prepare(self, appid):
        ret = self._open()
        if ret < 0:
            return ret
        return self._purge(appid)

    def _close(self):
        self.store.close()
        return 0

    def _elements(self, doc):
        root = load_manifest(doc)
        if root is None:
            raise ManifestError("Invalid document")

        wanted = set(self.generation.manifest_tags)
        if self.generation.supports_watch:
            wanted.add(WATCH_TAG)

        # The manifest element may also be handed over directly.
        if tag_name(root) in wanted:
            return None, [root]
        return node_lang(root), [child for child in root if tag_name(child) in wanted]

    def _install(self, doc, appid):
        if not self.store.is_open:
            logger.error("Store is not opened")
            return -errno.EIO

        try:
            root_lang, elements = self._elements(doc)
        except WidgetDBError as exc:
            logger.error("Invalid document for %s: %s", appid, exc)
            return exc.errno

        for node in elements:
            lang = node_lang(node, root_lang)
            try:
                if tag_name(node) == WATCH_TAG:
                    desc = parse_watch_descriptor(node, lang)
                else:
                    desc = parse_descriptor(node, self.generation, lang)
                self.store.install(desc, appid)
            except WidgetDBError as exc:
                # One broken element must not fail the whole package.
                logger.error("Failed to install %s for %s: %s", tag_name(node), appid, exc)
        return 0

    def pre_install(self, appid):
        logger.debug("pre_install: %s", appid)
        return self._prepare(appid)

    def install(self, doc, appid):
        logger.debug("install: %s", appid)
        return self._install(doc, appid)

    def post_install(self, appid):
        logger.debug("post_install: %s", appid)
        return self._close()

    def pre_upgrade(self, appid):
        logger.debug("pre_upgrade: %s", appid)
        return self._prepare(appid)

    def upgrade(self, doc, appid):
        logger.debug("upgrade: %s", appid)
        return self._install(doc, appid)

    def post_upgrade(self, appid):
        logger.debug("post_upgrade: %s", appid)
        return self._close()

    def pre_uninstall(self, appid):
        logger.debug("pre_uninstall: %s", appid)
        return self._open()

    def uninstall(self, doc, appid):
        logger.debug("uninstall: %s", appid)
        if not self.store.is_open:
            logger.error("Store is not opened")
            return -errno.EIO
        return 0

    def post_uninstall(self, appid):
        logger.debug("post_uninstall: %s", appid)
        if not self.store.is_open:
            logger.error("Store is not opened")
            return -errno.EIO
        ret = self._purge(appid)
        self._close()
        return ret
