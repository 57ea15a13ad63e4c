import errno
import sqlite3
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from widgetdb.db import WidgetStore
from widgetdb.hooks import PackageParserPlugin
from widgetdb.models import Generation

MANIFEST = """
<manifest package="com.example">
  <ui-application appid="com.example.ui"/>
  <widget appid="com.example.a" primary="true">
    <label>A</label>
    <box type="buffer"><size>2x2</size></box>
  </widget>
  <widget appid="com.example.b">
    <label>B</label>
    <box><size>4x2</size></box>
  </widget>
  <widget>
    <label>no appid</label>
  </widget>
  <watch-application appid="com.example.watch" exec="/usr/apps/com.example/bin/watch">
    <label>Watch</label>
  </watch-application>
</manifest>
"""


class PackageParserPluginTests(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.temp_dir.cleanup)
        self.db_path = str(Path(self.temp_dir.name) / ".widget.db")

    def _plugin(self, generation=Generation.WIDGET):
        plugin = PackageParserPlugin(generation=generation, db_path=self.db_path)
        self.addCleanup(plugin.store.close)
        return plugin

    def _pkgids(self, plugin, appid, is_watch=False):
        return sorted(pkgid for pkgid, _ in plugin.store.list_packages(appid, is_watch))

    def test_install_upgrade_uninstall_round_trip(self):
        plugin = self._plugin()
        self.assertEqual(plugin.pre_install("com.example"), 0)
        self.assertEqual(plugin.install(MANIFEST, "com.example"), 0)
        self.assertEqual(self._pkgids(plugin, "com.example"), ["com.example.a", "com.example.b"])
        self.assertEqual(self._pkgids(plugin, "com.example", is_watch=True), ["com.example.watch"])
        self.assertEqual(plugin.post_install("com.example"), 0)
        self.assertFalse(plugin.store.is_open)

        upgraded = MANIFEST.replace('<widget appid="com.example.b">', '<widget appid="com.example.c">')
        self.assertEqual(plugin.pre_upgrade("com.example"), 0)
        self.assertEqual(plugin.upgrade(upgraded, "com.example"), 0)
        self.assertEqual(self._pkgids(plugin, "com.example"), ["com.example.a", "com.example.c"])
        self.assertEqual(plugin.post_upgrade("com.example"), 0)

        self.assertEqual(plugin.pre_uninstall("com.example"), 0)
        self.assertEqual(plugin.uninstall(upgraded, "com.example"), 0)
        self.assertEqual(plugin.post_uninstall("com.example"), 0)

        plugin.store.open()
        self.assertEqual(plugin.store.count_rows("pkgmap"), 0)
        self.assertEqual(plugin.store.count_rows("box_size"), 0)

    def test_widget_application_elements_are_installed(self):
        manifest = (
            '<manifest><widget-application appid="com.example.w">'
            "<label>W</label><box><size>2x2</size></box>"
            "</widget-application></manifest>"
        )
        plugin = self._plugin()
        self.assertEqual(plugin.pre_install("com.example"), 0)
        self.assertEqual(plugin.install(manifest, "com.example"), 0)
        self.assertEqual(plugin.store.count_rows("pkgmap"), 1)
        self.assertEqual(self._pkgids(plugin, "com.example"), ["com.example.w"])
        self.assertEqual(plugin.store.get_package("com.example.w")["sizes"][0]["size_type"], 0x4)

    def test_manifest_language_is_inherited(self):
        manifest = (
            '<manifest xml:lang="ko"><widget-application appid="com.example.w">'
            "<label>Annyeong</label>"
            "</widget-application></manifest>"
        )
        plugin = self._plugin()
        plugin.pre_install("com.example")
        self.assertEqual(plugin.install(manifest, "com.example"), 0)

        pkg = plugin.store.get_package("com.example.w")
        self.assertIsNone(pkg["client"]["name"])
        self.assertEqual(pkg["i18n"], [{"lang": "ko", "name": "Annyeong", "icon": None}])

    def test_begin_failure_becomes_errno(self):
        fake = mock.MagicMock()
        fake.in_transaction = False
        fake.execute.side_effect = sqlite3.OperationalError("database is locked")
        plugin = self._plugin()
        with mock.patch.object(WidgetStore, "_connect", return_value=fake):
            self.assertEqual(plugin.pre_install("com.example"), -errno.EIO)
        self.assertFalse(plugin.store.is_open)
        fake.close.assert_called_once_with()

    def test_install_accepts_a_file(self):
        path = Path(self.temp_dir.name) / "manifest.xml"
        path.write_text(MANIFEST, encoding="utf-8")
        plugin = self._plugin()
        plugin.pre_install("com.example")
        self.assertEqual(plugin.install(path, "com.example"), 0)
        self.assertEqual(plugin.store.count_rows("pkgmap"), 3)

    def test_install_requires_open_store(self):
        plugin = self._plugin()
        self.assertEqual(plugin.install(MANIFEST, "com.example"), -errno.EIO)
        self.assertEqual(plugin.uninstall(MANIFEST, "com.example"), -errno.EIO)
        self.assertEqual(plugin.post_uninstall("com.example"), -errno.EIO)

    def test_install_rejects_malformed_document(self):
        plugin = self._plugin()
        plugin.pre_install("com.example")
        self.assertEqual(plugin.install("<manifest>", "com.example"), -errno.EINVAL)

    def test_older_generation_ignores_watch_applications(self):
        manifest = MANIFEST.replace("<widget", "<livebox").replace("</widget>", "</livebox>")
        plugin = PackageParserPlugin(generation=Generation.LIVEBOX, db_path=str(Path(self.temp_dir.name) / ".livebox.db"))
        self.addCleanup(plugin.store.close)
        self.assertEqual(plugin.pre_install("com.example"), 0)
        self.assertEqual(plugin.install(manifest, "com.example"), 0)
        self.assertEqual(self._pkgids(plugin, "com.example"), ["com.example.a", "com.example.b"])
        self.assertEqual(self._pkgids(plugin, "com.example", is_watch=True), [])
        self.assertEqual(plugin.store.get_version(), 4)

    def test_open_failure_is_reported(self):
        Path(self.db_path).mkdir()
        plugin = self._plugin()
        self.assertEqual(plugin.pre_install("com.example"), -errno.EINVAL)


if __name__ == "__main__":
    unittest.main()
