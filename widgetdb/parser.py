import logging
import os
import xml.etree.ElementTree as ET

from .constants import (
    DEFAULT_TIMEOUT,
    WATCH_ABI,
    WATCH_CATEGORY,
    WATCH_HW_ACCELERATION,
)
from .errors import ManifestError
from .models import (
    BoxType,
    Descriptor,
    DetailType,
    Generation,
    GroupBinding,
    SettingOption,
    SizeAttributes,
    SizeType,
)
from .paths import abspath
from .utils import get_attr, is_true, node_lang, node_text, normalize_text, parse_int, tag_name

logger = logging.getLogger("WidgetDB")

_BOX_TYPES = {
    "text": BoxType.TEXT,
    "buffer": BoxType.BUFFER,
    "script": BoxType.SCRIPT,
    "elm": BoxType.UIFW,
}

_DETAIL_TYPES = {
    "text": DetailType.TEXT,
    "buffer": DetailType.BUFFER,
    "script": DetailType.SCRIPT,
}

# token -> (size without mode, size with mode="easy")
_SIZE_TOKENS = {
    "1x1": (SizeType.S1x1, SizeType.EASY_1x1),
    "3x1": (None, SizeType.EASY_3x1),
    "3x3": (None, SizeType.EASY_3x3),
    "2x1": (SizeType.S2x1, SizeType.S2x1),
    "2x2": (SizeType.S2x2, SizeType.S2x2),
    "4x1": (SizeType.S4x1, SizeType.S4x1),
    "4x2": (SizeType.S4x2, SizeType.S4x2),
    "4x3": (SizeType.S4x3, SizeType.S4x3),
    "4x4": (SizeType.S4x4, SizeType.S4x4),
    "4x5": (SizeType.S4x5, SizeType.S4x5),
    "4x6": (SizeType.S4x6, SizeType.S4x6),
    "21x21": (SizeType.EASY_1x1, SizeType.EASY_1x1),
    "23x21": (SizeType.EASY_3x1, SizeType.EASY_3x1),
    "23x23": (SizeType.EASY_3x3, SizeType.EASY_3x3),
    "0x0": (SizeType.FULL, SizeType.FULL),
}


def size_type_for(token, easy=False):
    entry = _SIZE_TOKENS.get(normalize_text(token).lower())
    if entry is None:
        return None
    return entry[1] if easy else entry[0]


def _flag(node, name, default):
    value = get_attr(node, name)
    if value is None:
        return default
    return is_true(value)


def _require_pkgid(node):
    pkgid = get_attr(node, "appid")
    if not pkgid:
        raise ManifestError("Missing appid")
    # The package id is not checked against the host's appid.
    logger.debug("appid: %s", pkgid)
    return pkgid


def _update_name(desc, node, lang):
    name = node_text(node)
    lang = node_lang(node, lang)
    if not lang:
        if desc.name is not None:
            logger.debug("Override default name: %s", desc.name)
        desc.name = name
        return

    label = desc.label_for(lang)
    if label.name is not None:
        logger.debug("Override name: %s", label.name)
    label.name = name


def _update_icon(desc, node, lang):
    icon = node_text(node)
    lang = node_lang(node, lang)
    if not lang:
        if desc.icon is not None:
            logger.debug("Override default icon: %s", desc.icon)
        desc.icon = icon
        return

    label = desc.label_for(lang)
    if label.icon is not None:
        logger.debug("Override icon %s for %s", label.icon, label.name)
    label.icon = abspath(icon)


def _size_attributes(node, defaults, previous=None):
    preview = get_attr(node, "preview")
    if preview is not None:
        preview = abspath(preview)
    elif previous is not None:
        preview = previous.preview

    return SizeAttributes(
        preview=preview,
        touch_effect=_flag(node, "touch_effect", defaults.touch_effect),
        need_frame=_flag(node, "need_frame", defaults.need_frame),
        mouse_event=_flag(node, "mouse_event", defaults.mouse_event),
    )


def _script_source(node, what):
    src = get_attr(node, "src")
    if src is None:
        logger.warning("Invalid script tag in %s, has no src", what)
        return None, None
    return abspath(src), get_attr(node, "group")


def _update_box(desc, node, lang):
    box_type = get_attr(node, "type")
    desc.box_type = _BOX_TYPES.get(normalize_text(box_type).lower(), BoxType.FILE)

    defaults = SizeAttributes(
        mouse_event=_flag(node, "mouse_event", False),
        touch_effect=_flag(node, "touch_effect", True),
        need_frame=_flag(node, "need_frame", False),
    )

    for child in node:
        name = tag_name(child)
        if name == "size":
            token = normalize_text(node_text(child))
            mode = get_attr(child, "mode")
            easy = mode is not None and normalize_text(mode).lower() == "easy"
            size_type = size_type_for(token, easy)
            if size_type is None:
                logger.warning("Invalid size tag (%s) for %s", token, desc.pkgid)
                continue
            desc.sizes[size_type] = _size_attributes(child, defaults, desc.sizes.get(size_type))
        elif name == "script":
            src, group = _script_source(child, "box")
            if src is None:
                continue
            if desc.box_src is not None:
                logger.debug("Override box src: %s", desc.box_src)
            desc.box_src = src
            if group is not None:
                desc.box_group = group


def _update_detail(desc, node, lang):
    detail_type = get_attr(node, "type")
    desc.gbar_type = _DETAIL_TYPES.get(normalize_text(detail_type).lower(), DetailType.SCRIPT)

    for child in node:
        name = tag_name(child)
        if name == "size":
            if desc.gbar_size is not None:
                logger.debug("Override detail size: %s", desc.gbar_size)
            desc.gbar_size = node_text(child)
        elif name == "script":
            src, group = _script_source(child, "detail view")
            if src is None:
                continue
            if desc.gbar_src is not None:
                logger.debug("Override detail src: %s", desc.gbar_src)
            desc.gbar_src = src
            if group is not None:
                desc.gbar_group = group


def _update_group(desc, node, lang):
    for cluster in node:
        if tag_name(cluster) != "cluster":
            continue
        cluster_name = get_attr(cluster, "name")
        if cluster_name is None:
            logger.warning("Invalid cluster, has no name")
            continue

        for category in cluster:
            if tag_name(category) != "category":
                continue
            category_name = get_attr(category, "name")
            if category_name is None:
                logger.warning("Invalid category in cluster %s, has no name", cluster_name)
                continue

            binding = GroupBinding(cluster=cluster_name, category=category_name)
            desc.groups.append(binding)

            ctx_item = get_attr(category, "context")
            if ctx_item is None:
                logger.debug("%s, %s has no ctx info", cluster_name, category_name)
                continue
            binding.ctx_item = ctx_item

            for option in category:
                if tag_name(option) != "option":
                    continue
                key = get_attr(option, "key")
                value = get_attr(option, "value")
                if key is None or value is None:
                    logger.warning("Invalid option in %s/%s, needs key and value", cluster_name, category_name)
                    continue
                binding.options.append(SettingOption(key=key, value=value))


def _update_category(desc, node, lang):
    category = get_attr(node, "name")
    if category is None:
        category = normalize_text(node_text(node)) or None
    if category is None:
        logger.debug("Has no valid category")
        return
    if normalize_text(category).lower() == WATCH_CATEGORY.lower():
        raise ManifestError(f"Widget tries to install WATCH: {desc.pkgid}")
    desc.category = category


def _text_setter(field):
    def update(desc, node, lang):
        setattr(desc, field, node_text(node))

    return update


def _handlers(generation):
    return {
        "label": _update_name,
        "icon": _update_icon,
        "box": _update_box,
        generation.detail_tag: _update_detail,
        "group": _update_group,
        "content": _text_setter("content"),
        "setup": _text_setter("setup"),
        "launch": _text_setter("auto_launch"),
        "ui-appid": _text_setter("uiapp"),
        "category": _update_category,
    }


def parse_descriptor(node, generation=Generation.WIDGET, lang=None):
    """Build a Descriptor from one manifest element.

    ``lang`` is the language inherited from the element's ancestors, if any.
    Raises ManifestError when ``appid`` is missing or the manifest claims the
    watch category; any other malformed child is logged and skipped.
    """
    generation = Generation(generation)
    desc = Descriptor(pkgid=_require_pkgid(node))
    lang = node_lang(node, lang)

    count = get_attr(node, "count")
    if count is not None:
        try:
            desc.count = int(normalize_text(count))
        except ValueError:
            logger.warning("Invalid syntax for count: %s", count)

    timeout = get_attr(node, "timeout")
    if timeout is not None:
        desc.timeout = parse_int(timeout, DEFAULT_TIMEOUT)

    desc.primary = _flag(node, "primary", False)
    desc.nodisplay = _flag(node, "nodisplay", False)
    desc.pinup = _flag(node, "pinup", False)
    desc.secured = _flag(node, "secured", False)
    desc.network = _flag(node, "network", False)
    desc.direct_input = _flag(node, "direct_input", False)

    for attr, field in (("script", "script"), ("period", "period"), ("hw-acceleration", "hw_acceleration"), ("abi", "abi")):
        value = get_attr(node, attr)
        if value is not None:
            setattr(desc, field, value)

    libexec = get_attr(node, "libexec")
    if libexec is not None:
        desc.libexec = abspath(libexec)
    elif desc.abi.lower() in ("c", "cpp"):
        desc.libexec = f"/libexec/liblive-{desc.pkgid}.so"
        logger.debug("Use the default libexec: %s", desc.libexec)

    handlers = _handlers(generation)
    for child in node:
        name = tag_name(child)
        handler = handlers.get(name)
        if handler is None:
            if name:
                logger.debug("Skip: %s", name)
            continue
        handler(desc, child, lang)

    return desc


def parse_watch_descriptor(node, lang=None):
    """Build the fixed Descriptor of a watch application.

    Only the label, icon and ``exec`` of the element are read; everything else
    is the watch profile.
    """
    desc = Descriptor(
        pkgid=_require_pkgid(node),
        primary=True,
        secured=True,
        nodisplay=True,
        abi=WATCH_ABI,
        hw_acceleration=WATCH_HW_ACCELERATION,
        category=WATCH_CATEGORY,
        box_type=BoxType.BUFFER,
        sizes={SizeType.S2x2: SizeAttributes(mouse_event=True, touch_effect=False, need_frame=False)},
    )
    desc.libexec = get_attr(node, "exec")
    lang = node_lang(node, lang)

    for child in node:
        name = tag_name(child)
        if name == "label":
            _update_name(desc, child, lang)
        elif name == "icon":
            _update_icon(desc, child, lang)

    return desc


def load_manifest(source):
    """Return the root element of a manifest given as a tree, path or XML text."""
    if isinstance(source, ET.ElementTree):
        return source.getroot()
    if isinstance(source, ET.Element):
        return source
    try:
        if isinstance(source, bytes) or (isinstance(source, str) and source.lstrip().startswith("<")):
            return ET.fromstring(source)
        return ET.parse(os.fspath(source)).getroot()
    except ET.ParseError as exc:
        raise ManifestError(f"Malformed manifest: {exc}") from exc
    except OSError as exc:
        raise ManifestError(f"Cannot read manifest {source}: {exc}") from exc
