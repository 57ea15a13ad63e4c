import re

XML_LANG = "{http://www.w3.org/XML/1998/namespace}lang"

_ws_re = re.compile(r"\s+")


def normalize_text(s):
    if s is None:
        return ""
    s = str(s).strip()
    s = _ws_re.sub(" ", s)
    return s


def is_true(value):
    return value is not None and normalize_text(value).lower() == "true"


def tag_name(node):
    """Local, lower-cased element name; comments and PIs yield ""."""
    tag = node.tag
    if not isinstance(tag, str):
        return ""
    if tag.startswith("{"):
        tag = tag.split("}", 1)[1]
    return tag.lower()


def node_text(node):
    # All descendant text, like libxml2's xmlNodeGetContent.
    return "".join(node.itertext())


def node_lang(node, inherited=None):
    return node.get(XML_LANG) or inherited


def get_attr(node, name):
    """Attribute lookup by local name, namespace-independent."""
    value = node.get(name)
    if value is not None:
        return value
    for key, value in node.attrib.items():
        if key.startswith("{") and key.split("}", 1)[1] == name:
            return value
    return None


def parse_int(value, default=0):
    try:
        return int(normalize_text(value))
    except (TypeError, ValueError):
        return default
