"""
Entity models for a parsed widget manifest.

A Descriptor is built by the parser for one manifest element and handed to
the store, which writes it in a single transaction. Nothing here touches the
database.
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_ABI,
    DEFAULT_CATEGORY,
    DEFAULT_HW_ACCELERATION,
    DEFAULT_PERIOD,
    DEFAULT_SCRIPT,
    DEFAULT_TIMEOUT,
    SCHEMA_VERSION,
)


class Generation(str, Enum):
    """Product generation of the manifest format and its store."""

    LIVEBOX = "livebox"
    DYNAMICBOX = "dynamicbox"
    WIDGET = "widget"

    @property
    def root_tag(self) -> str:
        return "widget-application" if self is Generation.WIDGET else self.value

    @property
    def manifest_tags(self) -> tuple:
        """Element names installed as widgets; the bare generation name is also accepted."""
        return tuple(dict.fromkeys((self.root_tag, self.value)))

    @property
    def detail_tag(self) -> str:
        return "glancebar" if self is Generation.WIDGET else "pd"

    @property
    def db_file(self) -> str:
        return f".{self.value}.db"

    @property
    def schema_version(self) -> int:
        return SCHEMA_VERSION if self is Generation.WIDGET else 4

    @property
    def supports_watch(self) -> bool:
        return self is Generation.WIDGET


class BoxType(IntEnum):
    SCRIPT = 1
    FILE = 2
    TEXT = 3
    BUFFER = 4
    UIFW = 5


class DetailType(IntEnum):
    SCRIPT = 1
    TEXT = 2
    BUFFER = 3


class SizeType(IntEnum):
    S1x1 = 0x0001
    S2x1 = 0x0002
    S2x2 = 0x0004
    S4x1 = 0x0008
    S4x2 = 0x0010
    S4x3 = 0x0020
    S4x4 = 0x0040
    S4x5 = 0x0080
    S4x6 = 0x0100
    FULL = 0x0800
    EASY_1x1 = 0x1000
    EASY_3x1 = 0x2000
    EASY_3x3 = 0x4000


# Write order of box_size rows.
SIZE_TYPES = (
    SizeType.S1x1,
    SizeType.S2x1,
    SizeType.S2x2,
    SizeType.S4x1,
    SizeType.S4x2,
    SizeType.S4x3,
    SizeType.S4x4,
    SizeType.S4x5,
    SizeType.S4x6,
    SizeType.EASY_1x1,
    SizeType.EASY_3x1,
    SizeType.EASY_3x3,
    SizeType.FULL,
)


class SizeAttributes(BaseModel):
    """Per-size display options; defaults mirror a surface without overrides."""

    preview: Optional[str] = Field(default=None, description="Absolute preview image path.")
    touch_effect: bool = True
    need_frame: bool = False
    mouse_event: bool = False


class LocalizedLabel(BaseModel):
    lang: str
    name: Optional[str] = None
    icon: Optional[str] = None


class SettingOption(BaseModel):
    key: str
    value: str


class GroupBinding(BaseModel):
    """Cluster/category placement; options only exist with a context item."""

    cluster: str
    category: str
    ctx_item: Optional[str] = None
    options: List[SettingOption] = Field(default_factory=list)


class Descriptor(BaseModel):
    pkgid: str = Field(min_length=1, description="Package id, manifest attribute 'appid'.")

    secured: bool = False
    network: bool = False
    primary: bool = False
    nodisplay: bool = False
    pinup: bool = False
    direct_input: bool = False

    abi: str = DEFAULT_ABI
    auto_launch: Optional[str] = None
    name: Optional[str] = Field(default=None, description="Label without a language.")
    icon: Optional[str] = Field(default=None, description="Icon without a language.")
    libexec: Optional[str] = None
    timeout: int = DEFAULT_TIMEOUT
    period: str = DEFAULT_PERIOD
    script: str = DEFAULT_SCRIPT
    content: Optional[str] = None
    setup: Optional[str] = None
    uiapp: Optional[str] = None
    category: str = DEFAULT_CATEGORY
    count: int = Field(default=0, description="Max instance count; 0 means unlimited.")
    hw_acceleration: str = DEFAULT_HW_ACCELERATION

    box_type: BoxType = BoxType.FILE
    box_src: Optional[str] = None
    box_group: Optional[str] = None

    gbar_type: DetailType = DetailType.SCRIPT
    gbar_src: Optional[str] = None
    gbar_group: Optional[str] = None
    gbar_size: Optional[str] = None

    sizes: Dict[SizeType, SizeAttributes] = Field(default_factory=dict)
    i18n: List[LocalizedLabel] = Field(default_factory=list)
    groups: List[GroupBinding] = Field(default_factory=list)

    @property
    def size_list(self) -> int:
        mask = 0
        for size_type in self.sizes:
            mask |= int(size_type)
        return mask

    def label_for(self, lang: str) -> LocalizedLabel:
        """Return the label entry for ``lang`` (case-insensitive), adding it if new."""
        key = lang.lower()
        for label in self.i18n:
            if label.lang.lower() == key:
                return label
        label = LocalizedLabel(lang=lang)
        self.i18n.append(label)
        return label
