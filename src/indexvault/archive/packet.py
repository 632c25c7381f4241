"""Archive packet: keyed metadata plus one opaque payload."""

from dataclasses import dataclass, field
from urllib.parse import quote

from indexvault.constants import ALIAS_ID, MAPPING_ID, SETTINGS_TYPE

# Order in which meta keys form an archive entry name
ENTRY_KEYS = ("index", "type", "id", "field")


@dataclass
class ArchivePacket:
    """Atomic output unit written to an archive session.

    Every packet carries ``index`` and ``type``. Document packets additionally
    carry ``id`` and ``field``; mapping and alias packets carry an ``id`` of
    ``_mapping`` or ``_alias``; settings packets carry no ``id``.
    """

    meta: dict[str, str] = field(default_factory=dict)
    payload: str = ""

    def __post_init__(self) -> None:
        """Validate the index/type invariant."""
        if not self.meta.get("index") or not self.meta.get("type"):
            raise ValueError(f"packet requires index and type, got {self.meta}")

    @classmethod
    def settings(cls, index: str, payload: str) -> "ArchivePacket":
        return cls(meta={"index": index, "type": SETTINGS_TYPE}, payload=payload)

    @classmethod
    def mapping(cls, index: str, type_name: str, payload: str) -> "ArchivePacket":
        return cls(meta={"index": index, "type": type_name, "id": MAPPING_ID}, payload=payload)

    @classmethod
    def alias(cls, index: str, alias: str, payload: str) -> "ArchivePacket":
        return cls(meta={"index": index, "type": alias, "id": ALIAS_ID}, payload=payload)

    @classmethod
    def document(
        cls, index: str, type_name: str, doc_id: str, field_name: str, payload: str
    ) -> "ArchivePacket":
        return cls(
            meta={"index": index, "type": type_name, "id": doc_id, "field": field_name},
            payload=payload,
        )

    @property
    def index(self) -> str:
        return self.meta["index"]

    @property
    def type(self) -> str:
        return self.meta["type"]

    @property
    def id(self) -> str | None:
        return self.meta.get("id")

    @property
    def field(self) -> str | None:
        return self.meta.get("field")

    @property
    def is_metadata(self) -> bool:
        """True for settings, mapping and alias packets."""
        return self.type == SETTINGS_TYPE or self.id in (MAPPING_ID, ALIAS_ID)

    def entry_name(self, encode: bool = False) -> str:
        """Render the archive entry name ``index/type[/id[/field]]``.

        Args:
            encode: Percent-encode every segment (keeps '/' inside names safe)

        Returns:
            Entry name for container formats
        """
        parts = [self.meta[key] for key in ENTRY_KEYS if self.meta.get(key)]
        if encode:
            parts = [quote(part, safe="") for part in parts]
        return "/".join(parts)
