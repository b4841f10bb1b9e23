"""Parsing of OPC relationship parts and resolution of their targets."""

from __future__ import annotations

import posixpath
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Relationship:
    """A single relationship entry from a ``.rels`` part."""

    id: str = ""
    type: str = ""
    target: str = ""
    target_mode: str = ""


@dataclass
class Rels:
    """Relationships of one part, keyed by relationship id."""

    by_id: dict[str, Relationship] = field(default_factory=dict)

    def resolve(self, rel_id: str) -> Relationship | None:
        """Return the relationship with the given id, or None."""
        return self.by_id.get(rel_id)


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def parse(data: bytes | str) -> Rels:
    """Parse a relationships part.

    Attribute names are matched case-insensitively; entries without an id
    are ignored. Raises ValueError when the XML is malformed.
    """
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        raise ValueError(f"parse rels: {exc}") from exc

    out = Rels()
    for element in root.iter():
        if _local_name(element.tag) != "Relationship":
            continue
        values: dict[str, str] = {}
        for key, value in element.attrib.items():
            values[_local_name(key).lower()] = value
        rel = Relationship(
            id=values.get("id", ""),
            type=values.get("type", ""),
            target=values.get("target", ""),
            target_mode=values.get("targetmode", ""),
        )
        if rel.id:
            out.by_id[rel.id] = rel
    return out


def resolve_target(base_part: str, rel_target: str) -> str:
    """Resolve a relationship target against the part that owns it.

    External targets must be handled by the caller.
    """
    if not rel_target:
        return ""
    clean_target = rel_target.lstrip("/")
    joined = posixpath.normpath(posixpath.join(posixpath.dirname(base_part), clean_target))
    return joined.lstrip("/")