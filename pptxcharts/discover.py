"""Discovery of charts on slides and of the workbooks that feed them."""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from . import rels
from .opc import PartNotFoundError


class PartReader(Protocol):
    def list_parts(self) -> list[str]: ...

    def read_part(self, name: str) -> bytes: ...


@dataclass(frozen=True)
class ChartRef:
    """A chart part referenced from a slide."""

    slide_path: str
    chart_path: str


@dataclass(frozen=True)
class EmbeddedChart:
    """A chart whose data lives in a workbook embedded in the package."""

    slide_path: str
    chart_path: str
    workbook_path: str


class SkipReason(str, Enum):
    """Why a chart was not treated as an embedded-workbook chart."""

    LINKED = "linked"
    RELS_MISSING = "rels_missing"
    WORKBOOK_NOT_FOUND = "workbook_not_found"
    UNSUPPORTED = "unsupported_target"


@dataclass(frozen=True)
class SkippedChart:
    """A chart that was left out, with the reason."""

    slide_path: str
    chart_path: str
    reason: SkipReason
    target: str = ""
    rels_path: str = ""


_SLIDE_PATTERN = re.compile(r"ppt/slides/slide[^/]*\.xml")


def _rels_path(part: str) -> str:
    return posixpath.join(posixpath.dirname(part), "_rels", posixpath.basename(part) + ".rels")


def _is_workbook_candidate(rel: rels.Relationship) -> bool:
    if rel.target_mode == "External":
        return True
    if rel.type.endswith("/package"):
        return True
    return rel.target.lower().endswith(".xlsx")


def discover_chart_refs(pkg: PartReader) -> list[ChartRef]:
    """Charts referenced by slides, in slide order and then relationship id order."""
    slides = sorted(part for part in pkg.list_parts() if _SLIDE_PATTERN.fullmatch(part))
    refs: list[ChartRef] = []
    for slide in slides:
        try:
            data = pkg.read_part(_rels_path(slide))
        except PartNotFoundError:
            continue
        parsed = rels.parse(data)
        for rel_id in sorted(parsed.by_id):
            rel = parsed.by_id[rel_id]
            if not rel.type.endswith("/chart") or rel.target_mode == "External":
                continue
            refs.append(ChartRef(slide, rels.resolve_target(slide, rel.target)))
    return refs


def discover_embedded_charts(
    pkg: PartReader,
) -> tuple[list[EmbeddedChart], list[SkippedChart]]:
    """Split the charts on slides into those with embedded workbooks and skipped ones."""
    embedded: list[EmbeddedChart] = []
    skipped: list[SkippedChart] = []

    for ref in discover_chart_refs(pkg):
        rels_path = _rels_path(ref.chart_path)
        try:
            data = pkg.read_part(rels_path)
        except PartNotFoundError:
            skipped.append(
                SkippedChart(
                    ref.slide_path, ref.chart_path, SkipReason.RELS_MISSING, rels_path=rels_path
                )
            )
            continue

        parsed = rels.parse(data)
        embedded_path = ""
        linked_target = ""
        unsupported_target = ""
        found_workbook_rel = False
        for rel_id in sorted(parsed.by_id):
            rel = parsed.by_id[rel_id]
            if not _is_workbook_candidate(rel):
                continue
            found_workbook_rel = True
            if rel.target_mode == "External":
                linked_target = linked_target or rel.target
                continue
            target = rels.resolve_target(ref.chart_path, rel.target)
            if target.startswith("ppt/embeddings/") and target.lower().endswith(".xlsx"):
                embedded_path = embedded_path or target
                continue
            unsupported_target = unsupported_target or target

        if linked_target:
            skipped.append(
                SkippedChart(ref.slide_path, ref.chart_path, SkipReason.LINKED, linked_target)
            )
        elif unsupported_target:
            skipped.append(
                SkippedChart(
                    ref.slide_path, ref.chart_path, SkipReason.UNSUPPORTED, unsupported_target
                )
            )
        elif embedded_path:
            embedded.append(EmbeddedChart(ref.slide_path, ref.chart_path, embedded_path))
        elif not found_workbook_rel:
            skipped.append(
                SkippedChart(ref.slide_path, ref.chart_path, SkipReason.WORKBOOK_NOT_FOUND)
            )

    return embedded, skipped