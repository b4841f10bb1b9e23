"""Checks run on staged chart updates before they are committed."""

from __future__ import annotations

import io
import posixpath
import zipfile
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from xml.parsers import expat

from . import rels
from .cachecheck import CODE_MIX_SECONDARY_AXIS_INVALID, CacheCheckError, check_chart_caches
from .chartxml import _xml_events
from .opc import OoxmlError
from .overlay import Overlay, StagingOverlay

CODE_UNEXPECTED_PART_ADDED = "POSTFLIGHT_UNEXPECTED_PART_ADDED"
CODE_XML_MALFORMED = "POSTFLIGHT_XML_MALFORMED"
CODE_XLSX_SHAREDSTRINGS_DETECTED = "POSTFLIGHT_XLSX_SHAREDSTRINGS_DETECTED"
CODE_REL_TARGET_MISSING = "POSTFLIGHT_REL_TARGET_MISSING"
CODE_CHART_CACHE_INVALID = "POSTFLIGHT_CHART_CACHE_INVALID"
CODE_XLSX_CELL_TYPE_MISMATCH = "POSTFLIGHT_XLSX_CELL_TYPE_MISMATCH"

_MESSAGES = {
    CODE_UNEXPECTED_PART_ADDED: "Unexpected part added during chart update",
    CODE_XML_MALFORMED: "Malformed XML detected after chart update",
    CODE_XLSX_SHAREDSTRINGS_DETECTED: "Embedded workbook contains sharedStrings.xml",
    CODE_REL_TARGET_MISSING: "Relationship target missing after chart update",
    CODE_CHART_CACHE_INVALID: "Chart cache validation failed",
    CODE_XLSX_CELL_TYPE_MISMATCH: "Worksheet uses unsupported shared string cell type",
    CODE_MIX_SECONDARY_AXIS_INVALID: "Mixed chart secondary axis validation failed",
}

# Errors an overlay may raise when a part cannot be read or looked up.
_ACCESS_ERRORS = (OoxmlError, OSError, LookupError, ValueError)

AlertSink = Callable[[str, str, dict[str, str]], None]


class Mode(str, Enum):
    """How strictly a chart update is applied."""

    STRICT = "Strict"
    BEST_EFFORT = "BestEffort"


@dataclass
class ValidateContext:
    """Where a validation runs and with which settings."""

    chart_path: str = ""
    slide_path: str = ""
    workbook_path: str = ""
    mode: Mode | str = ""
    cache_sync_enabled: bool = False
    missing_numeric_policy: int = 0


@dataclass
class Document:
    """The overlay under validation and an optional alert sink."""

    overlay: Overlay | None = None
    emit_alert: AlertSink | None = None


class PostflightError(Exception):
    """A postflight check failed; ``code`` names the check."""

    def __init__(self, code: str, cause: BaseException | None = None) -> None:
        super().__init__(str(cause) if cause is not None else f"postflight error: {code}")
        self.code = code
        self.__cause__ = cause


def message_for_code(code: str) -> str:
    """Human-readable summary for an alert code."""
    return _MESSAGES.get(code, "Postflight validation failed")


def wrap_op(op: str, err: BaseException | None) -> Exception | None:
    """Prefix an error with an operation name, keeping the original as the cause."""
    if err is None:
        return None
    wrapped = RuntimeError(f"{op}: {err}")
    wrapped.__cause__ = err
    return wrapped


class _SharedStringCell(Exception):
    def __init__(self, cell_ref: str) -> None:
        super().__init__(cell_ref)
        self.cell_ref = cell_ref


def _scan_worksheet(data: bytes) -> None:
    """Raise _SharedStringCell at the first ``t="s"`` cell, ValueError if malformed."""
    if not data.strip():
        return

    def on_start(name: str, attrs: dict[str, str]) -> None:
        if name.rsplit(":", 1)[-1] != "c":
            return
        cell_type = ""
        cell_ref = ""
        for key, value in attrs.items():
            local = key.rsplit(":", 1)[-1]
            if local == "t":
                cell_type = value
            elif local == "r":
                cell_ref = value
        if cell_type == "s":
            raise _SharedStringCell(cell_ref)

    parser = expat.ParserCreate()
    parser.StartElementHandler = on_start
    try:
        parser.Parse(data, True)
    except expat.ExpatError as exc:
        raise ValueError(str(exc)) from exc


def _chart_rels_path(chart_path: str) -> str:
    return posixpath.join(
        posixpath.dirname(chart_path), "_rels", posixpath.basename(chart_path) + ".rels"
    )


def _resolve_rel_target(base_part: str, rel_target: str) -> str:
    if not rel_target:
        return ""
    if rel_target.startswith("/"):
        return rel_target.lstrip("/")
    return rels.resolve_target(base_part, rel_target)


def _open_zip(data: bytes) -> zipfile.ZipFile:
    return zipfile.ZipFile(io.BytesIO(data))


class PostflightValidator:
    """Validates the parts a staging overlay has touched."""

    def __init__(self, doc: Document | None) -> None:
        self._doc = doc
        self._overlay = doc.overlay if doc is not None else None

    def validate_chart_stage(self, ctx: ValidateContext, stage: StagingOverlay) -> None:
        """Run every check on the touched parts; raise PostflightError on the first failure."""
        if stage is None:
            raise ValueError("postflight: stage is nil")
        if self._overlay is None:
            raise ValueError("postflight: overlay not initialized")

        touched = stage.list_touched()
        if not touched:
            return

        self._check_unexpected_parts(ctx, touched)

        touched_charts: list[str] = []
        for part in touched:
            if part.startswith("ppt/charts/") and part.endswith(".xml"):
                self._check_well_formed_xml(ctx, stage, part)
                touched_charts.append(part)

        for part in touched:
            if part.startswith("ppt/embeddings/") and part.lower().endswith(".xlsx"):
                self._check_shared_strings(ctx, stage, part)
                self._check_worksheet_cell_types(ctx, stage, part)

        if ctx.cache_sync_enabled:
            for chart_path in touched_charts:
                self._check_chart_caches(ctx, stage, chart_path)

        for chart_path in touched_charts:
            self.check_relationship_targets(ctx, stage, chart_path)

    def check_relationship_targets(
        self, ctx: ValidateContext, stage: StagingOverlay, chart_path: str
    ) -> None:
        """Require every internal target of the chart's relationships to exist in the stage view."""
        rel_path = _chart_rels_path(chart_path)
        extra = {"partPath": rel_path}
        try:
            has_rel = stage.has(rel_path)
        except _ACCESS_ERRORS as exc:
            self._fail(CODE_REL_TARGET_MISSING, f"check rels {rel_path!r}: {exc}", ctx, extra, exc)
        if not has_rel:
            return
        try:
            data = stage.get(rel_path)
        except _ACCESS_ERRORS as exc:
            self._fail(CODE_REL_TARGET_MISSING, f"read rels {rel_path!r}: {exc}", ctx, extra, exc)
        try:
            parsed = rels.parse(data)
        except ValueError as exc:
            self._fail(CODE_REL_TARGET_MISSING, f"parse rels {rel_path!r}: {exc}", ctx, extra, exc)

        for rel_id in sorted(parsed.by_id):
            rel = parsed.by_id[rel_id]
            if rel.target_mode == "External":
                continue
            target = _resolve_rel_target(chart_path, rel.target)
            if not target:
                continue
            target_extra = {"partPath": rel_path, "target": target}
            try:
                exists = stage.has(target)
            except _ACCESS_ERRORS as exc:
                self._fail(
                    CODE_REL_TARGET_MISSING,
                    f"check rel target {target!r}: {exc}",
                    ctx,
                    target_extra,
                    exc,
                )
            if not exists:
                self._fail(
                    CODE_REL_TARGET_MISSING, f"missing rel target {target!r}", ctx, target_extra
                )

    def _check_unexpected_parts(self, ctx: ValidateContext, touched: list[str]) -> None:
        for part in touched:
            extra = {"partPath": part}
            try:
                exists = self._overlay.has_baseline(part)
            except _ACCESS_ERRORS as exc:
                self._fail(
                    CODE_UNEXPECTED_PART_ADDED,
                    f"check baseline for {part!r}: {exc}",
                    ctx,
                    extra,
                    exc,
                )
            if not exists:
                self._fail(CODE_UNEXPECTED_PART_ADDED, f"unexpected new part {part!r}", ctx, extra)

    def _check_well_formed_xml(self, ctx: ValidateContext, stage: StagingOverlay, part: str) -> None:
        extra = {"partPath": part}
        try:
            data = stage.get(part)
        except _ACCESS_ERRORS as exc:
            self._fail(CODE_XML_MALFORMED, f"read {part!r}: {exc}", ctx, extra, exc)
        try:
            _xml_events(data, "parse xml")
        except ValueError as exc:
            self._fail(CODE_XML_MALFORMED, f"malformed xml {part!r}: {exc}", ctx, extra, exc)

    def _read_workbook(
        self, code: str, ctx: ValidateContext, stage: StagingOverlay, workbook_path: str
    ) -> zipfile.ZipFile:
        extra = {"partPath": workbook_path, "workbookPath": workbook_path}
        try:
            data = stage.get(workbook_path)
        except _ACCESS_ERRORS as exc:
            self._fail(code, f"read workbook {workbook_path!r}: {exc}", ctx, extra, exc)
        try:
            return _open_zip(data)
        except (zipfile.BadZipFile, OSError, ValueError) as exc:
            self._fail(code, f"open workbook {workbook_path!r}: {exc}", ctx, extra, exc)

    def _check_shared_strings(
        self, ctx: ValidateContext, stage: StagingOverlay, workbook_path: str
    ) -> None:
        code = CODE_XLSX_SHAREDSTRINGS_DETECTED
        with self._read_workbook(code, ctx, stage, workbook_path) as workbook:
            names = workbook.namelist()
        if "xl/sharedStrings.xml" in names:
            self._fail(
                code,
                f"workbook {workbook_path!r} contains sharedStrings.xml",
                ctx,
                {"partPath": workbook_path, "workbookPath": workbook_path},
            )

    def _check_worksheet_cell_types(
        self, ctx: ValidateContext, stage: StagingOverlay, workbook_path: str
    ) -> None:
        with self._read_workbook(CODE_XML_MALFORMED, ctx, stage, workbook_path) as workbook:
            for info in workbook.infolist():
                name = info.filename
                if not (name.startswith("xl/worksheets/") and name.endswith(".xml")):
                    continue
                extra = {"partPath": name, "workbookPath": workbook_path, "sheetPath": name}
                try:
                    data = workbook.read(info)
                except (zipfile.BadZipFile, OSError, RuntimeError, NotImplementedError) as exc:
                    self._fail(
                        CODE_XML_MALFORMED, f"read worksheet {name!r}: {exc}", ctx, extra, exc
                    )
                try:
                    _scan_worksheet(data)
                except _SharedStringCell as hit:
                    self._fail(
                        CODE_XLSX_CELL_TYPE_MISMATCH,
                        f"worksheet {name!r} contains shared string cell",
                        ctx,
                        {**extra, "cellRef": hit.cell_ref},
                    )
                except ValueError as exc:
                    self._fail(
                        CODE_XML_MALFORMED, f"parse worksheet {name!r}: {exc}", ctx, extra, exc
                    )

    def _check_chart_caches(
        self, ctx: ValidateContext, stage: StagingOverlay, chart_path: str
    ) -> None:
        extra = {"partPath": chart_path}
        try:
            data = stage.get(chart_path)
        except _ACCESS_ERRORS as exc:
            self._fail(CODE_CHART_CACHE_INVALID, f"read chart {chart_path!r}: {exc}", ctx, extra, exc)
        try:
            check_chart_caches(data, ctx.missing_numeric_policy)
        except CacheCheckError as exc:
            if exc.code == CODE_MIX_SECONDARY_AXIS_INVALID:
                cause = wrap_op("postflight: mixed-axis", exc)
                self._raise(exc.code, cause, ctx, extra)
            if exc.series_index is not None and exc.series_index >= 0:
                extra["seriesIndex"] = str(exc.series_index)
            self._raise(exc.code, exc, ctx, extra)

    def _fail(
        self,
        code: str,
        message: str,
        ctx: ValidateContext,
        extra: dict[str, str],
        cause: BaseException | None = None,
    ):
        error = RuntimeError(message)
        if cause is not None:
            error.__cause__ = cause
        self._raise(code, error, ctx, extra)

    def _raise(
        self, code: str, cause: BaseException, ctx: ValidateContext, extra: dict[str, str]
    ):
        self._emit_alert(code, message_for_code(code), ctx, extra)
        raise PostflightError(code, cause)

    def _emit_alert(
        self, code: str, message: str, ctx: ValidateContext, extra: dict[str, str]
    ) -> None:
        if self._doc is None:
            return
        out: dict[str, str] = {}
        if ctx.chart_path:
            out["chartPath"] = ctx.chart_path
        if ctx.slide_path:
            out["slidePath"] = ctx.slide_path
        if ctx.workbook_path:
            out["workbookPath"] = ctx.workbook_path
        if ctx.mode:
            out["mode"] = ctx.mode.value if isinstance(ctx.mode, Mode) else str(ctx.mode)
        out["stage"] = "postflight"
        out.update(extra)
        if self._doc.emit_alert is None:
            return
        self._doc.emit_alert(code, message, out)