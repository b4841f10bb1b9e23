"""Rewriting of the string and number caches of chart series from workbook data."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from xml.parsers import expat


class RangeKind(str, Enum):
    """The part of a series that a cell range feeds."""

    CATEGORIES = "categories"
    VALUES = "values"
    SERIES_NAME = "seriesName"


@dataclass(frozen=True)
class Range:
    """A cell range that one part of one series depends on."""

    kind: RangeKind | str
    series_index: int
    sheet: str
    start_cell: str
    end_cell: str


@dataclass
class Dependencies:
    """The chart type and the ranges its series depend on."""

    chart_type: str
    ranges: list[Range] = field(default_factory=list)


class ChartCacheError(ValueError):
    """The chart caches could not be brought in line with the dependencies."""


ValueProvider = Callable[[RangeKind, str, str, str], Sequence[str]]

_TARGET_CHARTS = {
    "bar": "barChart",
    "line": "lineChart",
    "pie": "pieChart",
    "area": "areaChart",
}

_REF_NAMES = ("strRef", "numRef")
_CACHE_NAMES = ("strCache", "numCache")

_CACHE_FOR_KIND = {
    RangeKind.CATEGORIES: "strCache",
    RangeKind.VALUES: "numCache",
    RangeKind.SERIES_NAME: "strCache",
}


@dataclass
class _SeriesCache:
    data: dict[RangeKind, list[str]] = field(default_factory=dict)
    ref_seen: set[RangeKind] = field(default_factory=set)
    updated: set[RangeKind] = field(default_factory=set)


_LABELS = {
    RangeKind.CATEGORIES: "categories",
    RangeKind.VALUES: "values",
    RangeKind.SERIES_NAME: "series name",
}


def _build_series_data(deps: Dependencies, provider: ValueProvider) -> dict[int, _SeriesCache]:
    series: dict[int, _SeriesCache] = {}
    for rng in deps.ranges:
        if rng.series_index < 0:
            continue
        values = provider(rng.kind, rng.sheet, rng.start_cell, rng.end_cell)
        entry = series.setdefault(rng.series_index, _SeriesCache())
        try:
            kind = RangeKind(rng.kind)
        except ValueError:
            raise ChartCacheError(f"unsupported range kind {str(rng.kind)!r}") from None
        if kind in entry.data:
            raise ChartCacheError(
                f"duplicate {_LABELS[kind]} range for series {rng.series_index}"
            )
        if values is not None:
            entry.data[kind] = list(values)
    return series


def _has_data(series: dict[int, _SeriesCache], index: int, kind: RangeKind | None) -> bool:
    entry = series.get(index)
    return entry is not None and kind is not None and kind in entry.data


def _values(series: dict[int, _SeriesCache], index: int, kind: RangeKind) -> list[str]:
    entry = series.get(index)
    if entry is None:
        return []
    return entry.data.get(kind, [])


def _validate_series(series: dict[int, _SeriesCache], index: int) -> None:
    entry = series.get(index)
    if entry is None:
        return
    for kind, label in (
        (RangeKind.CATEGORIES, "category"),
        (RangeKind.VALUES, "values"),
        (RangeKind.SERIES_NAME, "series name"),
    ):
        if kind in entry.data and kind not in entry.ref_seen:
            raise ChartCacheError(f"missing {label} reference for series {index}")


def _validate_area_series(series: dict[int, _SeriesCache]) -> None:
    if not series:
        raise ChartCacheError("area chart requires categories and values")
    keys = sorted(series)
    base = series[keys[0]]
    if RangeKind.CATEGORIES not in base.data or RangeKind.VALUES not in base.data:
        raise ChartCacheError("area chart requires categories and values for each series")
    base_categories = base.data[RangeKind.CATEGORIES]
    for key in keys:
        entry = series[key]
        categories = entry.data.get(RangeKind.CATEGORIES)
        values = entry.data.get(RangeKind.VALUES)
        if categories is None or values is None:
            raise ChartCacheError("area chart requires categories and values for each series")
        if categories != base_categories:
            raise ChartCacheError("area chart categories must match across series")
        if len(values) != len(categories):
            raise ChartCacheError(f"area chart values length mismatch for series {key}")


def _ref_kind_for(ref_name: str, cat_depth: int, val_depth: int, tx_depth: int) -> RangeKind | None:
    if ref_name == "strRef":
        if cat_depth > 0:
            return RangeKind.CATEGORIES
        if tx_depth > 0:
            return RangeKind.SERIES_NAME
    elif ref_name == "numRef" and val_depth > 0:
        return RangeKind.VALUES
    return None


def _cache_matches_ref(kind: RangeKind, cache_name: str) -> bool:
    if kind is RangeKind.VALUES:
        return cache_name == "numCache"
    return cache_name == "strCache"


def _local(name: str) -> str:
    return name.rsplit(":", 1)[-1]


def _prefix(name: str) -> str:
    return name[: len(name) - len(_local(name))]


_TEXT_ESCAPES = {"&": "&amp;", "<": "&lt;", ">": "&gt;", "\r": "&#xD;"}
_ATTR_ESCAPES = {**_TEXT_ESCAPES, '"': "&quot;", "\n": "&#xA;", "\t": "&#x9;"}


def _escape(text: str, table: dict[str, str]) -> str:
    return "".join(table.get(ch, ch) for ch in text)


def _start_tag(name: str, attrs: Sequence[tuple[str, str]]) -> str:
    rendered = "".join(f' {key}="{_escape(value, _ATTR_ESCAPES)}"' for key, value in attrs)
    return f"<{name}{rendered}>"


def _tokenize(data: bytes | str) -> list[tuple]:
    if not data.strip():
        return []
    events: list[tuple] = []

    def on_decl(version, encoding, standalone):
        events.append(("decl", version or "1.0", standalone))

    def on_start(name, attrs):
        pairs = list(zip(attrs[0::2], attrs[1::2]))
        events.append(("start", name, pairs))

    def on_end(name):
        events.append(("end", name, None))

    def on_text(text):
        events.append(("text", "", text))

    def on_comment(text):
        events.append(("comment", "", text))

    def on_pi(target, pi_data):
        events.append(("pi", target, pi_data))

    parser = expat.ParserCreate()
    parser.buffer_text = True
    parser.ordered_attributes = True
    parser.XmlDeclHandler = on_decl
    parser.StartElementHandler = on_start
    parser.EndElementHandler = on_end
    parser.CharacterDataHandler = on_text
    parser.CommentHandler = on_comment
    parser.ProcessingInstructionHandler = on_pi
    try:
        parser.Parse(data, True)
    except expat.ExpatError as exc:
        raise ChartCacheError(f"parse chart xml: {exc}") from exc
    return events


def _write_cache(
    out: list[str],
    name: str,
    attrs: Sequence[tuple[str, str]],
    values: Sequence[str],
    prefix: str,
) -> None:
    out.append(_start_tag(name, attrs))
    out.append(f'<{prefix}ptCount val="{len(values)}"></{prefix}ptCount>')
    for idx, value in enumerate(values):
        out.append(
            f'<{prefix}pt idx="{idx}"><{prefix}v>{_escape(value, _TEXT_ESCAPES)}'
            f"</{prefix}v></{prefix}pt>"
        )
    out.append(f"</{name}>")


def sync_caches(chart_xml: bytes | str, deps: Dependencies, provider: ValueProvider) -> bytes:
    """Return the chart XML with the series caches replaced by the provider's values.

    Caches under each referenced ``strRef``/``numRef`` of the chart's plot are
    rewritten, and inserted where missing. Raises ChartCacheError when the
    dependencies do not fit the chart.
    """
    if deps.chart_type not in _TARGET_CHARTS:
        raise ChartCacheError(f"unsupported chart type {deps.chart_type!r}")

    series = _build_series_data(deps, provider)

    if deps.chart_type == "pie":
        if len(series) != 1:
            raise ChartCacheError(f"{deps.chart_type} chart requires exactly one series")
        entry = series.get(0)
        if entry is None:
            raise ChartCacheError(f"{deps.chart_type} chart series index must be 0")
        if RangeKind.CATEGORIES not in entry.data or RangeKind.VALUES not in entry.data:
            raise ChartCacheError(f"{deps.chart_type} chart requires categories and values")
    if deps.chart_type == "area":
        _validate_area_series(series)

    target_chart = _TARGET_CHARTS[deps.chart_type]
    out: list[str] = []

    found_target = False
    in_target = False
    target_name = ""
    prefix = ""

    current_series = -1
    series_total = 0
    series_seen: set[int] = set()
    depths = {"cat": 0, "val": 0, "tx": 0}

    in_ref = False
    ref_kind: RangeKind | None = None
    ref_name = ""
    ref_has_cache = False
    skip_depth = 0

    for event, name, payload in _tokenize(chart_xml):
        if skip_depth:
            if event == "start":
                skip_depth += 1
            elif event == "end":
                skip_depth -= 1
            continue

        if event == "start":
            local = _local(name)
            if local == target_chart and not found_target:
                found_target = True
                in_target = True
                target_name = local
                prefix = _prefix(name)
            if in_target and local == "ser":
                current_series += 1
                series_total += 1
                series_seen.add(current_series)
            if in_target and current_series >= 0:
                if local in depths:
                    depths[local] += 1
                if local in _REF_NAMES:
                    kind = _ref_kind_for(local, depths["cat"], depths["val"], depths["tx"])
                    if _has_data(series, current_series, kind):
                        series[current_series].ref_seen.add(kind)
                        in_ref = True
                        ref_kind = kind
                        ref_name = local
                        ref_has_cache = False
            if (
                in_target
                and in_ref
                and local in _CACHE_NAMES
                and _cache_matches_ref(ref_kind, local)
            ):
                _write_cache(out, name, payload, _values(series, current_series, ref_kind), prefix)
                ref_has_cache = True
                series[current_series].updated.add(ref_kind)
                skip_depth = 1
                continue
            out.append(_start_tag(name, payload))
        elif event == "end":
            local = _local(name)
            if in_target and current_series >= 0:
                if local in depths and depths[local] > 0:
                    depths[local] -= 1
                if in_ref and local == ref_name:
                    if not ref_has_cache:
                        values = _values(series, current_series, ref_kind)
                        if values or _has_data(series, current_series, ref_kind):
                            cache_name = prefix + _CACHE_FOR_KIND[ref_kind]
                            _write_cache(out, cache_name, (), values, prefix)
                            series[current_series].updated.add(ref_kind)
                    in_ref = False
                    ref_kind = None
                    ref_name = ""
                    ref_has_cache = False
            if in_target and local == "ser":
                _validate_series(series, current_series)
            if in_target and local == target_name:
                in_target = False
            out.append(f"</{name}>")
        elif event == "text":
            out.append(_escape(payload, _TEXT_ESCAPES))
        elif event == "comment":
            out.append(f"<!--{payload}-->")
        elif event == "pi":
            out.append(f"<?{name} {payload}?>" if payload else f"<?{name}?>")
        elif event == "decl":
            standalone = ""
            if payload == 1:
                standalone = ' standalone="yes"'
            elif payload == 0:
                standalone = ' standalone="no"'
            out.append(f'<?xml version="{name}" encoding="UTF-8"{standalone}?>\n')

    if not found_target:
        raise ChartCacheError(f"chart type {deps.chart_type!r} not found")
    if deps.chart_type == "pie" and series_total > 1:
        raise ChartCacheError(f"{deps.chart_type} chart requires exactly one series")
    if deps.chart_type == "area" and series_total != len(series):
        raise ChartCacheError("area chart requires dependencies for each series")
    for index in sorted(series):
        if index not in series_seen:
            raise ChartCacheError(f"chart series {index} not found")

    return "".join(out).encode("utf-8")