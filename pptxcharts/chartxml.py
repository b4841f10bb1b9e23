"""Extraction of chart type, series formulas and summary details from chart XML."""

from __future__ import annotations

from dataclasses import dataclass, field
from xml.parsers import expat

KIND_CATEGORIES = "categories"
KIND_VALUES = "values"
KIND_SERIES_NAME = "seriesName"

_PLOT_TYPES = {
    "barChart": "bar",
    "lineChart": "line",
    "pieChart": "pie",
    "areaChart": "area",
}

# An event is ("start", local_name, [(attr_local, value), ...]),
# ("end", local_name, []) or ("text", "", text).
_Event = tuple


def _local(name: str) -> str:
    return name.rsplit(":", 1)[-1]


def _xml_events(data: bytes | str, context: str) -> list[_Event]:
    """Tokenise an XML document into start, end and text events.

    Prefixes are stripped from element and attribute names. Raises ValueError
    prefixed with ``context`` when the document is malformed.
    """
    if not data.strip():
        return []

    events: list[_Event] = []

    def on_start(name: str, attrs: dict[str, str]) -> None:
        events.append(("start", _local(name), [(_local(k), v) for k, v in attrs.items()]))

    def on_end(name: str) -> None:
        events.append(("end", _local(name), []))

    def on_text(text: str) -> None:
        events.append(("text", "", text))

    parser = expat.ParserCreate()
    parser.buffer_text = True
    parser.StartElementHandler = on_start
    parser.EndElementHandler = on_end
    parser.CharacterDataHandler = on_text
    try:
        parser.Parse(data, True)
    except expat.ExpatError as exc:
        raise ValueError(f"{context}: {exc}") from exc
    return events


@dataclass(frozen=True)
class Formula:
    """A cell reference formula bound to one part of a series."""

    kind: str
    series_index: int
    formula: str


@dataclass
class ParsedChart:
    """Chart type and the series formulas found in a chart part."""

    chart_type: str = "unknown"
    formulas: list[Formula] = field(default_factory=list)


@dataclass
class ChartInfo:
    """Summary of a chart part: type, number of series and title."""

    chart_type: str = "unknown"
    series_count: int = 0
    title: str = ""


def update_chart_type(current: str, next_type: str) -> str:
    """Combine the chart type seen so far with a newly seen plot type."""
    if current == "unknown":
        return next_type
    if current == next_type or current == "mixed":
        return current
    return "mixed"


def is_other_chart(name: str) -> bool:
    """Whether an element name is a plot type other than bar, line, pie or area."""
    if name in _PLOT_TYPES:
        return False
    return name.endswith("Chart")


def _formula_kind(cat_depth: int, val_depth: int, tx_depth: int) -> str:
    if cat_depth > 0:
        return KIND_CATEGORIES
    if val_depth > 0:
        return KIND_VALUES
    if tx_depth > 0:
        return KIND_SERIES_NAME
    return ""


def parse_chart(data: bytes | str) -> ParsedChart:
    """Read the chart type and the category, value and name formulas of each series."""
    out = ParsedChart()
    plot_depth = dict.fromkeys(_PLOT_TYPES, 0)

    series_index = -1
    in_series = False
    cat_depth = val_depth = tx_depth = 0

    in_formula = False
    formula_kind = ""
    formula_series = -1
    buf: list[str] = []

    for event, name, payload in _xml_events(data, "parse chart xml"):
        if event == "start":
            if name in _PLOT_TYPES:
                plot_depth[name] += 1
                out.chart_type = update_chart_type(out.chart_type, _PLOT_TYPES[name])
            elif is_other_chart(name):
                out.chart_type = update_chart_type(out.chart_type, "other")
            elif name == "ser":
                if sum(plot_depth.values()) > 0:
                    series_index += 1
                    in_series = True
            elif name == "cat":
                if in_series:
                    cat_depth += 1
            elif name == "val":
                if in_series:
                    val_depth += 1
            elif name == "tx":
                if in_series:
                    tx_depth += 1
            elif name == "f" and in_series:
                kind = _formula_kind(cat_depth, val_depth, tx_depth)
                if kind:
                    in_formula = True
                    formula_kind = kind
                    formula_series = series_index
                    buf = []
        elif event == "end":
            if name in _PLOT_TYPES:
                plot_depth[name] = max(plot_depth[name] - 1, 0)
            elif name == "ser":
                in_series = False
                cat_depth = val_depth = tx_depth = 0
                in_formula = False
                formula_kind = ""
                formula_series = -1
                buf = []
            elif name == "cat":
                cat_depth = max(cat_depth - 1, 0)
            elif name == "val":
                val_depth = max(val_depth - 1, 0)
            elif name == "tx":
                tx_depth = max(tx_depth - 1, 0)
            elif name == "f" and in_formula:
                text = "".join(buf).strip()
                if text:
                    out.formulas.append(Formula(formula_kind, formula_series, text))
                in_formula = False
                formula_kind = ""
                formula_series = -1
                buf = []
        elif in_formula:
            buf.append(payload)

    return out


def parse_info(data: bytes | str) -> ChartInfo:
    """Read the chart type, the number of series and the first title text."""
    info = ChartInfo()
    plot_depth = dict.fromkeys(_PLOT_TYPES, 0)
    title_depth = 0
    in_title_text = False
    title_set = False
    buf: list[str] = []

    for event, name, payload in _xml_events(data, "parse chart xml"):
        if event == "start":
            if name in _PLOT_TYPES:
                plot_depth[name] += 1
                info.chart_type = update_chart_type(info.chart_type, _PLOT_TYPES[name])
            elif is_other_chart(name):
                info.chart_type = update_chart_type(info.chart_type, "other")
            elif name == "ser":
                if any(depth > 0 for depth in plot_depth.values()):
                    info.series_count += 1
            elif name == "title":
                title_depth += 1
            elif name in ("t", "v"):
                if title_depth > 0 and not title_set:
                    in_title_text = True
                    buf = []
        elif event == "end":
            if name in _PLOT_TYPES:
                plot_depth[name] = max(plot_depth[name] - 1, 0)
            elif name == "title":
                title_depth = max(title_depth - 1, 0)
            elif name in ("t", "v") and in_title_text:
                text = "".join(buf).strip()
                if text and not title_set:
                    info.title = text
                    title_set = True
                in_title_text = False
                buf = []
        elif in_title_text:
            buf.append(payload)

    return info