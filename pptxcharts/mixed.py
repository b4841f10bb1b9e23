"""Parsing of combined bar and line charts, their plots, series and axis groups."""

from __future__ import annotations

from dataclasses import dataclass, field

from .chartxml import (
    KIND_CATEGORIES,
    KIND_SERIES_NAME,
    KIND_VALUES,
    Formula,
    _xml_events,
)


@dataclass
class MixedSeries:
    """A series of a mixed chart, with its plot and axis role."""

    index: int
    plot_type: str
    plot_index: int
    axis: str = ""
    formulas: list[Formula] = field(default_factory=list)


@dataclass(frozen=True)
class AxisGroup:
    """A category axis paired with the value axis it crosses."""

    cat_ax_id: str
    val_ax_id: str
    val_axis_pos: str = ""
    val_has_major_gridlines: bool = False
    val_has_minor_gridlines: bool = False


@dataclass
class MixedPlot:
    """A plot of a mixed chart with its sorted axis ids and series indices."""

    plot_type: str
    axis_ids: list[str] = field(default_factory=list)
    series_indices: list[int] = field(default_factory=list)


@dataclass
class MixedChart:
    """Series, plots and axis groups of a mixed bar and line chart."""

    series: list[MixedSeries] = field(default_factory=list)
    plots: list[MixedPlot] = field(default_factory=list)
    axis_groups: list[AxisGroup] = field(default_factory=list)


@dataclass
class _PlotState:
    plot_type: str
    axis_ids: set[str] = field(default_factory=set)
    series_indices: list[int] = field(default_factory=list)
    series_count: int = 0


@dataclass
class _AxisInfo:
    kind: str = ""
    id: str = ""
    cross: str = ""
    axis_pos: str = ""
    has_major_gridlines: bool = False
    has_minor_gridlines: bool = False


def _is_unsupported_plot(name: str) -> bool:
    if name in ("barChart", "lineChart"):
        return False
    return name.endswith("Chart")


def _val_attrs(attrs: list[tuple[str, str]]) -> list[str]:
    return [value for key, value in attrs if key == "val"]


def parse_mixed(data: bytes | str) -> MixedChart:
    """Parse a chart that combines exactly one kind of bar and one kind of line plot.

    Raises ValueError for malformed XML, other plot types, stacked groupings,
    or when the chart does not hold both bar and line plots.
    """
    out = MixedChart()
    plot_types: set[str] = set()
    plots: list[_PlotState] = []
    current_plot: int | None = None
    depth = {"barChart": 0, "lineChart": 0}

    axis_depth = 0
    axis_kind = ""
    current_axis = _AxisInfo()
    axes: list[_AxisInfo] = []

    series_index = -1
    ser_depth = 0
    current_series = -1
    cat_depth = val_depth = tx_depth = 0

    in_formula = False
    formula_kind = ""
    buf: list[str] = []

    for event, name, attrs in _xml_events(data, "parse mixed chart"):
        if event == "start":
            if name in depth:
                depth[name] += 1
                if depth[name] == 1:
                    plot_type = "bar" if name == "barChart" else "line"
                    plots.append(_PlotState(plot_type))
                    current_plot = len(plots) - 1
                    plot_types.add(plot_type)
            elif name in ("catAx", "valAx"):
                axis_depth += 1
                if axis_depth == 1:
                    axis_kind = "cat" if name == "catAx" else "val"
                    current_axis = _AxisInfo(kind=axis_kind)
            elif _is_unsupported_plot(name):
                raise ValueError(f'unsupported plot type "{name}"')

            if axis_depth > 0:
                if name == "axId":
                    for value in _val_attrs(attrs):
                        if not current_axis.id:
                            current_axis.id = value
                elif name == "crossAx":
                    for value in _val_attrs(attrs):
                        current_axis.cross = value
                elif name == "axisPos":
                    if axis_kind == "val":
                        for value in _val_attrs(attrs):
                            current_axis.axis_pos = value
                elif name == "majorGridlines":
                    if axis_kind == "val":
                        current_axis.has_major_gridlines = True
                elif name == "minorGridlines":
                    if axis_kind == "val":
                        current_axis.has_minor_gridlines = True

            if current_plot is not None:
                plot = plots[current_plot]
                if name == "grouping":
                    if any(v in ("stacked", "percentStacked") for v in _val_attrs(attrs)):
                        raise ValueError("stacked charts are unsupported")
                elif name == "axId":
                    plot.axis_ids.update(v for v in _val_attrs(attrs) if v)
                elif name == "ser":
                    if ser_depth == 0:
                        series_index += 1
                        out.series.append(
                            MixedSeries(series_index, plot.plot_type, plot.series_count)
                        )
                        plot.series_count += 1
                        current_series = len(out.series) - 1
                        plot.series_indices.append(series_index)
                    ser_depth += 1
                elif name == "cat":
                    if ser_depth > 0:
                        cat_depth += 1
                elif name == "val":
                    if ser_depth > 0:
                        val_depth += 1
                elif name == "tx":
                    if ser_depth > 0:
                        tx_depth += 1
                elif name == "f" and ser_depth > 0:
                    if cat_depth > 0:
                        kind = KIND_CATEGORIES
                    elif val_depth > 0:
                        kind = KIND_VALUES
                    elif tx_depth > 0:
                        kind = KIND_SERIES_NAME
                    else:
                        kind = ""
                    if kind and current_series >= 0:
                        in_formula = True
                        formula_kind = kind
                        buf = []
        elif event == "end":
            if name in depth:
                depth[name] = max(depth[name] - 1, 0)
                if depth["barChart"] == 0 and depth["lineChart"] == 0:
                    current_plot = None
            elif name in ("catAx", "valAx"):
                axis_depth = max(axis_depth - 1, 0)
                if axis_depth == 0:
                    if current_axis.id:
                        axes.append(current_axis)
                    axis_kind = ""
                    current_axis = _AxisInfo()
            elif name == "ser":
                ser_depth = max(ser_depth - 1, 0)
                if ser_depth == 0:
                    current_series = -1
                    cat_depth = val_depth = tx_depth = 0
                    in_formula = False
                    formula_kind = ""
                    buf = []
            elif name == "cat":
                cat_depth = max(cat_depth - 1, 0)
            elif name == "val":
                val_depth = max(val_depth - 1, 0)
            elif name == "tx":
                tx_depth = max(tx_depth - 1, 0)
            elif name == "f" and in_formula and current_series >= 0:
                text = "".join(buf).strip()
                if text:
                    series = out.series[current_series]
                    series.formulas.append(Formula(formula_kind, series.index, text))
                in_formula = False
                formula_kind = ""
                buf = []
        elif in_formula:
            buf.append(attrs)

    if not plot_types:
        raise ValueError("no supported plot types found")
    if plot_types != {"bar", "line"}:
        raise ValueError("unsupported mixed plot types")

    _assign_axes(out.series, plots)
    out.plots = [
        MixedPlot(p.plot_type, sorted(p.axis_ids), list(p.series_indices)) for p in plots
    ]
    out.axis_groups = _build_axis_groups(axes)
    return out


def _assign_axes(series: list[MixedSeries], plots: list[_PlotState]) -> None:
    if not plots or not series:
        return
    primary_ids = plots[0].axis_ids
    for plot in plots:
        role = "primary"
        if primary_ids and plot.axis_ids and primary_ids != plot.axis_ids:
            role = "secondary"
        for idx in plot.series_indices:
            if 0 <= idx < len(series):
                series[idx].axis = role


def _build_axis_groups(axes: list[_AxisInfo]) -> list[AxisGroup]:
    cat_axes: dict[str, _AxisInfo] = {}
    val_axes: dict[str, _AxisInfo] = {}
    for axis in axes:
        if not axis.id:
            continue
        if axis.kind == "cat":
            cat_axes[axis.id] = axis
        elif axis.kind == "val":
            val_axes[axis.id] = axis

    groups: dict[tuple[str, str], AxisGroup] = {}
    for cat in cat_axes.values():
        if not cat.cross:
            continue
        val = val_axes.get(cat.cross)
        if val is None or val.cross != cat.id:
            continue
        key = (cat.id, val.id)
        if key in groups:
            continue
        groups[key] = AxisGroup(
            cat_ax_id=cat.id,
            val_ax_id=val.id,
            val_axis_pos=val.axis_pos,
            val_has_major_gridlines=val.has_major_gridlines,
            val_has_minor_gridlines=val.has_minor_gridlines,
        )
    return [groups[key] for key in sorted(groups)]