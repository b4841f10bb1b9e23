"""Consistency checks for the string and number caches stored in chart XML."""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass, field

from .chartxml import _xml_events
from .mixed import AxisGroup, MixedPlot, parse_mixed

CODE_CHART_CACHE_INVALID = "POSTFLIGHT_CHART_CACHE_INVALID"
CODE_MIX_SECONDARY_AXIS_INVALID = "POSTFLIGHT_MIX_SECONDARY_AXIS_INVALID"

MISSING_NUMERIC_EMPTY = 0
MISSING_NUMERIC_ZERO = 1


class CacheCheckError(ValueError):
    """A chart cache or mixed-chart axis layout is inconsistent.

    ``code`` names the kind of failure; ``series_index`` is the series the
    failure belongs to, when known.
    """

    def __init__(
        self,
        message: str,
        code: str = CODE_CHART_CACHE_INVALID,
        series_index: int | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.series_index = series_index


@dataclass
class _Cache:
    kind: str
    role: str
    series_index: int
    plot_type: str
    in_area: bool
    pt_count: int = 0
    pt_count_seen: bool = False
    pt_idx: set[int] = field(default_factory=set)
    pt_total: int = 0
    in_pt: bool = False
    pt_has_value: bool = False
    pt_value: str = ""
    in_value: bool = False
    buf: list[str] = field(default_factory=list)
    values: list[str] = field(default_factory=list)

    def error(self, message: str) -> CacheCheckError:
        index = self.series_index if self.series_index >= 0 else None
        return CacheCheckError(message, series_index=index)


def _parse_int(value: str) -> int:
    text = value.strip()
    body = text[1:] if text[:1] in ("+", "-") else text
    if not body or not all("0" <= ch <= "9" for ch in body):
        raise ValueError(f"invalid integer {value!r}")
    return int(text)


def _parses_as_float(text: str) -> bool:
    if "_" in text:
        return False
    try:
        number = float(text)
    except ValueError:
        if "p" not in text.lower():
            return False
        try:
            float.fromhex(text)
        except ValueError:
            return False
        return True
    if math.isinf(number) and text.lstrip("+-").lower() not in ("inf", "infinity"):
        return False
    return True


def validate_numeric_value(value: str, policy: int = MISSING_NUMERIC_EMPTY) -> None:
    """Reject a numeric cache value that is neither blank nor a number.

    With the zero policy any value is accepted.
    """
    trimmed = value.strip()
    if not trimmed or _parses_as_float(trimmed):
        return
    if policy == MISSING_NUMERIC_ZERO:
        return
    raise CacheCheckError(f'invalid numeric cache value "{trimmed}"')


def validate_idx_sequence(indices: Iterable[int], count: int) -> None:
    """Require the point indices to be exactly 0 .. count-1."""
    seen = set(indices)
    if len(seen) != count:
        raise CacheCheckError("pt idx count mismatch")
    if any(i not in seen for i in range(count)):
        raise CacheCheckError("pt idx not contiguous")


def _read_pt_index(attrs: list[tuple[str, str]]) -> int:
    for key, value in attrs:
        if key == "idx":
            try:
                idx = _parse_int(value)
            except ValueError:
                raise CacheCheckError(f'invalid pt idx "{value}"') from None
            if idx < 0:
                raise CacheCheckError(f'invalid pt idx "{value}"')
            return idx
    raise CacheCheckError("missing pt idx")


def _check_consistent(
    label: str,
    series: set[int],
    categories: dict[int, list[str]],
    counts: dict[int, int],
    code: str = CODE_CHART_CACHE_INVALID,
) -> None:
    if len(categories) != len(series):
        raise CacheCheckError(f"missing categories cache for {label} chart", code)
    if len(counts) != len(series):
        raise CacheCheckError(f"missing values cache for {label} chart", code)

    keys = sorted(series)
    base_cats = categories.get(keys[0], [])
    base_count = counts.get(keys[0], 0)
    for idx in keys:
        cats = categories.get(idx)
        if cats is None:
            raise CacheCheckError(f"missing categories cache for series {idx}", code, idx)
        if cats != base_cats:
            raise CacheCheckError(f"{label} chart categories must match across series", code, idx)
        if counts.get(idx, 0) != base_count:
            raise CacheCheckError(f"{label} chart ptCount mismatch across series", code, idx)
        if len(cats) != base_count:
            raise CacheCheckError(
                f"{label} chart categories/values length mismatch", code, idx
            )


def check_chart_caches(data: bytes | str, missing_numeric_policy: int = MISSING_NUMERIC_EMPTY) -> None:
    """Validate every cache of a chart part.

    Each cache needs a ptCount matching its points, contiguous point indices,
    values in string points and numbers in numeric points. Area and mixed bar
    and line charts need identical categories across series; other bar, line
    and pie series need both a categories and a values cache. Raises
    CacheCheckError on the first problem.
    """
    try:
        events = _xml_events(data, "parse chart")
    except ValueError as exc:
        raise CacheCheckError(str(exc)) from exc

    series_counter = -1
    current_series = -1
    ser_depth = 0
    depth = {"cat": 0, "val": 0, "tx": 0}
    plots = {"barChart": 0, "lineChart": 0, "pieChart": 0, "areaChart": 0}
    current_plot_type = ""

    area_series: set[int] = set()
    area_categories: dict[int, list[str]] = {}
    area_value_counts: dict[int, int] = {}
    has_bar = has_line = False
    mixed_series: set[int] = set()
    mixed_categories: dict[int, list[str]] = {}
    mixed_value_counts: dict[int, int] = {}
    base_series: set[int] = set()
    base_categories: set[int] = set()
    base_values: set[int] = set()
    cache: _Cache | None = None

    for event, name, payload in events:
        if event == "start":
            if name in plots:
                plots[name] += 1
            elif name == "ser":
                if ser_depth == 0:
                    series_counter += 1
                    current_series = series_counter
                    if plots["barChart"] > 0:
                        current_plot_type = "bar"
                        has_bar = True
                        mixed_series.add(current_series)
                    elif plots["lineChart"] > 0:
                        current_plot_type = "line"
                        has_line = True
                        mixed_series.add(current_series)
                    else:
                        current_plot_type = ""
                    if plots["barChart"] > 0 or plots["lineChart"] > 0 or plots["pieChart"] > 0:
                        base_series.add(current_series)
                    if plots["areaChart"] > 0:
                        area_series.add(current_series)
                ser_depth += 1
            elif name in depth:
                if ser_depth > 0:
                    depth[name] += 1
            elif name in ("strCache", "numCache"):
                role = ""
                if name == "strCache":
                    if depth["cat"] > 0:
                        role = "categories"
                    elif depth["tx"] > 0:
                        role = "seriesName"
                elif depth["val"] > 0:
                    role = "values"
                cache = _Cache(
                    kind=name,
                    role=role,
                    series_index=current_series,
                    plot_type=current_plot_type,
                    in_area=plots["areaChart"] > 0,
                )
            elif name == "ptCount":
                if cache is not None:
                    for key, value in payload:
                        if key == "val":
                            cache.pt_count_seen = True
                            try:
                                cache.pt_count = _parse_int(value)
                            except ValueError:
                                raise cache.error(f'invalid ptCount "{value}"') from None
                            break
                    if not cache.pt_count_seen:
                        raise cache.error("missing ptCount")
            elif name == "pt":
                if cache is not None:
                    try:
                        idx = _read_pt_index(payload)
                    except CacheCheckError as exc:
                        raise cache.error(str(exc)) from None
                    cache.pt_idx.add(idx)
                    cache.pt_total += 1
                    cache.in_pt = True
                    cache.pt_has_value = False
                    cache.pt_value = ""
            elif name == "v":
                if cache is not None and cache.in_pt:
                    cache.in_value = True
                    cache.buf = []
        elif event == "end":
            if name in plots:
                plots[name] = max(plots[name] - 1, 0)
            elif name == "ser":
                ser_depth = max(ser_depth - 1, 0)
                if ser_depth == 0:
                    current_series = -1
                    current_plot_type = ""
                    depth = dict.fromkeys(depth, 0)
            elif name in depth:
                depth[name] = max(depth[name] - 1, 0)
            elif name == "v":
                if cache is not None and cache.in_value:
                    cache.pt_value = "".join(cache.buf)
                    cache.pt_has_value = True
                    cache.in_value = False
            elif name == "pt":
                if cache is not None and cache.in_pt:
                    if cache.kind == "strCache":
                        if not cache.pt_has_value:
                            raise cache.error("missing strCache value")
                        if cache.role == "categories" and (cache.in_area or cache.plot_type):
                            cache.values.append(cache.pt_value)
                    else:
                        try:
                            validate_numeric_value(cache.pt_value, missing_numeric_policy)
                        except CacheCheckError as exc:
                            raise cache.error(str(exc)) from None
                    cache.in_pt = False
                    cache.pt_has_value = False
                    cache.pt_value = ""
            elif name in ("strCache", "numCache"):
                if cache is not None:
                    if not cache.pt_count_seen:
                        raise cache.error("missing ptCount")
                    if cache.pt_total != cache.pt_count:
                        raise cache.error(
                            f"ptCount mismatch: expected {cache.pt_count} got {cache.pt_total}"
                        )
                    try:
                        validate_idx_sequence(cache.pt_idx, cache.pt_count)
                    except CacheCheckError as exc:
                        raise cache.error(str(exc)) from None
                    idx = cache.series_index
                    if cache.in_area:
                        if cache.role == "categories":
                            area_categories[idx] = list(cache.values)
                        elif cache.role == "values":
                            area_value_counts[idx] = cache.pt_count
                    if cache.plot_type:
                        if cache.role == "categories":
                            mixed_categories[idx] = list(cache.values)
                        elif cache.role == "values":
                            mixed_value_counts[idx] = cache.pt_count
                    if idx in base_series:
                        if cache.role == "categories":
                            base_categories.add(idx)
                        elif cache.role == "values":
                            base_values.add(idx)
                    cache = None
        elif cache is not None and cache.in_value:
            cache.buf.append(payload)

    if area_series:
        _check_consistent("area", area_series, area_categories, area_value_counts)

    is_mixed = has_bar and has_line
    if is_mixed:
        _check_consistent("mixed", mixed_series, mixed_categories, mixed_value_counts)
        check_mixed_axis_groups(data)

    if base_series and not is_mixed and not area_series:
        for idx in sorted(base_series):
            if idx not in base_categories:
                raise CacheCheckError(f"missing categories cache for series {idx}", series_index=idx)
            if idx not in base_values:
                raise CacheCheckError(f"missing values cache for series {idx}", series_index=idx)


def _mix_error(message: str) -> CacheCheckError:
    return CacheCheckError(message, CODE_MIX_SECONDARY_AXIS_INVALID)


def _find_mixed_plots(plots: list[MixedPlot]) -> tuple[MixedPlot, MixedPlot]:
    bar_plot: MixedPlot | None = None
    line_plot: MixedPlot | None = None
    for plot in plots:
        if plot.plot_type == "bar":
            if bar_plot is not None:
                raise _mix_error("multiple bar plots found")
            bar_plot = plot
        elif plot.plot_type == "line":
            if line_plot is not None:
                raise _mix_error("multiple line plots found")
            line_plot = plot
    if bar_plot is None or line_plot is None:
        raise _mix_error("mixed chart requires bar and line plots")
    return bar_plot, line_plot


def _axis_group_for_plot(plot: MixedPlot, groups: list[AxisGroup]) -> AxisGroup | None:
    if len(plot.axis_ids) != 2:
        return None
    for group in groups:
        if sorted([group.cat_ax_id, group.val_ax_id]) == list(plot.axis_ids):
            return group
    return None


def check_mixed_axis_groups(data: bytes | str) -> None:
    """Validate the axis layout of a mixed bar and line chart.

    Both plots need two axis ids. When they differ, the chart must hold exactly
    two axis groups and each plot must map to its own group.
    """
    try:
        parsed = parse_mixed(data)
    except ValueError as exc:
        raise _mix_error(str(exc)) from exc

    bar_plot, line_plot = _find_mixed_plots(parsed.plots)
    if len(bar_plot.axis_ids) != 2 or len(line_plot.axis_ids) != 2:
        raise _mix_error("mixed chart requires two axis ids per plot")
    if bar_plot.axis_ids == line_plot.axis_ids:
        return
    if len(parsed.axis_groups) != 2:
        raise _mix_error("mixed chart requires exactly two axis groups")

    bar_group = _axis_group_for_plot(bar_plot, parsed.axis_groups)
    if bar_group is None:
        raise _mix_error("bar plot axis group not found")
    line_group = _axis_group_for_plot(line_plot, parsed.axis_groups)
    if line_group is None:
        raise _mix_error("line plot axis group not found")
    if bar_group.cat_ax_id == line_group.cat_ax_id and bar_group.val_ax_id == line_group.val_ax_id:
        raise _mix_error("bar and line plots must use different axis groups")