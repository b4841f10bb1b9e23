import pytest

from pptxcharts.cachecheck import (
    CODE_CHART_CACHE_INVALID,
    CODE_MIX_SECONDARY_AXIS_INVALID,
    MISSING_NUMERIC_EMPTY,
    MISSING_NUMERIC_ZERO,
    CacheCheckError,
    check_chart_caches,
    check_mixed_axis_groups,
    validate_idx_sequence,
    validate_numeric_value,
)


def _pts(values):
    return "".join(f'<c:pt idx="{i}"><c:v>{v}</c:v></c:pt>' for i, v in enumerate(values))


def _cat(values):
    return (
        f'<c:cat><c:strRef><c:strCache><c:ptCount val="{len(values)}"/>'
        f"{_pts(values)}</c:strCache></c:strRef></c:cat>"
    )


def _val(values, count=None):
    count = len(values) if count is None else count
    return (
        f'<c:val><c:numRef><c:numCache><c:ptCount val="{count}"/>'
        f"{_pts(values)}</c:numCache></c:numRef></c:val>"
    )


def _plot(tag, series, ax_ids=()):
    sers = "".join(f"<c:ser>{body}</c:ser>" for body in series)
    axes = "".join(f'<c:axId val="{ax}"/>' for ax in ax_ids)
    return f"<c:{tag}>{sers}{axes}</c:{tag}>"


def _chart(*plots, extra=""):
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<c:chartSpace xmlns:c="http://schemas.openxmlformats.org/drawingml/2006/chart">'
        f"<c:chart><c:plotArea>{''.join(plots)}{extra}</c:plotArea></c:chart>"
        "</c:chartSpace>"
    ).encode("utf-8")


PT_COUNT_MISMATCH = b"""<?xml version="1.0" encoding="UTF-8"?>
<c:chartSpace xmlns:c="http://schemas.openxmlformats.org/drawingml/2006/chart">
  <c:chart>
    <c:plotArea>
      <c:barChart>
        <c:ser>
          <c:val>
            <c:numRef>
              <c:numCache>
                <c:ptCount val="2"/>
                <c:pt idx="0"><c:v>1</c:v></c:pt>
              </c:numCache>
            </c:numRef>
          </c:val>
        </c:ser>
      </c:barChart>
    </c:plotArea>
  </c:chart>
</c:chartSpace>"""

IDX_GAP = b"""<?xml version="1.0" encoding="UTF-8"?>
<c:chartSpace xmlns:c="http://schemas.openxmlformats.org/drawingml/2006/chart">
  <c:chart>
    <c:plotArea>
      <c:barChart>
        <c:ser>
          <c:val>
            <c:numRef>
              <c:numCache>
                <c:ptCount val="2"/>
                <c:pt idx="0"><c:v>1</c:v></c:pt>
                <c:pt idx="2"><c:v>2</c:v></c:pt>
              </c:numCache>
            </c:numRef>
          </c:val>
        </c:ser>
      </c:barChart>
    </c:plotArea>
  </c:chart>
</c:chartSpace>"""

INVALID_NUMERIC = b"""<?xml version="1.0" encoding="UTF-8"?>
<c:chartSpace xmlns:c="http://schemas.openxmlformats.org/drawingml/2006/chart">
  <c:chart>
    <c:plotArea>
      <c:barChart>
        <c:ser>
          <c:val>
            <c:numRef>
              <c:numCache>
                <c:ptCount val="1"/>
                <c:pt idx="0"><c:v>abc</c:v></c:pt>
              </c:numCache>
            </c:numRef>
          </c:val>
        </c:ser>
      </c:barChart>
    </c:plotArea>
  </c:chart>
</c:chartSpace>"""


def test_pt_count_mismatch():
    with pytest.raises(CacheCheckError) as info:
        check_chart_caches(PT_COUNT_MISMATCH, MISSING_NUMERIC_EMPTY)
    assert str(info.value) == "ptCount mismatch: expected 2 got 1"
    assert info.value.code == CODE_CHART_CACHE_INVALID
    assert info.value.series_index == 0


def test_idx_gap():
    with pytest.raises(CacheCheckError) as info:
        check_chart_caches(IDX_GAP, MISSING_NUMERIC_EMPTY)
    assert str(info.value) == "pt idx not contiguous"
    assert info.value.series_index == 0


def test_invalid_numeric_strict_policy():
    with pytest.raises(CacheCheckError) as info:
        check_chart_caches(INVALID_NUMERIC, MISSING_NUMERIC_EMPTY)
    assert str(info.value) == 'invalid numeric cache value "abc"'
    assert info.value.code == CODE_CHART_CACHE_INVALID


def test_invalid_numeric_zero_policy_reaches_later_checks():
    with pytest.raises(CacheCheckError) as info:
        check_chart_caches(INVALID_NUMERIC, MISSING_NUMERIC_ZERO)
    assert str(info.value) == "missing categories cache for series 0"
    assert info.value.series_index == 0


def test_area_categories_mismatch():
    data = _chart(
        _plot(
            "areaChart",
            [_cat(["A", "B"]) + _val([1, 2]), _cat(["A", "C"]) + _val([3, 4])],
        )
    )
    with pytest.raises(CacheCheckError) as info:
        check_chart_caches(data, MISSING_NUMERIC_EMPTY)
    assert str(info.value) == "area chart categories must match across series"
    assert info.value.series_index == 1


def test_area_pt_count_mismatch():
    data = _chart(
        _plot(
            "areaChart",
            [_cat(["A", "B"]) + _val([1, 2]), _cat(["A", "B"]) + _val([3, 4, 5])],
        )
    )
    with pytest.raises(CacheCheckError) as info:
        check_chart_caches(data, MISSING_NUMERIC_EMPTY)
    assert str(info.value) == "area chart ptCount mismatch across series"
    assert info.value.series_index == 1


def test_area_missing_values_cache():
    data = _chart(_plot("areaChart", [_cat(["A", "B"])]))
    with pytest.raises(CacheCheckError) as info:
        check_chart_caches(data)
    assert str(info.value) == "missing values cache for area chart"
    assert info.value.series_index is None


def test_valid_bar_chart_passes_and_missing_values_fails():
    good = _chart(_plot("barChart", [_cat(["A", "B"]) + _val([1, 2])]))
    assert check_chart_caches(good) is None
    bad = _chart(_plot("barChart", [_cat(["A", "B"])]))
    with pytest.raises(CacheCheckError) as info:
        check_chart_caches(bad)
    assert str(info.value) == "missing values cache for series 0"


def test_missing_pt_count():
    data = _chart(
        _plot(
            "barChart",
            ['<c:val><c:numRef><c:numCache><c:pt idx="0"><c:v>1</c:v></c:pt>'
             "</c:numCache></c:numRef></c:val>"],
        )
    )
    with pytest.raises(CacheCheckError) as info:
        check_chart_caches(data)
    assert str(info.value) == "missing ptCount"


def test_invalid_pt_count_value():
    data = _chart(
        _plot(
            "barChart",
            ['<c:val><c:numRef><c:numCache><c:ptCount val="x"/>'
             "</c:numCache></c:numRef></c:val>"],
        )
    )
    with pytest.raises(CacheCheckError) as info:
        check_chart_caches(data)
    assert str(info.value) == 'invalid ptCount "x"'


@pytest.mark.parametrize(
    ("pt", "message"),
    [
        ("<c:pt><c:v>1</c:v></c:pt>", "missing pt idx"),
        ('<c:pt idx="-1"><c:v>1</c:v></c:pt>', 'invalid pt idx "-1"'),
        ('<c:pt idx="a"><c:v>1</c:v></c:pt>', 'invalid pt idx "a"'),
    ],
)
def test_bad_pt_index(pt, message):
    data = _chart(
        _plot(
            "barChart",
            [f'<c:val><c:numRef><c:numCache><c:ptCount val="1"/>{pt}'
             "</c:numCache></c:numRef></c:val>"],
        )
    )
    with pytest.raises(CacheCheckError) as info:
        check_chart_caches(data)
    assert str(info.value) == message


def test_missing_str_cache_value():
    data = _chart(
        _plot(
            "barChart",
            ['<c:cat><c:strRef><c:strCache><c:ptCount val="1"/><c:pt idx="0"/>'
             "</c:strCache></c:strRef></c:cat>"],
        )
    )
    with pytest.raises(CacheCheckError) as info:
        check_chart_caches(data)
    assert str(info.value) == "missing strCache value"


def test_malformed_chart():
    with pytest.raises(CacheCheckError) as info:
        check_chart_caches(b"<c:chartSpace><broken")
    assert str(info.value).startswith("parse chart")
    assert info.value.code == CODE_CHART_CACHE_INVALID


def test_mixed_shared_axes_pass_and_mismatched_categories_fail():
    good = _chart(
        _plot("barChart", [_cat(["A", "B"]) + _val([1, 2])], ("1", "2")),
        _plot("lineChart", [_cat(["A", "B"]) + _val([3, 4])], ("1", "2")),
    )
    assert check_chart_caches(good) is None
    bad = _chart(
        _plot("barChart", [_cat(["A", "B"]) + _val([1, 2])], ("1", "2")),
        _plot("lineChart", [_cat(["A", "X"]) + _val([3, 4])], ("1", "2")),
    )
    with pytest.raises(CacheCheckError) as info:
        check_chart_caches(bad)
    assert str(info.value) == "mixed chart categories must match across series"
    assert info.value.series_index == 1


AXES = (
    '<c:catAx><c:axId val="1"/><c:crossAx val="2"/></c:catAx>'
    '<c:valAx><c:axId val="2"/><c:crossAx val="1"/><c:axisPos val="l"/></c:valAx>'
    '<c:catAx><c:axId val="3"/><c:crossAx val="4"/></c:catAx>'
    '<c:valAx><c:axId val="4"/><c:crossAx val="3"/><c:axisPos val="r"/></c:valAx>'
)


def test_mixed_secondary_axes_need_two_groups():
    plots = (
        _plot("barChart", [_cat(["A", "B"]) + _val([1, 2])], ("1", "2")),
        _plot("lineChart", [_cat(["A", "B"]) + _val([3, 4])], ("3", "4")),
    )
    assert check_mixed_axis_groups(_chart(*plots, extra=AXES)) is None
    with pytest.raises(CacheCheckError) as info:
        check_chart_caches(_chart(*plots))
    assert str(info.value) == "mixed chart requires exactly two axis groups"
    assert info.value.code == CODE_MIX_SECONDARY_AXIS_INVALID


def test_mixed_requires_two_axis_ids_per_plot():
    data = _chart(
        _plot("barChart", [_cat(["A"]) + _val([1])], ("1",)),
        _plot("lineChart", [_cat(["A"]) + _val([2])], ("1", "2")),
    )
    with pytest.raises(CacheCheckError) as info:
        check_mixed_axis_groups(data)
    assert str(info.value) == "mixed chart requires two axis ids per plot"
    assert info.value.code == CODE_MIX_SECONDARY_AXIS_INVALID


def test_mixed_axis_check_rejects_non_mixed_chart():
    data = _chart(_plot("barChart", [_cat(["A"]) + _val([1])], ("1", "2")))
    with pytest.raises(CacheCheckError) as info:
        check_mixed_axis_groups(data)
    assert str(info.value) == "unsupported mixed plot types"
    assert info.value.code == CODE_MIX_SECONDARY_AXIS_INVALID


@pytest.mark.parametrize("value", ["", "  ", "1", "-2.5", "1e3", " 7 ", "NaN", "inf"])
def test_numeric_values_accepted_while_text_rejected(value):
    assert validate_numeric_value(value, MISSING_NUMERIC_EMPTY) is None
    with pytest.raises(CacheCheckError):
        validate_numeric_value(value + "x", MISSING_NUMERIC_EMPTY)


@pytest.mark.parametrize("value", ["abc", "1_000", "1e400"])
def test_non_numeric_depends_on_policy(value):
    assert validate_numeric_value(value, MISSING_NUMERIC_ZERO) is None
    with pytest.raises(CacheCheckError) as info:
        validate_numeric_value(value, MISSING_NUMERIC_EMPTY)
    assert str(info.value) == f'invalid numeric cache value "{value}"'


def test_idx_sequence():
    assert validate_idx_sequence({0, 1, 2}, 3) is None
    with pytest.raises(CacheCheckError) as info:
        validate_idx_sequence({0, 2}, 2)
    assert str(info.value) == "pt idx not contiguous"
    with pytest.raises(CacheCheckError) as info:
        validate_idx_sequence({0}, 2)
    assert str(info.value) == "pt idx count mismatch"