import pytest

from pptxcharts.chartxml import KIND_CATEGORIES, KIND_VALUES, Formula
from pptxcharts.mixed import AxisGroup, parse_mixed

CHART_NS = "http://schemas.openxmlformats.org/drawingml/2006/chart"


def document(*plot_children: str) -> str:
    body = "".join(plot_children)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f'<c:chartSpace xmlns:c="{CHART_NS}"><c:chart><c:plotArea>{body}'
        "</c:plotArea></c:chart></c:chartSpace>"
    )


def ref(role: str, ref_tag: str, formula: str) -> str:
    return f"<c:{role}><c:{ref_tag}><c:f>{formula}</c:f></c:{ref_tag}></c:{role}>"


def cat(formula: str) -> str:
    return ref("cat", "strRef", formula)


def val(formula: str) -> str:
    return ref("val", "numRef", formula)


def series(*parts: str) -> str:
    return "<c:ser>" + "".join(parts) + "</c:ser>"


def plot(kind: str, *children: str) -> str:
    return f"<c:{kind}Chart>" + "".join(children) + f"</c:{kind}Chart>"


def axis_ids(*ids: str) -> str:
    return "".join(f'<c:axId val="{ax_id}"/>' for ax_id in ids)


def axis(tag: str, ax_id: str, cross: str, pos: str = "", major: bool = False) -> str:
    inner = f'<c:axId val="{ax_id}"/><c:crossAx val="{cross}"/>'
    if pos:
        inner += f'<c:axisPos val="{pos}"/>'
    if major:
        inner += "<c:majorGridlines/>"
    return f"<c:{tag}>{inner}</c:{tag}>"


LABELS = "Data!$A$1:$A$4"

TWO_AXES = document(
    plot("bar", series(cat(LABELS)), axis_ids("10", "20")),
    plot("line", series(cat(LABELS)), axis_ids("30", "40")),
    axis("catAx", "10", "20"),
    axis("valAx", "20", "10", pos="l", major=True),
    axis("catAx", "30", "40"),
    axis("valAx", "40", "30", pos="r"),
)


def test_parse_mixed_bar_line():
    xml = document(
        plot("bar", series(cat(LABELS), val("Data!$B$1:$B$4")), axis_ids("10", "20")),
        plot("line", series(cat(LABELS), val("Data!$D$1:$D$4")), axis_ids("10", "20")),
    )
    mixed = parse_mixed(xml)
    assert len(mixed.series) == 2
    assert [s.plot_type for s in mixed.series] == ["bar", "line"]
    assert [s.axis for s in mixed.series] == ["primary", "primary"]
    assert mixed.series[0].formulas == [
        Formula(KIND_CATEGORIES, 0, LABELS),
        Formula(KIND_VALUES, 0, "Data!$B$1:$B$4"),
    ]
    assert mixed.series[1].formulas[1] == Formula(KIND_VALUES, 1, "Data!$D$1:$D$4")


def test_parse_mixed_secondary_axis():
    mixed = parse_mixed(TWO_AXES)
    assert len(mixed.series) == 2
    assert mixed.series[0].axis == "primary"
    assert mixed.series[1].axis == "secondary"


def test_parse_mixed_plots():
    mixed = parse_mixed(TWO_AXES)
    assert [(p.plot_type, p.axis_ids, p.series_indices) for p in mixed.plots] == [
        ("bar", ["10", "20"], [0]),
        ("line", ["30", "40"], [1]),
    ]
    assert [s.plot_index for s in mixed.series] == [0, 0]


def test_parse_mixed_unsupported_plot():
    xml = document(plot("bar", series()), plot("area", series()))
    with pytest.raises(ValueError, match="unsupported plot type"):
        parse_mixed(xml)


def test_parse_mixed_axis_groups():
    mixed = parse_mixed(TWO_AXES)
    assert mixed.axis_groups == [
        AxisGroup("10", "20", "l", True, False),
        AxisGroup("30", "40", "r", False, False),
    ]


def test_parse_mixed_stacked_unsupported():
    xml = document(
        plot("bar", '<c:grouping val="stacked"/>', series()),
        plot("line", series()),
    )
    with pytest.raises(ValueError, match="stacked"):
        parse_mixed(xml)


def test_parse_mixed_percent_stacked_unsupported():
    xml = document(
        plot("bar", series()),
        plot("line", '<c:grouping val="percentStacked"/>', series()),
    )
    with pytest.raises(ValueError, match="stacked"):
        parse_mixed(xml)


def test_parse_mixed_no_plots():
    with pytest.raises(ValueError, match="no supported plot types"):
        parse_mixed(document())


def test_parse_mixed_bar_only():
    with pytest.raises(ValueError, match="unsupported mixed plot types"):
        parse_mixed(document(plot("bar", series())))


def test_parse_mixed_unpaired_axes_give_no_group():
    xml = document(
        plot("bar", series()),
        plot("line", series()),
        axis("catAx", "10", "20"),
        axis("valAx", "20", "99"),
    )
    mixed = parse_mixed(xml)
    assert mixed.axis_groups == []
    assert [s.axis for s in mixed.series] == ["primary", "primary"]


def test_parse_mixed_malformed():
    with pytest.raises(ValueError, match="parse mixed chart"):
        parse_mixed("<c:chartSpace><c:barChart>")