# pptxcharts

A library for working with the charts inside PowerPoint `.pptx` files: open the
package, find the charts on each slide and the workbooks embedded with them,
read chart types and series formulas, rewrite the cached values a chart shows,
and check staged changes before they are committed and saved.

It uses only the standard library.

## Installation

```
pip install .
```

## Modules

- `pptxcharts.opc`: `open_file(path)` loads a `.pptx` into a `Package`.
  `Package.list_parts()`, `read_part(name)` and `write_part(name, data)` work
  on parts in memory; `save(path)` writes the package through a temporary file
  and replaces the target. Errors derive from `OoxmlError`: `OpenFailedError`,
  `PartNotFoundError` and `SaveFailedError`.
- `pptxcharts.rels`: `parse(data)` reads a `.rels` part into `Rels`, whose
  `by_id` maps ids to `Relationship` entries and whose `resolve(rel_id)`
  returns one or `None`. `resolve_target(base_part, rel_target)` resolves a
  relative target against the part that owns it. Malformed XML raises
  `ValueError`.
- `pptxcharts.overlay`: layered views over parts. `PackageOverlay` writes
  through to a `Package` and remembers which parts it had at the start
  (`has_baseline`). `StagingOverlay` collects changes on top of any `Overlay`;
  `list_touched()` lists them, `commit()` writes them to the parent (raising
  `LookupError`, and writing nothing, if any staged part is not in the
  parent's baseline), `discard()` drops them and `nested()` stacks another
  stage on top.
- `pptxcharts.discover`: `discover_chart_refs(pkg)` returns the `ChartRef`s
  referenced by `ppt/slides/slide*.xml`. `discover_embedded_charts(pkg)` splits
  them into `EmbeddedChart`s (with a workbook under `ppt/embeddings/*.xlsx`)
  and `SkippedChart`s, each with a `SkipReason`: `LINKED`, `RELS_MISSING`,
  `WORKBOOK_NOT_FOUND` or `UNSUPPORTED`.
- `pptxcharts.chartxml`: `parse_chart(data)` gives a `ParsedChart` with the
  chart type (`bar`, `line`, `pie`, `area`, `other`, `mixed` or `unknown`) and
  the `Formula`s of each series; `parse_info(data)` gives a `ChartInfo` with
  the type, series count and first title text.
- `pptxcharts.mixed`: `parse_mixed(data)` reads a chart that combines a bar and
  a line plot into a `MixedChart` of `MixedSeries` (with a `primary` or
  `secondary` axis role), `MixedPlot`s and `AxisGroup`s. Other plot types and
  stacked groupings raise `ValueError`.
- `pptxcharts.chartcache`: `sync_caches(chart_xml, deps, provider)` rewrites the
  `strCache`/`numCache` elements of a bar, line, pie or area chart with values
  returned by `provider(kind, sheet, start_cell, end_cell)` for each `Range` in
  `Dependencies`, inserting caches where they are missing. Problems raise
  `ChartCacheError`.
- `pptxcharts.cachecheck`: `check_chart_caches(data, missing_numeric_policy)`
  checks point counts, point indices and values in every cache, and the
  consistency of categories across area and mixed chart series;
  `check_mixed_axis_groups(data)` checks the axes of a mixed chart. Both raise
  `CacheCheckError`, which carries a `code` and, when known, a
  `series_index`.
- `pptxcharts.postflight`: `PostflightValidator(Document(...))` checks a
  `StagingOverlay` with `validate_chart_stage(ctx, stage)`: touched parts must
  already exist, touched charts must be well-formed XML, touched embedded
  workbooks must have no `sharedStrings.xml` and no shared-string cells,
  chart caches must be valid when `ctx.cache_sync_enabled` is set, and the
  internal relationship targets of touched charts must exist.
  A failure calls `Document.emit_alert(code, message, context)` if one is set
  and raises `PostflightError` with the `code`.

## Example

```python
from pptxcharts.opc import open_file
from pptxcharts.discover import discover_embedded_charts
from pptxcharts.chartxml import parse_chart

pkg = open_file("deck.pptx")
embedded, skipped = discover_embedded_charts(pkg)
for chart in embedded:
    parsed = parse_chart(pkg.read_part(chart.chart_path))
    print(chart.chart_path, parsed.chart_type, chart.workbook_path)
    for formula in parsed.formulas:
        print("  ", formula.series_index, formula.kind, formula.formula)
for chart in skipped:
    print("skipped", chart.chart_path, chart.reason.value)
```

Updating a chart's caches in a stage, checking the result and saving it:

```python
from pptxcharts.chartcache import Dependencies, Range, RangeKind, sync_caches
from pptxcharts.overlay import PackageOverlay, StagingOverlay
from pptxcharts.postflight import Document, Mode, PostflightValidator, ValidateContext

overlay = PackageOverlay(pkg)
stage = StagingOverlay(overlay)

deps = Dependencies(
    chart_type="bar",
    ranges=[
        Range(RangeKind.CATEGORIES, 0, "Sheet1", "A2", "A3"),
        Range(RangeKind.VALUES, 0, "Sheet1", "B2", "B3"),
    ],
)

def provider(kind, sheet, start, end):
    return ["North", "South"] if kind is RangeKind.CATEGORIES else ["10", "20"]

chart_path = "ppt/charts/chart1.xml"
stage.set(chart_path, sync_caches(stage.get(chart_path), deps, provider))

validator = PostflightValidator(Document(overlay=overlay))
validator.validate_chart_stage(
    ValidateContext(chart_path=chart_path, mode=Mode.STRICT, cache_sync_enabled=True),
    stage,
)
stage.commit()
pkg.save("deck-updated.pptx")
```

## What it does not do

- There is no command-line tool; everything is used from Python.
- It does not read cell values from embedded workbooks. The values written into
  chart caches come from the `provider` function the caller passes to
  `sync_caches`.
- It does not edit workbook cells or add new parts to a package through a
  stage; `StagingOverlay.commit` only replaces parts that already exist.

## Running the tests

```
pip install ".[test]"
pytest
```