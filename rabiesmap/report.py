from __future__ import annotations

"""
Dashboard report generator
--------------------------
Renders one DashboardView into a DOCX document: the value boxes, the
choropleth map, the time-series plot and the filtered table.

- Lazy imports: python-docx and matplotlib are only needed for `report`.
- The map colours come from the ordered DeathBucket table, so the legend
  order never depends on which buckets happen to be present.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple
import io
import os

from .engine import DashboardView
from .models import DeathBucket

# One colour per bucket, in bucket order; "Data unavailable" is grey
BUCKET_COLOURS = {
    DeathBucket.ZERO: "#fff5eb",
    DeathBucket.ONE_TO_TEN: "#fdd0a2",
    DeathBucket.ELEVEN_TO_HUNDRED: "#fd8d3c",
    DeathBucket.HUNDRED_TO_FIVE_HUNDRED: "#d94801",
    DeathBucket.OVER_FIVE_HUNDRED: "#7f2704",
    DeathBucket.UNAVAILABLE: "#d9d9d9",
}


@dataclass
class DatasetCitation:
    mortality_source: str = "WHO Global Health Observatory: reported number of human rabies deaths"
    hdi_source: str = "UNDP Human Development Report Office: HDI composite indices time series"
    geography_source: str = "Natural Earth admin-0 country boundaries"
    file_names: List[str] = field(default_factory=list)


@dataclass
class ReportConfig:
    title: str = "Rabies Deaths and Human Development"
    subtitle: str = "Reported human rabies deaths by country, joined with HDI"
    citation: DatasetCitation = field(default_factory=DatasetCitation)

    # rows shown in the table section
    max_rows: int = 60

    # REPL commands that produced the selection
    command_log: Optional[List[str]] = None


def _fmt(v, digits: int = 0) -> str:
    if v is None:
        return ""
    return f"{v:,.{digits}f}"


def generate_docx_report(view: DashboardView, out_path: str, *, config: Optional[ReportConfig] = None) -> str:
    """Write the view to `out_path` and return the path."""
    config = config or ReportConfig()

    try:
        from docx import Document
        from docx.shared import Pt, Inches
        from docx.enum.text import WD_ALIGN_PARAGRAPH
    except ImportError as e:
        raise ImportError(
            "Missing dependency: python-docx.\n"
            "Install it with: python -m pip install python-docx"
        ) from e

    try:
        import matplotlib
        matplotlib.use("Agg")
        import matplotlib.pyplot as plt
        from matplotlib.patches import Patch
    except ImportError as e:
        raise ImportError(
            "Missing dependency: matplotlib.\n"
            "Install with: python -m pip install matplotlib"
        ) from e

    state = view.state
    groups = ", ".join(g.value for g in state.sorted_groups()) or "(none)"

    # -----------------------------
    # 1) Charts
    # -----------------------------
    charts: List[Tuple[str, io.BytesIO]] = []

    def _save() -> io.BytesIO:
        buf = io.BytesIO()
        plt.tight_layout()
        plt.savefig(buf, format="png", dpi=200)
        plt.close()
        buf.seek(0)
        return buf

    if not view.map_table.empty:
        fig, ax = plt.subplots(figsize=(10, 5))
        colours = view.map_table["death_bucket"].astype(str).map(
            {b.value: c for b, c in BUCKET_COLOURS.items()}).tolist()
        view.map_table.plot(ax=ax, color=colours, edgecolor="white", linewidth=0.3)
        ax.set_axis_off()
        ax.legend(handles=[Patch(facecolor=BUCKET_COLOURS[b], label=b.value) for b in DeathBucket],
                  title="Reported deaths", loc="lower left", fontsize=7)
        ax.set_title(f"Reported rabies deaths, {state.year}")
        charts.append((f"Map: reported deaths by country ({state.year})", _save()))

    if view.series.global_total:
        fig, ax = plt.subplots(figsize=(9, 5))
        for name, points in view.series.countries.items():
            xs = [y for y, v in points if v is not None]
            ys = [v for _, v in points if v is not None]
            ax.plot(xs, ys, marker="o", label=name)
        ax.plot([y for y, _ in view.series.global_total], [v for _, v in view.series.global_total],
                color="black", linestyle="--", label="Global total")
        ax.axvline(state.year, color="grey", linewidth=0.8)
        ax.set_xlabel("Year")
        ax.set_ylabel("Reported deaths")
        ax.legend(fontsize=7)
        charts.append(("Highest-burden countries and global total", _save()))

    # -----------------------------
    # 2) Document
    # -----------------------------
    doc = Document()
    style = doc.styles["Normal"]
    style.font.name = "Calibri"
    style.font.size = Pt(11)

    def _center(text: str, size: int, bold: bool = False, italic: bool = False) -> None:
        p = doc.add_paragraph()
        r = p.add_run(text)
        r.bold = bold
        r.italic = italic
        r.font.size = Pt(size)
        p.alignment = WD_ALIGN_PARAGRAPH.CENTER

    def _kv(key: str, value: str) -> None:
        p = doc.add_paragraph()
        r = p.add_run(f"{key}: ")
        r.bold = True
        p.add_run(value)

    _center(config.title, 22, bold=True)
    _center(config.subtitle, 12, italic=True)
    doc.add_paragraph("")
    _kv("Selection", f"{view.year_label}; groups: {groups}")
    if state.query:
        _kv("Search", state.query)
    _kv("Rows in selection", str(len(view.rows)))

    doc.add_heading("Summary", level=1)
    if view.boxes is None:
        doc.add_paragraph("No data for this selection. Choose another year or development group.")
    else:
        b = view.boxes
        _kv("Total reported deaths", _fmt(b.total_deaths))
        if b.top_country is None:
            _kv("Top country", "no country reported deaths")
        else:
            _kv("Top country", f"{b.top_country} ({_fmt(b.top_deaths)} deaths, {_fmt(b.top_share, 1)}% of total)")

    if charts:
        doc.add_heading("Charts", level=1)
        for title, image in charts:
            doc.add_paragraph(title)
            doc.add_picture(image, width=Inches(6.5))

    if view.rows:
        doc.add_heading("Table", level=1)
        headers = ["Country", "ISO3", "Group", "HDI", "Deaths", "Bucket"]
        t = doc.add_table(rows=1, cols=len(headers))
        for cell, h in zip(t.rows[0].cells, headers):
            cell.text = h
        for r in view.rows[:config.max_rows]:
            cells = t.add_row().cells
            cells[0].text = r.country_name
            cells[1].text = r.country_code
            cells[2].text = r.hdi_group.value
            cells[3].text = _fmt(r.hdi_value, 3)
            cells[4].text = _fmt(r.reported_deaths)
            cells[5].text = r.death_bucket.value
        if len(view.rows) > config.max_rows:
            doc.add_paragraph(f"... {len(view.rows) - config.max_rows} more rows not shown")

    doc.add_heading("Sources", level=1)
    cit = config.citation
    for line in (cit.mortality_source, cit.hdi_source, cit.geography_source):
        doc.add_paragraph(line, style="List Bullet")
    for fn in cit.file_names:
        doc.add_paragraph(f"Data file used: {fn}")

    if config.command_log:
        doc.add_heading("Command log", level=1)
        for line in config.command_log:
            doc.add_paragraph(line, style="List Bullet")

    from . import __version__
    from datetime import datetime as _dt
    doc.add_paragraph("")
    doc.add_paragraph(f"rabiesmap {__version__}, generated {_dt.now().isoformat(timespec='seconds')}")

    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    doc.save(out_path)
    return out_path
