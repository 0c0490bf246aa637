"""
rabiesmap command line interface
================================

Run it like:

    python -m rabiesmap.cli --mortality rabies.csv --hdi hdi.csv --geography ne_110m_admin_0_countries.shp

The pipeline runs once at startup (any load or schema error aborts with
status 1). After that an interactive REPL plays the role of the dashboard
controls: each command is one input event that swaps the current filter
snapshot, and `show` / `summary` / `series` / `report` render views of it.
"""

from __future__ import annotations
import argparse
import logging
import os
import shlex
import sys
from typing import List, Optional

from .engine import Dashboard
from .errors import RabiesMapError
from .models import HdiGroup
from .pipeline import PipelineConfig, run_pipeline

HELP = """
Commands:
  help
  summary                          year label, total deaths, top country
  show [n]                         first n rows of the filtered table
  series                           six highest-burden countries + global total
  map [n]                          first n rows of the map table

  year <YYYY>                      (example: year 2015)
  groups <g> [<g> ...] | groups all
                                   (example: groups Low "Very High")
  where <expr>                     search the table
    - and / or / not, parentheses
    - operators: == != >= <= > < contains in
    - fields: country code year group hdi rank deaths bucket region
    Example:
      where group >= High and deaths > 10
  clear                            drop the search expression

  reset
  undo
  redo

  export csv "<out.csv>"
  export json "<out.json>"
  report "<out.docx>"
  quit
"""


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="rabiesmap", description="Rabies deaths x HDI dashboard")
    ap.add_argument("--mortality", required=True, help="WHO rabies deaths table (csv/tsv/xlsx)")
    ap.add_argument("--hdi", required=True, help="UNDP HDI wide table (csv/tsv/xlsx)")
    ap.add_argument("--geography", required=True, help="Country polygons (shapefile/GeoJSON/GeoPackage)")
    ap.add_argument("--year-start", type=int, default=PipelineConfig.year_start)
    ap.add_argument("--year-end", type=int, default=PipelineConfig.year_end)
    ap.add_argument("--excluded-year", type=int, default=PipelineConfig.excluded_year,
                    help="Mortality reporting year to drop")
    ap.add_argument("--strict-codes", action="store_true",
                    help="Fail on unexpected country codes instead of warning")
    ap.add_argument("--log-level", default="WARNING",
                    choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return ap


def config_from_args(args: argparse.Namespace) -> PipelineConfig:
    return PipelineConfig(
        mortality_path=args.mortality,
        hdi_path=args.hdi,
        geography_path=args.geography,
        year_start=args.year_start,
        year_end=args.year_end,
        excluded_year=args.excluded_year,
        strict_codes=args.strict_codes,
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format="%(asctime)s - %(levelname)s - %(message)s")

    print("Loading datasets...")
    try:
        tables = run_pipeline(config_from_args(args))
    except (RabiesMapError, ValueError) as e:
        print(f"Startup failed: {e}", file=sys.stderr)
        return 1

    dash = Dashboard(tables=tables)
    print(f"Loaded {len(dash.records)} country-years, {len(tables.geography)} map countries. "
          f"Type 'help' for commands.")
    while True:
        try:
            line = input("rabiesmap> ").strip()
        except EOFError:
            break
        if not line:
            continue
        if line.lower() in ("quit", "exit"):
            break
        cmd0 = line.split()[0].lower()
        if cmd0 not in ("help", "show", "summary", "series", "map"):
            dash.command_log.append(line)
        try:
            handle(dash, line)
        except (RabiesMapError, ValueError, OSError) as e:
            print(f"Error: {e}")
    return 0


def _parse_groups(words: List[str]) -> List[HdiGroup]:
    if len(words) == 1 and words[0].lower() == "all":
        return list(HdiGroup)
    out = []
    for w in words:
        g = HdiGroup.parse(w)
        if g is None:
            raise ValueError("empty group name")
        out.append(g)
    return out


def handle(dash: Dashboard, line: str) -> None:
    """Handle one REPL command."""
    # where takes the rest of the line verbatim
    if line.lower().startswith("where "):
        dash.search(line[len("where "):].strip())
        print(f"Search applied. Rows={len(dash.selected_rows())}")
        return

    parts = shlex.split(line)
    cmd = parts[0].lower()

    if cmd == "help":
        print(HELP)
        return

    if cmd == "summary":
        view = dash.view()
        print(view.year_label)
        print(f"Groups: {', '.join(g.value for g in dash.state.sorted_groups()) or '(none)'}")
        if view.boxes is None:
            print("No data for this selection.")
            return
        b = view.boxes
        print(f"Total reported deaths: {b.total_deaths:,.0f}")
        if b.top_country is None:
            print("Top country: none reported deaths")
        else:
            print(f"Top country: {b.top_country} ({b.top_deaths:,.0f} deaths, {b.top_share:.1f}% of total)")
        return

    if cmd == "show":
        n = int(parts[1]) if len(parts) >= 2 else 10
        rows = dash.selected_rows()
        if not rows:
            print("No data for this selection.")
            return
        _print_rows(rows[:n])
        if len(rows) > n:
            print(f"... ({len(rows)} total, showing {n})")
        return

    if cmd == "series":
        series = dash.view().series
        for name, points in series.countries.items():
            vals = " ".join("-" if v is None else f"{v:.0f}" for _, v in points)
            print(f"{name:<30} {vals}")
        print(f"{'Global total':<30} " + " ".join(f"{v:.0f}" for _, v in series.global_total))
        return

    if cmd == "map":
        n = int(parts[1]) if len(parts) >= 2 else 10
        mt = dash.view().map_table
        for r in mt.head(n).itertuples(index=False):
            print(f"{r.country_code} {r.country_name:<30} {r.death_bucket}")
        print(f"({len(mt)} polygons)")
        return

    if cmd == "year":
        if len(parts) != 2:
            raise ValueError("usage: year <YYYY>")
        dash.select_year(int(parts[1]))
        print(f"Year={dash.state.year}. Rows={len(dash.selected_rows())}")
        return

    if cmd == "groups":
        if len(parts) < 2:
            raise ValueError('usage: groups <g> [<g> ...] | groups all')
        dash.select_groups(_parse_groups(parts[1:]))
        print(f"Groups={', '.join(g.value for g in dash.state.sorted_groups())}. "
              f"Rows={len(dash.selected_rows())}")
        return

    if cmd == "clear":
        dash.clear_search()
        print("Search cleared.")
        return

    if cmd == "reset":
        dash.reset()
        print("State reset.")
        return

    if cmd == "undo":
        print("Undone." if dash.undo() else "Nothing to undo.")
        return

    if cmd == "redo":
        print("Redone." if dash.redo() else "Nothing to redo.")
        return

    if cmd == "export":
        if len(parts) < 3:
            print('Usage: export csv "out.csv"  OR  export json "out.json"')
            return
        fmt, out_path = parts[1].lower(), parts[2]
        if fmt == "csv":
            n = dash.export_csv(out_path)
        elif fmt == "json":
            n = dash.export_json(out_path)
        else:
            print("Unknown export format. Use: csv or json")
            return
        print(f"Exported {n} rows to {out_path}")
        return

    if cmd == "report":
        from .report import generate_docx_report, ReportConfig, DatasetCitation
        if len(parts) < 2:
            raise ValueError('usage: report "<out.docx>"')
        cfg = dash.tables.config
        files = [os.path.basename(p) for p in (cfg.mortality_path, cfg.hdi_path, cfg.geography_path) if p]
        config = ReportConfig(citation=DatasetCitation(file_names=files), command_log=dash.command_log)
        generate_docx_report(dash.view(), parts[1], config=config)
        print(f"Report written to {parts[1]}")
        return

    print("Unknown command. Type 'help'.")


def _print_rows(rows) -> None:
    for r in rows:
        deaths = "n/a" if r.reported_deaths is None else f"{r.reported_deaths:.0f}"
        hdi = "n/a" if r.hdi_value is None else f"{r.hdi_value:.3f}"
        print(f"{r.country_name:<30} {r.country_code} | {r.year} | {r.hdi_group.value:<9} "
              f"| HDI={hdi} | deaths={deaths} ({r.death_bucket.value})")


if __name__ == "__main__":
    sys.exit(main())
