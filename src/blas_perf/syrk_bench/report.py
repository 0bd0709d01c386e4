from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from mdutils.mdutils import MdUtils  # type: ignore[import-untyped]

from .config import ELEM_TYPES
from .export import VERDICTS

TABLE_COLUMNS: list[str] = [
    "case",
    "verdict",
    "device_ms",
    "baseline_ms",
    "speedup",
    "device_gflops",
    "baseline_gflops",
    "note",
]


def _load_results(path: Path) -> dict[str, Any]:
    return json.loads(path.read_text())


def _format_float(v: float | None, digits: int = 3) -> str:
    if v is None:
        return "NA"
    return f"{v:.{digits}f}"


def _format_ms(timing: dict[str, Any] | None) -> str:
    if timing is None:
        return "not run"
    if timing.get("status") != "ok" or timing.get("ns") is None:
        return str(timing.get("status", "NA"))
    return _format_float(timing["ns"] / 1e6)


def _record_row(rec: dict[str, Any]) -> list[str]:
    res = rec["result"]
    timing = res["timing"]
    note = res.get("fatal_kind") or res.get("skip_reason") or ("" if res.get("comparable") else "no comparison")
    return [
        f"`{rec['case_id']}`",
        res["verdict"],
        _format_ms(timing["device"]),
        _format_ms(timing["baseline"]),
        _format_float(timing.get("speedup"), 2),
        _format_float(timing.get("device_gflops"), 2),
        _format_float(timing.get("baseline_gflops"), 2),
        note,
    ]


def build_report(results: dict[str, Any], *, file_name: str = "report") -> MdUtils:
    run = results.get("run", {})
    records = list(results.get("records", []))

    md = MdUtils(file_name=file_name, title="SYRK Performance Benchmark Report")
    md.new_header(level=1, title="Run")
    device = run.get("environment", {}).get("device", {})
    md.new_list(
        [
            f"Status: `{run.get('status', '')}`" + (f" ({run['failure_reason']})" if run.get("failure_reason") else ""),
            f"Commit: `{run.get('git', {}).get('commit', 'unknown')}`",
            f"Device: `{device.get('name', 'unknown')}` via `{device.get('backend', 'unknown')}`",
            f"Reference: `{run.get('settings', {}).get('reference', 'unknown')}`",
            f"Started: `{run.get('started_at', '')}`, finished: `{run.get('finished_at', '')}`",
        ]
    )

    md.new_header(level=1, title="Summary")
    summary = run.get("summary", {})
    cells = ["verdict", "count"]
    for v in VERDICTS:
        cells += [v, str(summary.get(v, 0))]
    md.new_table(columns=2, rows=len(VERDICTS) + 1, text=cells, text_align="left")

    for elem in ELEM_TYPES.values():
        elem_records = [r for r in records if r.get("function") == elem.function_name]
        if not elem_records:
            continue
        md.new_header(level=2, title=f"{elem.function_name} ({elem.name})")
        cells = list(TABLE_COLUMNS)
        for rec in sorted(elem_records, key=lambda r: r["case_id"]):
            cells += _record_row(rec)
        md.new_table(columns=len(TABLE_COLUMNS), rows=len(elem_records) + 1, text=cells, text_align="left")

    md.new_header(level=1, title="Column Definitions")
    md.new_list(
        [
            "`case`: `order/uplo/transA/N/K/lda/ldc/offA/offC` of the problem.",
            "`verdict`: `passed` (device faster, or no baseline), `regressed` (device not faster than baseline), "
            "`skipped` (insufficient resources or no double precision), `fatal` (allocation or execution failure).",
            "`device_ms`: best device time from flush to completion; sentinels are shown verbatim and `not run` marks skipped or allocation-fatal cases.",
            "`baseline_ms`: best host reference time; `not_supported` means no comparison was possible.",
            "`speedup`: `baseline_ms / device_ms`.",
            "`*_gflops`: `op_factor * N * N * K / time`, with `op_factor` 1 for real and 4 for complex types.",
        ]
    )
    return md


def generate_report(results: dict[str, Any]) -> str:
    return build_report(results).get_md_text()


def report_run(*, out_dir: Path) -> int:
    results_path = out_dir / "results.json"
    if not results_path.exists():
        raise FileNotFoundError(f"Missing results.json at {results_path}")

    results = _load_results(results_path)
    build_report(results, file_name=str(out_dir / "report")).create_md_file()
    return 0
