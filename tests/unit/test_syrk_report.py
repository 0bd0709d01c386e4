from __future__ import annotations

import json
from pathlib import Path

import pytest

from blas_perf.syrk_bench.report import generate_report, report_run


def _results() -> dict:
    return {
        "schema_version": "0.1.0",
        "run": {
            "status": "fail",
            "failure_reason": "1 case(s) hit a fatal resource/execution error",
            "git": {"branch": "main", "commit": "deadbeef", "dirty": False},
            "summary": {"skipped": 0, "fatal": 1, "passed": 1, "regressed": 0},
            "environment": {"device": {"backend": "host", "name": "Test Device"}},
            "settings": {"reference": "numpy"},
        },
        "records": [
            {
                "function": "ssyrk",
                "case_id": "column/upper/n/N512/K256/lda512/ldc512/offA0/offC0",
                "result": {
                    "verdict": "passed",
                    "fatal_kind": None,
                    "skip_reason": None,
                    "comparable": False,
                    "timing": {
                        "baseline": {"status": "not_supported", "ns": None},
                        "device": {"status": "ok", "ns": 2_500_000},
                        "baseline_gflops": None,
                        "device_gflops": 26.84,
                        "speedup": None,
                    },
                },
            },
            {
                "function": "zsyrk",
                "case_id": "row/lower/t/N64/K32/lda64/ldc64/offA0/offC0",
                "result": {
                    "verdict": "fatal",
                    "fatal_kind": "execution",
                    "skip_reason": None,
                    "comparable": False,
                    "timing": {
                        "baseline": {"status": "ok", "ns": 1_000_000},
                        "device": {"status": "failed", "ns": None},
                        "baseline_gflops": 0.5,
                        "device_gflops": None,
                        "speedup": None,
                    },
                },
            },
        ],
    }


def test_generate_report_contains_tables_per_element_type() -> None:
    md = generate_report(_results())
    assert "SYRK Performance Benchmark Report" in md
    assert "ssyrk (real-single)" in md
    assert "zsyrk (complex-double)" in md
    assert "dsyrk" not in md
    assert "2.500" in md
    assert "not_supported" in md
    assert "no comparison" in md
    assert "execution" in md
    assert "Column Definitions" in md


def test_report_run_writes_report_without_rerunning(tmp_path: Path) -> None:
    (tmp_path / "results.json").write_text(json.dumps(_results()))
    assert report_run(out_dir=tmp_path) == 0
    report_md = (tmp_path / "report.md").read_text()
    assert "SYRK Performance Benchmark Report" in report_md
    assert "Test Device" in report_md


def test_report_run_requires_results(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        report_run(out_dir=tmp_path)


def test_cases_that_never_ran_are_marked_not_run() -> None:
    results = _results()
    results["records"].append(
        {
            "function": "dsyrk",
            "case_id": "column/upper/n/N100000/K100000/lda100000/ldc100000/offA0/offC0",
            "result": {
                "verdict": "skipped",
                "fatal_kind": None,
                "skip_reason": "insufficient_resources",
                "comparable": False,
                "timing": {
                    "baseline": None,
                    "device": None,
                    "baseline_gflops": None,
                    "device_gflops": None,
                    "speedup": None,
                },
            },
        }
    )
    md = generate_report(results)
    assert "dsyrk (real-double)" in md
    row = next(line for line in md.splitlines() if "N100000" in line)
    assert row.count("not run") == 2
    assert "insufficient_resources" in md
