from __future__ import annotations

from pathlib import Path

import jsonschema
import pytest

from blas_perf.backends.host import HostBackend
from blas_perf.syrk_bench.config import ELEM_TYPES, BenchSettings, ProblemParameters
from blas_perf.syrk_bench.export import (
    build_results,
    default_results_schema_path,
    device_info,
    make_record,
    merge_results,
    validate_results_schema,
)
from blas_perf.syrk_bench.model import FAILED, CaseResult, TimingResult

GIT = {"branch": "main", "commit": "deadbeef", "dirty": False}


def _record(verdict: str, *, key: str = "s", n: int = 64) -> dict:
    kwargs: dict = {}
    if verdict == "fatal":
        kwargs = {"fatal_kind": "execution", "device": FAILED}
    elif verdict == "skipped":
        kwargs = {"skip_reason": "insufficient_resources"}
    else:
        kwargs = {"baseline": TimingResult.of(2000), "device": TimingResult.of(1000 if verdict == "passed" else 3000)}
    params = ProblemParameters(n=n, k=32)
    result = CaseResult(verdict=verdict, problem_size=params.problem_size, op_factor=1, **kwargs)  # type: ignore[arg-type]
    return make_record(ELEM_TYPES[key], params, result)


def _build(records: list[dict], *, fail_on_regression: bool = False) -> dict:
    return build_results(
        records,
        started_at="2026-01-01T00:00:00Z",
        device=device_info(HostBackend()),
        settings=BenchSettings(),
        reference="numpy",
        fail_on_regression=fail_on_regression,
        git=GIT,
        artifacts_dir=Path("/tmp/out"),
    )


def test_schema_file_is_packaged() -> None:
    assert default_results_schema_path().exists()


def test_results_validate_and_summarize() -> None:
    results = _build([_record("passed"), _record("skipped", n=65), _record("regressed", n=66)])
    assert results["run"]["status"] == "pass"
    assert results["run"]["summary"] == {"skipped": 1, "fatal": 0, "passed": 1, "regressed": 1}
    assert results["records"][0]["function"] == "ssyrk"


def test_fatal_case_fails_the_run() -> None:
    results = _build([_record("passed"), _record("fatal", n=65)])
    assert results["run"]["status"] == "fail"
    assert "fatal" in results["run"]["failure_reason"]


@pytest.mark.parametrize("fail_on_regression,status", [(False, "pass"), (True, "fail")])
def test_regression_fails_the_run_only_on_request(fail_on_regression: bool, status: str) -> None:
    results = _build([_record("regressed")], fail_on_regression=fail_on_regression)
    assert results["run"]["status"] == status


def test_schema_rejects_unknown_verdict() -> None:
    results = _build([_record("passed")])
    results["records"][0]["result"]["verdict"] = "maybe"
    with pytest.raises(jsonschema.ValidationError):
        validate_results_schema(results)


def test_merge_overlays_records_and_rederives_status() -> None:
    existing = _build([_record("fatal"), _record("passed", n=65)])
    assert existing["run"]["status"] == "fail"

    rerun = _build([_record("passed")])
    merged = merge_results(existing, rerun)
    assert len(merged["records"]) == 2
    assert merged["run"]["status"] == "pass"
    assert merged["run"]["summary"]["passed"] == 2
    assert merged["run"]["started_at"] == existing["run"]["started_at"]


def test_skipped_case_exports_no_timing() -> None:
    results = _build([_record("skipped")])
    timing = results["records"][0]["result"]["timing"]
    assert timing["baseline"] is None
    assert timing["device"] is None
    assert timing["speedup"] is None
