from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from blas_perf.backends import make_backend
from blas_perf.backends.base import DeviceBackend

from .baseline import ReferenceBackend, make_reference
from .case import run_case
from .config import BenchSettings, ElementType, ProblemParameters, iter_elem_types, iter_params
from .export import build_results, device_info, git_info, make_record, merge_results, utc_now_iso, write_results

logger = logging.getLogger(__name__)


def find_repo_root() -> Path:
    return Path(__file__).resolve().parents[3]


def run_cases(
    backend: DeviceBackend,
    *,
    elem_types: Iterable[ElementType],
    params_list: Iterable[ProblemParameters],
    settings: BenchSettings,
    reference: ReferenceBackend | None,
) -> list[dict[str, Any]]:
    """Run every (element type, parameters) pair sequentially against one backend."""
    params_list = list(params_list)
    records: list[dict[str, Any]] = []
    for elem in elem_types:
        for params in params_list:
            result = run_case(backend, elem, params, settings=settings, reference=reference)
            records.append(make_record(elem, params, result))
    return records


def format_record_line(rec: dict[str, Any]) -> str:
    res = rec["result"]
    timing = res["timing"]

    def _ms(t: dict[str, Any] | None) -> str:
        return "NA" if t is None or t["ns"] is None else f"{t['ns'] / 1e6:.3f}ms"

    extra = res["fatal_kind"] or res["skip_reason"] or ""
    speedup = timing["speedup"]
    return (
        f"{rec['function']:6s} {rec['case_id']:60s} {res['verdict']:9s} "
        f"device={_ms(timing['device'])} baseline={_ms(timing['baseline'])} "
        f"speedup={'NA' if speedup is None else f'{speedup:.2f}x'} {extra}"
    ).rstrip()


def case_run(
    *,
    params: ProblemParameters,
    elem: str,
    backend: str,
    reference: str,
    settings: BenchSettings,
    fail_on_regression: bool,
    platform_index: int | None = None,
    device_index: int | None = None,
) -> int:
    dev = make_backend(backend, platform_index=platform_index, device_index=device_index)
    records = run_cases(
        dev,
        elem_types=iter_elem_types(elem),
        params_list=[params],
        settings=settings,
        reference=make_reference(reference),
    )
    for rec in records:
        print(format_record_line(rec))

    verdicts = {r["result"]["verdict"] for r in records}
    if "fatal" in verdicts:
        return 1
    if fail_on_regression and "regressed" in verdicts:
        return 1
    return 0


def sweep_run(
    *,
    out_dir: Path,
    param_set: str,
    elem: str,
    backend: str,
    reference: str,
    settings: BenchSettings,
    fail_on_regression: bool,
    platform_index: int | None = None,
    device_index: int | None = None,
) -> int:
    out_dir.mkdir(parents=True, exist_ok=True)
    started_at = utc_now_iso()

    params_list = list(iter_params(param_set))
    elem_types = list(iter_elem_types(elem))
    dev = make_backend(backend, platform_index=platform_index, device_index=device_index)
    logger.info(
        "Sweeping %d parameter set(s) x %d element type(s) on %s",
        len(params_list),
        len(elem_types),
        dev.device_name(),
    )

    records = run_cases(
        dev,
        elem_types=elem_types,
        params_list=params_list,
        settings=settings,
        reference=make_reference(reference),
    )
    results = build_results(
        records,
        started_at=started_at,
        device=device_info(dev),
        settings=settings,
        reference=reference,
        fail_on_regression=fail_on_regression,
        git=git_info(find_repo_root()),
        artifacts_dir=out_dir,
    )

    results_path = out_dir / "results.json"
    if results_path.exists():
        existing = json.loads(results_path.read_text())
        results = merge_results(existing, results)
    write_results(results_path, results)

    summary = results["run"]["summary"]
    logger.info(
        "Sweep finished: %d passed, %d regressed, %d skipped, %d fatal",
        summary["passed"],
        summary["regressed"],
        summary["skipped"],
        summary["fatal"],
    )
    return 0 if results["run"]["status"] == "pass" else 1
