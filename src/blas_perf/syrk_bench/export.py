from __future__ import annotations

import json
import platform
import subprocess
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator

from blas_perf.backends.base import DeviceBackend

from .config import BenchSettings, ElementType, ProblemParameters
from .model import CaseResult

SCHEMA_VERSION = "0.1.0"
VERDICTS: tuple[str, ...] = ("skipped", "fatal", "passed", "regressed")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def default_results_schema_path() -> Path:
    return Path(__file__).resolve().parent / "schemas" / "results.schema.json"


def validate_results_schema(results: dict[str, Any], *, schema_path: Path | None = None) -> None:
    schema_path = default_results_schema_path() if schema_path is None else schema_path
    schema = json.loads(schema_path.read_text())
    Draft202012Validator(schema).validate(results)


def git_info(repo_root: Path) -> dict[str, Any]:
    def _run(cmd: list[str]) -> str:
        out = subprocess.check_output(cmd, cwd=repo_root, stderr=subprocess.DEVNULL)
        return out.decode().strip()

    try:
        branch = _run(["git", "branch", "--show-current"])
        commit = _run(["git", "rev-parse", "HEAD"])
        dirty = bool(_run(["git", "status", "--porcelain=v1"]))
        return {"branch": branch, "commit": commit, "dirty": dirty}
    except (OSError, subprocess.CalledProcessError):
        return {"branch": "unknown", "commit": "unknown", "dirty": False}


def make_record(elem: ElementType, params: ProblemParameters, result: CaseResult) -> dict[str, Any]:
    return {
        "function": elem.function_name,
        "elem_type": {"key": elem.key, "name": elem.name, "dtype": elem.dtype},
        "case_id": params.to_axis_value(),
        "params": params.to_dict(),
        "result": result.to_dict(),
    }


def device_info(backend: DeviceBackend) -> dict[str, Any]:
    return {
        "backend": backend.name,
        "name": backend.device_name(),
        "global_mem_bytes": int(backend.available_global_mem_size()),
        "max_alloc_bytes": int(backend.max_mem_alloc_size()),
        "double_precision": bool(backend.supports_double_precision()),
    }


def summarize(records: list[dict[str, Any]]) -> dict[str, int]:
    counts = Counter(r["result"]["verdict"] for r in records)
    return {v: counts.get(v, 0) for v in VERDICTS}


def run_status(summary: dict[str, int], *, fail_on_regression: bool) -> tuple[str, str]:
    """Fatal cases always fail the run; regressions only when asked to."""
    reasons: list[str] = []
    if summary["fatal"]:
        reasons.append(f"{summary['fatal']} case(s) hit a fatal resource/execution error")
    if fail_on_regression and summary["regressed"]:
        reasons.append(f"{summary['regressed']} case(s) slower than baseline")
    return ("fail" if reasons else "pass"), "; ".join(reasons)


def build_results(
    records: list[dict[str, Any]],
    *,
    started_at: str,
    device: dict[str, Any],
    settings: BenchSettings,
    reference: str,
    fail_on_regression: bool,
    git: dict[str, Any],
    artifacts_dir: Path | None = None,
) -> dict[str, Any]:
    summary = summarize(records)
    status, failure_reason = run_status(summary, fail_on_regression=fail_on_regression)
    run_obj: dict[str, Any] = {
        "run_id": f"{git['commit']}@{started_at}",
        "started_at": started_at,
        "finished_at": utc_now_iso(),
        "status": status,
        "failure_reason": failure_reason,
        "summary": summary,
        "git": git,
        "environment": {
            "platform": {
                "os": platform.system().lower(),
                "arch": platform.machine().lower(),
                "python": platform.python_version(),
            },
            "device": device,
        },
        "settings": {"bench": settings.to_dict(), "reference": reference, "fail_on_regression": fail_on_regression},
    }
    if artifacts_dir is not None:
        run_obj["artifacts_dir"] = str(artifacts_dir)

    out = {"schema_version": SCHEMA_VERSION, "run": run_obj, "records": records}
    validate_results_schema(out)
    return out


def _record_key(rec: dict[str, Any]) -> tuple[str, str]:
    return (rec.get("function", ""), rec.get("case_id", ""))


def merge_results(existing: dict[str, Any], new: dict[str, Any]) -> dict[str, Any]:
    """Overlay ``new`` records onto ``existing`` ones; run status is re-derived from the merged set."""
    by_key: dict[tuple[str, str], dict[str, Any]] = {}
    for r in existing.get("records", []) or []:
        by_key[_record_key(r)] = r
    for r in new.get("records", []) or []:
        by_key[_record_key(r)] = r
    records = list(by_key.values())

    merged_run = dict(new["run"])
    merged_run["started_at"] = existing.get("run", {}).get("started_at", merged_run["started_at"])
    summary = summarize(records)
    fail_on_regression = bool(merged_run.get("settings", {}).get("fail_on_regression", False))
    merged_run["summary"] = summary
    merged_run["status"], merged_run["failure_reason"] = run_status(summary, fail_on_regression=fail_on_regression)

    merged = {"schema_version": SCHEMA_VERSION, "run": merged_run, "records": records}
    validate_results_schema(merged)
    return merged


def write_results(path: Path, results: dict[str, Any]) -> None:
    path.write_text(json.dumps(results, indent=2, sort_keys=True) + "\n")
