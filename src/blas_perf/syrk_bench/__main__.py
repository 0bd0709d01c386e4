from __future__ import annotations

import argparse
import logging
from pathlib import Path

from blas_perf.backends import BACKENDS

from .baseline import REFERENCES
from .config import ORDERS, TRANSPOSES, UPLOS, BenchSettings, ProblemParameters
from .report import report_run
from .sweep import case_run, sweep_run


def _abs_path(p: str) -> Path:
    return Path(p).expanduser().resolve()


def _positive_int(s: str) -> int:
    v = int(s)
    if v < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {v}")
    return v


def _non_negative_int(s: str) -> int:
    v = int(s)
    if v < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {v}")
    return v


def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument("--elem", default="all", help="Element type key s/d/c/z (or 'all').")
    p.add_argument("--backend", default="opencl", choices=list(BACKENDS))
    p.add_argument("--platform", type=int, default=None, help="OpenCL platform index (env: BLAS_PERF_OPENCL_PLATFORM).")
    p.add_argument("--device", type=int, default=None, help="OpenCL device index (env: BLAS_PERF_OPENCL_DEVICE).")
    p.add_argument("--reference", default="numpy", choices=list(REFERENCES), help="Host baseline backend.")
    p.add_argument("--repeats", type=_positive_int, default=1, help="Timed repetitions per path; the best is kept.")
    p.add_argument("--seed", type=int, default=12345)
    p.add_argument("--buffer-divisor", type=_positive_int, default=3, help="Global memory divisor used by the resource gate.")
    p.add_argument("--allow-row-major", action="store_true", help="Let the baseline run row-major problems.")
    p.add_argument("--random-alpha", action="store_true", help="Draw alpha from the seeded generator.")
    p.add_argument("--random-beta", action="store_true", help="Draw beta from the seeded generator.")
    p.add_argument("--fail-on-regression", action="store_true", help="Exit non-zero when the device is not faster.")


def _settings_from_ns(ns: argparse.Namespace) -> BenchSettings:
    return BenchSettings(
        buffer_divisor=ns.buffer_divisor,
        repeats=ns.repeats,
        seed=ns.seed,
        use_alpha=not ns.random_alpha,
        use_beta=not ns.random_beta,
        allow_row_major=ns.allow_row_major,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="blas_perf.syrk_bench",
        description="SYRK performance benchmark: accelerated device vs host baseline.",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="-v for INFO, -vv for DEBUG.")
    sub = parser.add_subparsers(dest="cmd", required=True)

    run = sub.add_parser("run", help="Run one parameter set for the selected element type(s).")
    run.add_argument("--n", type=_positive_int, required=True)
    run.add_argument("--k", type=_positive_int, required=True)
    run.add_argument("--order", default="column", choices=list(ORDERS))
    run.add_argument("--uplo", default="upper", choices=list(UPLOS))
    run.add_argument("--trans-a", default="n", choices=list(TRANSPOSES))
    run.add_argument("--lda", type=_non_negative_int, default=0, help="0 selects the tightest legal value.")
    run.add_argument("--ldc", type=_non_negative_int, default=0, help="0 selects the tightest legal value.")
    run.add_argument("--off-a", type=_non_negative_int, default=0)
    run.add_argument("--off-c", type=_non_negative_int, default=0)
    run.add_argument("--alpha", type=complex, default=1.0)
    run.add_argument("--beta", type=complex, default=1.0)
    _add_common(run)

    sweep = sub.add_parser("sweep", help="Run a named parameter set and write results.json.")
    sweep.add_argument("--out-dir", type=_abs_path, required=True)
    sweep.add_argument("--param-set", default="smoke", help="Named parameter set (or 'all').")
    _add_common(sweep)

    report = sub.add_parser("report", help="Generate report.md from results.json (no benchmark run).")
    report.add_argument("--out-dir", type=_abs_path, required=True)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    ns = parser.parse_args(argv)

    level = logging.WARNING if ns.verbose == 0 else (logging.INFO if ns.verbose == 1 else logging.DEBUG)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    if ns.cmd == "run":
        params = ProblemParameters(
            n=ns.n,
            k=ns.k,
            order=ns.order,
            uplo=ns.uplo,
            trans_a=ns.trans_a,
            lda=ns.lda,
            ldc=ns.ldc,
            off_a=ns.off_a,
            off_c=ns.off_c,
            alpha=ns.alpha,
            beta=ns.beta,
        )
        return case_run(
            params=params,
            elem=ns.elem,
            backend=ns.backend,
            reference=ns.reference,
            settings=_settings_from_ns(ns),
            fail_on_regression=ns.fail_on_regression,
            platform_index=ns.platform,
            device_index=ns.device,
        )
    if ns.cmd == "sweep":
        return sweep_run(
            out_dir=ns.out_dir,
            param_set=ns.param_set,
            elem=ns.elem,
            backend=ns.backend,
            reference=ns.reference,
            settings=_settings_from_ns(ns),
            fail_on_regression=ns.fail_on_regression,
            platform_index=ns.platform,
            device_index=ns.device,
        )
    if ns.cmd == "report":
        return report_run(out_dir=ns.out_dir)

    raise AssertionError(f"Unhandled cmd: {ns.cmd}")


if __name__ == "__main__":
    raise SystemExit(main())
