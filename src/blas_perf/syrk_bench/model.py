from __future__ import annotations

from typing import Any, Literal

import attrs

TimingStatus = Literal["ok", "not_supported", "failed"]
Verdict = Literal["skipped", "fatal", "passed", "regressed"]
FatalKind = Literal["allocation", "execution"]
SkipReason = Literal["insufficient_resources", "no_double_precision"]
CaseState = Literal["created", "gated", "staged", "executed", "verdicted", "skipped", "fatal"]


def _check_duration(inst: "TimingResult", _attribute: attrs.Attribute, value: int | None) -> None:
    if inst.status == "ok":
        if value is None or value < 0:
            raise ValueError(f"A valid timing needs a non-negative duration, got {value!r}")
    elif value is not None:
        raise ValueError(f"Timing sentinel {inst.status!r} cannot carry a duration")


@attrs.define(frozen=True, slots=True)
class TimingResult:
    status: TimingStatus
    ns: int | None = attrs.field(default=None, validator=_check_duration)

    @classmethod
    def of(cls, ns: int) -> "TimingResult":
        return cls(status="ok", ns=ns)

    @property
    def is_valid(self) -> bool:
        return self.status == "ok"

    @property
    def ms(self) -> float | None:
        return None if self.ns is None else self.ns / 1e6

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status, "ns": self.ns}


NOT_SUPPORTED = TimingResult(status="not_supported")
FAILED = TimingResult(status="failed")


@attrs.define(frozen=True, slots=True)
class GateDecision:
    admissible: bool
    required_bytes: int
    ceiling_bytes: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "admissible": self.admissible,
            "required_bytes": self.required_bytes,
            "ceiling_bytes": self.ceiling_bytes,
        }


@attrs.define(frozen=True, slots=True)
class CaseResult:
    verdict: Verdict
    problem_size: int
    op_factor: int
    fatal_kind: FatalKind | None = None
    skip_reason: SkipReason | None = None
    gate: GateDecision | None = None
    # None: the path never ran (skipped and allocation-fatal cases).
    baseline: TimingResult | None = None
    device: TimingResult | None = None

    @property
    def comparable(self) -> bool:
        return (
            self.baseline is not None
            and self.device is not None
            and self.baseline.is_valid
            and self.device.is_valid
        )

    @property
    def failed(self) -> bool:
        return self.verdict == "fatal"

    @property
    def slower(self) -> bool:
        return self.verdict == "regressed"

    @property
    def exit_code(self) -> int:
        """``-1`` fatal, ``1`` device not faster than baseline, ``0`` otherwise."""
        if self.failed:
            return -1
        return 1 if self.slower else 0

    def gflops(self, timing: TimingResult | None) -> float | None:
        if timing is None or not timing.is_valid or not timing.ns:
            return None
        return self.op_factor * self.problem_size / timing.ns

    @property
    def speedup(self) -> float | None:
        if not self.comparable:
            return None
        assert self.baseline is not None and self.device is not None
        if not self.device.ns:
            return None
        assert self.baseline.ns is not None
        return self.baseline.ns / self.device.ns

    def to_dict(self) -> dict[str, Any]:
        return {
            "verdict": self.verdict,
            "fatal_kind": self.fatal_kind,
            "skip_reason": self.skip_reason,
            "comparable": self.comparable,
            "gate": None if self.gate is None else self.gate.to_dict(),
            "timing": {
                "baseline": None if self.baseline is None else self.baseline.to_dict(),
                "device": None if self.device is None else self.device.to_dict(),
                "baseline_gflops": self.gflops(self.baseline),
                "device_gflops": self.gflops(self.device),
                "speedup": self.speedup,
            },
            "problem_size": self.problem_size,
            "op_factor": self.op_factor,
        }
