"""Device backends for the BLAS performance benchmarks.

``host`` emulates a device in host memory; ``opencl`` drives a real OpenCL
device and needs pyopencl and pyclblast at import time.
"""

from __future__ import annotations

from .base import DeviceBackend

BACKENDS: tuple[str, ...] = ("opencl", "host")


def make_backend(name: str, *, platform_index: int | None = None, device_index: int | None = None) -> DeviceBackend:
    """Construct the process-wide backend handle passed into every benchmark case."""
    if name == "host":
        from .host import HostBackend

        return HostBackend()
    if name == "opencl":
        from .opencl import OpenCLBackend

        return OpenCLBackend(platform_index=platform_index, device_index=device_index)
    raise KeyError(f"Unknown backend {name!r}. Known: {list(BACKENDS)}")
