"""SYRK performance benchmark.

Each case gates on device memory, generates seeded inputs, stages them into
device buffers, times the accelerated SYRK against a host reference and renders
a skipped / fatal / passed / regressed verdict. The package also provides the
sweep driver, a JSON results export and a Markdown report.
"""

from __future__ import annotations
