"""
Process memory usage query.

Both memory probes and the status reporter report the resident set size of
the current process, in bytes.
"""

import psutil

_process = psutil.Process()


def memory_usage() -> int:
    """Return the resident set size of this process in bytes."""
    return _process.memory_info().rss


def format_megabytes(n: int) -> str:
    """Format a byte count as decimal megabytes, e.g. 12.345678."""
    return f"{n / 1000000:f}"
