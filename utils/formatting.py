"""Formatting helpers for benchmark output."""


def format_bytes(num_bytes: int) -> str:
    """Format bytes into human-readable string."""
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if abs(num_bytes) < 1024.0:
            return f"{num_bytes:.1f} {unit}"
        num_bytes /= 1024.0
    return f"{num_bytes:.1f} PB"


def format_duration(seconds: float) -> str:
    """Format a duration using the largest unit that keeps it above 1."""
    if seconds >= 1:
        return f"{seconds:.2f} s"
    if seconds >= 1e-3:
        return f"{seconds * 1e3:.2f} ms"
    return f"{seconds * 1e6:.1f} µs"


def format_ratio(baseline: float, optimized: float) -> str:
    """Speedup of optimized over baseline, e.g. '3.2x'."""
    if optimized <= 0:
        return "n/a"
    return f"{baseline / optimized:.1f}x"
