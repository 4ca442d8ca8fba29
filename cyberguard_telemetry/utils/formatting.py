"""Human-readable formatting for metric values."""

_BYTE_UNITS = ["B", "KB", "MB", "GB", "TB"]


def format_bytes(num_bytes: float) -> str:
    """Format a byte count with a binary unit suffix, e.g. ``1.5 KB``."""
    if num_bytes <= 0:
        return "0 B"
    value = float(num_bytes)
    for unit in _BYTE_UNITS[:-1]:
        if value < 1024:
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} {_BYTE_UNITS[-1]}"


def format_bandwidth(mbps: float) -> str:
    """Format a throughput given in Mbps as Mbps or Gbps."""
    if mbps < 1000:
        return f"{mbps:.1f} Mbps"
    return f"{mbps / 1000:.1f} Gbps"
