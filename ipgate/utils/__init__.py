"""Utility helpers."""
from .addresses import FORWARDED_FOR, IPAddress, client_address, parse_address  # noqa: F401
from .time import compute_expiry, ensure_utc, next_boundary, utc_now  # noqa: F401
