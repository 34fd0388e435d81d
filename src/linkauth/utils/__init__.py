"""Shared utilities."""

from linkauth.utils.clock import Clock, utc_now

__all__ = ["Clock", "utc_now"]
