"""Configuration helpers for sitro.

Expose `get_settings` as the canonical accessor for environment-driven
configuration. Modules should avoid loading `.env` directly and instead
import from this package to retrieve typed snapshots.
"""

from .settings import SitroSettings, get_settings, host_binary_key


__all__ = ["SitroSettings", "get_settings", "host_binary_key"]
