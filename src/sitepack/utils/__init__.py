"""Shared utility helpers."""

from sitepack.utils.paths import atomic_temp_path, write_json_atomically, write_text_atomically
from sitepack.utils.time_utils import now_utc

__all__ = [
    "atomic_temp_path",
    "write_json_atomically",
    "write_text_atomically",
    "now_utc",
]
