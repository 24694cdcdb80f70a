"""Guarantee an empty target directory before a build."""

from __future__ import annotations

import logging
import os
import shutil
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from sitepack.errors import FilesystemError

LOGGER = logging.getLogger(__name__)

DEFAULT_DELETE_WORKERS = 8


def _delete_entry(entry: Path) -> None:
    try:
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink()
    except FileNotFoundError:
        pass


def remove_dir_if_exists(target_dir: Path, *, max_workers: int = DEFAULT_DELETE_WORKERS) -> bool:
    """Delete `target_dir` and its entries; return False when it did not exist.

    Entries are deleted concurrently and joined before the directory itself is
    removed.
    """

    try:
        entries = list(target_dir.iterdir())
    except FileNotFoundError:
        return False
    except OSError as exc:
        raise FilesystemError(f"Cannot list target directory {target_dir}: {exc}") from exc

    if entries:
        with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(entries)))) as pool:
            futures = [pool.submit(_delete_entry, entry) for entry in entries]
        errors = [exc for exc in (future.exception() for future in futures) if exc is not None]
        if errors:
            raise FilesystemError(f"Cannot clear target directory {target_dir}: {errors[0]}") from errors[0]

    try:
        os.rmdir(target_dir)
    except FileNotFoundError:
        pass
    except OSError as exc:
        raise FilesystemError(f"Cannot remove target directory {target_dir}: {exc}") from exc
    return True


def reset_target_directory(target_dir: Path, logger: logging.Logger | None = None) -> Path:
    """Remove `target_dir` if present, then create it fresh and empty."""

    effective_logger = logger or LOGGER
    existed = remove_dir_if_exists(target_dir)
    try:
        target_dir.mkdir(parents=True)
    except OSError as exc:
        raise FilesystemError(f"Cannot create target directory {target_dir}: {exc}") from exc
    effective_logger.info("output_dir.reset target_dir=%s existed=%s", target_dir, existed)
    return target_dir
