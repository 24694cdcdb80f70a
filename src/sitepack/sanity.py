"""Verify a built target directory against the expected output set."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from sitepack.offline import (
    APPCACHE_MANIFEST_FILE,
    INDEX_FILE,
    SERVICE_WORKER_FILE,
    WEB_MANIFEST_FILE,
    offline_file_set,
    script_file_name,
    style_file_name,
)

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BuildSanityResult:
    """Outcome of comparing a target directory with the expected outputs."""

    target_dir: Path
    expected_files: tuple[str, ...]
    missing_files: tuple[str, ...] = field(default_factory=tuple)
    empty_files: tuple[str, ...] = field(default_factory=tuple)
    unexpected_files: tuple[str, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return not self.missing_files

    def as_dict(self) -> dict[str, object]:
        return {
            "target_dir": str(self.target_dir),
            "expected_files": list(self.expected_files),
            "missing_files": list(self.missing_files),
            "empty_files": list(self.empty_files),
            "unexpected_files": list(self.unexpected_files),
            "ok": self.ok,
        }


def expected_output_files(artifact_name: str, offline: bool) -> tuple[str, ...]:
    """Return the exact file set a build must leave in the target directory."""

    if offline:
        return (
            *offline_file_set(artifact_name),
            APPCACHE_MANIFEST_FILE,
            SERVICE_WORKER_FILE,
            WEB_MANIFEST_FILE,
        )
    return (INDEX_FILE, script_file_name(artifact_name), style_file_name(artifact_name))


def verify_build_output(
    target_dir: Path,
    artifact_name: str,
    offline: bool,
    logger: logging.Logger | None = None,
) -> BuildSanityResult:
    effective_logger = logger or LOGGER
    expected = expected_output_files(artifact_name, offline)
    present = {path.name: path for path in target_dir.iterdir()} if target_dir.is_dir() else {}

    missing = tuple(name for name in expected if name not in present)
    empty = tuple(name for name in expected if name in present and present[name].stat().st_size == 0)
    unexpected = tuple(sorted(name for name in present if name not in expected))

    for name in empty:
        effective_logger.warning("sanity.empty_file target_dir=%s file=%s", target_dir, name)
    for name in unexpected:
        effective_logger.warning("sanity.unexpected_file target_dir=%s file=%s", target_dir, name)

    result = BuildSanityResult(
        target_dir=target_dir,
        expected_files=expected,
        missing_files=missing,
        empty_files=empty,
        unexpected_files=unexpected,
    )
    effective_logger.info(
        "sanity.summary target_dir=%s ok=%s missing=%s empty=%s unexpected=%s",
        target_dir,
        result.ok,
        len(missing),
        len(empty),
        len(unexpected),
    )
    return result
