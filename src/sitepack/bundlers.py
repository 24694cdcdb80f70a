"""Script and style bundler adapters around external engines."""

from __future__ import annotations

import logging
import os
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Sequence

from sitepack.config import BundlersConfig
from sitepack.errors import BundleError
from sitepack.offline import script_file_name, style_file_name
from sitepack.utils.paths import atomic_temp_path

LOGGER = logging.getLogger(__name__)

CSS_IMPORT_RE = re.compile(
    r"@import\s+(?:url\()?\s*([\"']?)([^\)\"';]+)\1\s*\)?\s*([^;]*);",
    re.IGNORECASE,
)
REMOTE_PREFIXES = ("http://", "https://", "//", "data:")
MAX_DIAGNOSTIC_CHARS = 4000


class BundleEngine(Protocol):
    """Produces one bundled file at `output` from the entry file `entry`."""

    def bundle(self, entry: Path, output: Path) -> None: ...


@dataclass(frozen=True, slots=True)
class CommandBundleEngine:
    """Run an external bundler whose argv template uses `{entry}` and `{output}`."""

    command: Sequence[str]
    cwd: Path | None = None
    timeout_seconds: float | None = None

    def render_command(self, entry: Path, output: Path) -> list[str]:
        return [part.format(entry=str(entry), output=str(output)) for part in self.command]

    def bundle(self, entry: Path, output: Path) -> None:
        cmd = self.render_command(entry, output)
        try:
            result = subprocess.run(
                cmd,
                cwd=self.cwd,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self.timeout_seconds,
            )
        except FileNotFoundError as exc:
            raise BundleError(f"Bundler executable not found: {cmd[0]}") from exc
        except subprocess.TimeoutExpired as exc:
            raise BundleError(f"Bundler timed out after {exc.timeout}s: {' '.join(cmd)}") from exc

        if result.returncode != 0:
            diagnostic = (result.stderr or result.stdout or "").strip()[:MAX_DIAGNOSTIC_CHARS]
            raise BundleError(f"{cmd[0]} exited with status {result.returncode}: {diagnostic}")
        if not output.exists():
            raise BundleError(f"{cmd[0]} reported success but did not write {output}")


@dataclass(frozen=True, slots=True)
class ImportInliningEngine:
    """Flatten local `@import` chains into a single stylesheet.

    Each local file is inlined at most once; remote imports are kept as-is.
    """

    encoding: str = "utf-8"

    def bundle(self, entry: Path, output: Path) -> None:
        output.write_text(self.flatten(entry), encoding=self.encoding)

    def flatten(self, entry: Path) -> str:
        return self._inline(entry.resolve(), seen=set())

    def _read(self, path: Path) -> str:
        try:
            return path.read_text(encoding=self.encoding)
        except (OSError, UnicodeDecodeError) as exc:
            raise BundleError(f"Cannot read stylesheet {path}: {exc}") from exc

    def _inline(self, path: Path, seen: set[Path]) -> str:
        seen.add(path)
        text = self._read(path)

        def replace_import(match: re.Match[str]) -> str:
            target = match.group(2).strip()
            media = match.group(3).strip()
            if target.startswith(REMOTE_PREFIXES):
                return match.group(0)
            resolved = (path.parent / target).resolve()
            if not resolved.is_file():
                raise BundleError(f"Unresolved @import '{target}' in {path}")
            if resolved in seen:
                return ""
            inlined = self._inline(resolved, seen)
            if media:
                return f"@media {media} {{\n{inlined}\n}}"
            return inlined

        return CSS_IMPORT_RE.sub(replace_import, text)


def bundle_to(engine: BundleEngine, entry: Path, output_path: Path) -> Path:
    """Run `engine` into a temp file and move it to `output_path` only on success."""

    if not entry.is_file():
        raise BundleError(f"Bundle entry file not found: {entry}")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = atomic_temp_path(output_path)
    try:
        engine.bundle(entry, temp_path)
        os.replace(temp_path, output_path)
    except OSError as exc:
        raise BundleError(f"Bundling {entry} failed: {exc}") from exc
    finally:
        if temp_path.exists():
            temp_path.unlink()
    return output_path


def build_script_bundle(
    engine: BundleEngine,
    entry: Path,
    target_dir: Path,
    artifact_name: str,
    logger: logging.Logger | None = None,
) -> Path:
    """Bundle the script entry module into `{artifact_name}.js`."""

    effective_logger = logger or LOGGER
    output_path = bundle_to(engine, entry, target_dir / script_file_name(artifact_name))
    effective_logger.info("bundle.script entry=%s path=%s", entry, output_path)
    return output_path


def build_style_bundle(
    engine: BundleEngine,
    entry: Path,
    target_dir: Path,
    artifact_name: str,
    logger: logging.Logger | None = None,
) -> Path:
    """Bundle the stylesheet entry into `{artifact_name}.css`."""

    effective_logger = logger or LOGGER
    output_path = bundle_to(engine, entry, target_dir / style_file_name(artifact_name))
    effective_logger.info("bundle.style entry=%s path=%s", entry, output_path)
    return output_path


def engines_from_settings(bundlers: BundlersConfig, project_root: Path) -> tuple[BundleEngine, BundleEngine]:
    """Build the (script, style) engine pair described by the bundler settings."""

    script_engine = CommandBundleEngine(
        command=tuple(bundlers.script_command),
        cwd=project_root,
        timeout_seconds=bundlers.timeout_seconds,
    )
    style_engine: BundleEngine
    if bundlers.style_engine == "inline":
        style_engine = ImportInliningEngine()
    else:
        style_engine = CommandBundleEngine(
            command=tuple(bundlers.style_command),
            cwd=project_root,
            timeout_seconds=bundlers.timeout_seconds,
        )
    return script_engine, style_engine
