"""Offline packaging: appcache manifest, service worker, web-app manifest and icon."""

from __future__ import annotations

import json
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

from sitepack.errors import PackagingError
from sitepack.utils.paths import atomic_temp_path, write_text_atomically

LOGGER = logging.getLogger(__name__)

INDEX_FILE = "index.html"
ICON_FILE = "icon-192.png"
APPCACHE_MANIFEST_FILE = "manifest.appcache"
SERVICE_WORKER_FILE = "sw.js"
WEB_MANIFEST_FILE = "manifest.json"

ICON_SIZES = "192x192"
ICON_MIME_TYPE = "image/png"

VERSION_TOKEN = '"%%VERSION%%"'
FILES_TOKEN = '"%%FILES%%"'
ARTIFACT_NAME_TOKEN = '"%%ARTIFACT_NAME%%"'


def script_file_name(artifact_name: str) -> str:
    return f"{artifact_name}.js"


def style_file_name(artifact_name: str) -> str:
    return f"{artifact_name}.css"


def offline_file_set(artifact_name: str) -> tuple[str, ...]:
    """Files cached for offline use, in manifest order."""

    return (
        script_file_name(artifact_name),
        style_file_name(artifact_name),
        INDEX_FILE,
        ICON_FILE,
    )


@dataclass(frozen=True, slots=True)
class OfflinePackageResult:
    """Paths written by the offline packager."""

    appcache_path: Path
    service_worker_path: Path
    web_manifest_path: Path
    icon_path: Path

    def paths(self) -> list[Path]:
        return [self.appcache_path, self.service_worker_path, self.web_manifest_path, self.icon_path]


def _compact_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def render_appcache_manifest(version: str, files: Sequence[str]) -> str:
    lines = [
        "CACHE MANIFEST",
        f"# v{version}",
        "NETWORK",
        '"*"',
        "CACHE",
        *files,
    ]
    return "\n".join(lines) + "\n"


def render_service_worker(template_text: str, version: str, files: Sequence[str], artifact_name: str) -> str:
    """Fill the three quoted tokens of the service-worker template."""

    rendered = template_text.replace(VERSION_TOKEN, f'"{version}"')
    rendered = rendered.replace(FILES_TOKEN, _compact_json(list(files)))
    return rendered.replace(ARTIFACT_NAME_TOKEN, _compact_json(artifact_name))


def build_web_manifest(name: str, short_name: str) -> dict[str, Any]:
    return {
        "name": name,
        "short_name": short_name,
        "display": "standalone",
        "start_url": INDEX_FILE,
        "icons": [{"src": ICON_FILE, "sizes": ICON_SIZES, "type": ICON_MIME_TYPE}],
    }


def render_web_manifest(name: str, short_name: str) -> str:
    return _compact_json(build_web_manifest(name, short_name))


def copy_icon(source: Path, target_dir: Path) -> Path:
    """Copy the source icon byte-for-byte to icon-192.png."""

    output_path = target_dir / ICON_FILE
    temp_path = atomic_temp_path(output_path)
    try:
        shutil.copyfile(source, temp_path)
        temp_path.replace(output_path)
    finally:
        if temp_path.exists():
            temp_path.unlink()
    return output_path


def package_offline(
    *,
    target_dir: Path,
    version: str,
    name: str,
    short_name: str,
    artifact_name: str,
    service_worker_template: Path,
    icon_source: Path,
    logger: logging.Logger | None = None,
) -> OfflinePackageResult:
    """Write every offline artifact into `target_dir`.

    Any failure raises `PackagingError`; artifacts written before the failure
    are left in place.
    """

    effective_logger = logger or LOGGER
    files = offline_file_set(artifact_name)
    try:
        appcache_path = write_text_atomically(
            render_appcache_manifest(version, files),
            target_dir / APPCACHE_MANIFEST_FILE,
        )
        sw_template = service_worker_template.read_text(encoding="utf-8")
        service_worker_path = write_text_atomically(
            render_service_worker(sw_template, version, files, artifact_name),
            target_dir / SERVICE_WORKER_FILE,
        )
        web_manifest_path = write_text_atomically(
            render_web_manifest(name, short_name),
            target_dir / WEB_MANIFEST_FILE,
        )
        icon_path = copy_icon(icon_source, target_dir)
    except (OSError, UnicodeDecodeError) as exc:
        raise PackagingError(f"Offline packaging failed: {exc}") from exc

    result = OfflinePackageResult(
        appcache_path=appcache_path,
        service_worker_path=service_worker_path,
        web_manifest_path=web_manifest_path,
        icon_path=icon_path,
    )
    effective_logger.info(
        "offline.write target_dir=%s version=%s files=%s",
        target_dir,
        version,
        ",".join(files),
    )
    return result
