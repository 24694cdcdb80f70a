"""Load project metadata from the JSON project descriptor."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from sitepack.errors import ManifestError

LOGGER = logging.getLogger(__name__)


class Brand(BaseModel):
    """Branding strings substituted into the HTML template and web-app manifest."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str
    short_name: str = Field(alias="shortName")
    description: str


class BuildSection(BaseModel):
    """The `build` block of the project descriptor."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    artifact_name: str = Field(alias="artifactName", min_length=1)


class ProjectManifest(BaseModel):
    """Immutable project metadata for one build."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str | None = None
    version: str
    brand: Brand
    build: BuildSection

    @property
    def artifact_name(self) -> str:
        return self.build.artifact_name

    @property
    def display_name(self) -> str:
        """Package name when declared, otherwise the brand name."""

        return self.name or self.brand.name


def _describe_validation_error(exc: ValidationError) -> str:
    parts: list[str] = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error["loc"])
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)


def load_project_manifest(path: Path, logger: logging.Logger | None = None) -> ProjectManifest:
    """Read and validate the project descriptor at `path`."""

    effective_logger = logger or LOGGER
    try:
        raw_text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ManifestError(f"Cannot read project descriptor {path}: {exc}") from exc

    try:
        payload = json.loads(raw_text)
    except json.JSONDecodeError as exc:
        raise ManifestError(f"Project descriptor {path} is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise ManifestError(f"Project descriptor {path} must contain a JSON object.")

    try:
        manifest = ProjectManifest.model_validate(payload)
    except ValidationError as exc:
        raise ManifestError(f"Project descriptor {path} is incomplete: {_describe_validation_error(exc)}") from exc

    effective_logger.info(
        "manifest.loaded path=%s name=%s version=%s artifact_name=%s",
        path,
        manifest.display_name,
        manifest.version,
        manifest.artifact_name,
    )
    return manifest
