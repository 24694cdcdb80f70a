"""Configuration models and loading logic."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar, Literal

from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

DEFAULT_SETTINGS_FILE = Path("configs/settings.yaml")
SETTINGS_FILE_ENV = "SITEPACK_SETTINGS_FILE"

DEFAULT_SCRIPT_COMMAND = [
    "npx",
    "--no-install",
    "rollup",
    "{entry}",
    "--format",
    "iife",
    "--name",
    "main",
    "--file",
    "{output}",
]
DEFAULT_STYLE_COMMAND = [
    "npx",
    "--no-install",
    "postcss",
    "{entry}",
    "--use",
    "postcss-import",
    "--no-map",
    "--output",
    "{output}",
]


@dataclass(frozen=True, slots=True)
class BuildConfiguration:
    """Read-only build flags fixed at build start."""

    debug: bool = False
    offline: bool = True


@dataclass(frozen=True, slots=True)
class BuildInputs:
    """Resolved source and output locations for one build."""

    project_root: Path
    manifest_file: Path
    html_template: Path
    script_entry: Path
    style_entry: Path
    service_worker_template: Path
    icon_file: Path
    target_dir: Path


class BuildFlagsConfig(BaseModel):
    """Build-time feature flags."""

    debug: bool = False
    offline: bool = True


class PathsConfig(BaseModel):
    """Filesystem paths for sources, outputs, logs and reports."""

    project_root: Path | None = None
    manifest_file: Path = Path("package.json")
    html_template: Path = Path("index.html")
    script_entry: Path = Path("src/main.js")
    style_entry: Path = Path("src/css/main.css")
    service_worker_template: Path = Path("src/service-worker.template.js")
    icon_file: Path = Path("icon.png")
    target_dir: Path = Path("target")
    logs_root: Path = Path("logs")
    reports_root: Path | None = Path("artifacts")

    def resolved(self, project_root: Path) -> "PathsConfig":
        """Return a copy with project-relative paths resolved to absolute paths."""

        root = self.project_root or project_root
        if not root.is_absolute():
            root = project_root / root
        root = root.resolve()
        updates: dict[str, Path | None] = {"project_root": root}
        for field_name in type(self).model_fields:
            if field_name == "project_root":
                continue
            value = getattr(self, field_name)
            if value is None:
                updates[field_name] = None
                continue
            updates[field_name] = value if value.is_absolute() else (root / value).resolve()
        return self.model_copy(update=updates)


class BundlersConfig(BaseModel):
    """External engine invocation settings."""

    script_command: list[str] = Field(default_factory=lambda: list(DEFAULT_SCRIPT_COMMAND), min_length=1)
    style_command: list[str] = Field(default_factory=lambda: list(DEFAULT_STYLE_COMMAND), min_length=1)
    style_engine: Literal["command", "inline"] = "command"
    timeout_seconds: float | None = Field(default=300.0, gt=0.0)


class AppSettings(BaseSettings):
    """Top-level application settings."""

    _yaml_file_override: ClassVar[Path | None] = None

    build: BuildFlagsConfig = Field(default_factory=BuildFlagsConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    bundlers: BundlersConfig = Field(default_factory=BundlersConfig)

    model_config = SettingsConfigDict(
        env_prefix="SITEPACK_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Use YAML defaults while allowing env vars to override values."""

        yaml_file = resolve_settings_file(cls._yaml_file_override)
        yaml_settings = YamlConfigSettingsSource(settings_cls, yaml_file=yaml_file)
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            yaml_settings,
            file_secret_settings,
        )

    def as_dict(self) -> dict[str, object]:
        """Return settings as a standard nested dictionary."""

        return self.model_dump(mode="json")

    def build_configuration(self) -> BuildConfiguration:
        """Freeze the build flags for one build."""

        return BuildConfiguration(debug=self.build.debug, offline=self.build.offline)

    def build_inputs(self) -> BuildInputs:
        """Freeze the resolved source and output paths for one build."""

        paths = self.paths
        if paths.project_root is None:
            raise ValueError("paths.project_root must be resolved before building inputs.")
        return BuildInputs(
            project_root=paths.project_root,
            manifest_file=paths.manifest_file,
            html_template=paths.html_template,
            script_entry=paths.script_entry,
            style_entry=paths.style_entry,
            service_worker_template=paths.service_worker_template,
            icon_file=paths.icon_file,
            target_dir=paths.target_dir,
        )


def find_project_root(start: Path | None = None) -> Path:
    """Locate the project root by traversing upward for config markers."""

    current = (start or Path.cwd()).resolve()
    for candidate in (current, *current.parents):
        if (candidate / DEFAULT_SETTINGS_FILE).exists() or (candidate / "package.json").exists():
            return candidate
    return current


def resolve_settings_file(override: Path | None = None) -> Path:
    """Resolve settings file from explicit override, env var, or default."""

    chosen = override
    if chosen is None:
        env_value = os.getenv(SETTINGS_FILE_ENV)
        if env_value:
            chosen = Path(env_value)
    if chosen is None:
        chosen = DEFAULT_SETTINGS_FILE

    if not chosen.is_absolute():
        chosen = (find_project_root() / chosen).resolve()
    return chosen


def load_settings(config_file: Path | None = None, project_root: Path | None = None) -> AppSettings:
    """Load settings with YAML defaults and environment variable overrides.

    Relative paths resolve against `project_root` when given, otherwise against
    the directory that holds the settings file's `configs/` folder.
    """

    settings_file = resolve_settings_file(config_file)
    AppSettings._yaml_file_override = settings_file
    try:
        settings = AppSettings()
    finally:
        AppSettings._yaml_file_override = None

    if project_root is not None:
        settings = settings.model_copy(
            update={"paths": settings.paths.model_copy(update={"project_root": project_root.resolve()})}
        )
        base = project_root.resolve()
    elif settings_file.parent.name == DEFAULT_SETTINGS_FILE.parent.name:
        base = settings_file.parent.parent.resolve()
    else:
        base = settings_file.parent.resolve()
    resolved_paths = settings.paths.resolved(project_root=base)
    return settings.model_copy(update={"paths": resolved_paths})
