"""Build orchestration: sequence every stage over one frozen configuration."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable
from uuid import uuid4

from sitepack.bundlers import BundleEngine, build_script_bundle, build_style_bundle, engines_from_settings
from sitepack.config import AppSettings, BuildConfiguration, BuildInputs
from sitepack.errors import PackagingError
from sitepack.html_transform import build_html
from sitepack.manifest import ProjectManifest, load_project_manifest
from sitepack.offline import package_offline
from sitepack.output_dir import reset_target_directory
from sitepack.sanity import verify_build_output
from sitepack.utils.paths import write_json_atomically
from sitepack.utils.time_utils import now_utc

LOGGER = logging.getLogger(__name__)

BUILD_SUMMARY_FILE = "build_summary.json"


class BuildState(str, Enum):
    """Orchestrator states, in execution order, plus the terminal states."""

    LOAD_MANIFEST = "LoadManifest"
    RESET_OUTPUT = "ResetOutput"
    GENERATE_ASSETS = "GenerateAssets"
    PACKAGE_OFFLINE = "PackageOffline"
    VERIFY_OUTPUT = "VerifyOutput"
    DONE = "Done"
    FAILED = "Failed"


@dataclass(slots=True)
class BuildContext:
    """Per-build state shared by the stages."""

    inputs: BuildInputs
    config: BuildConfiguration
    script_engine: BundleEngine
    style_engine: BundleEngine
    logger: logging.Logger
    manifest: ProjectManifest | None = None
    outputs: list[Path] = field(default_factory=list)

    def require_manifest(self) -> ProjectManifest:
        if self.manifest is None:
            raise RuntimeError("Project manifest has not been loaded.")
        return self.manifest


def _always(_config: BuildConfiguration) -> bool:
    return True


def _offline_enabled(config: BuildConfiguration) -> bool:
    return config.offline


@dataclass(frozen=True, slots=True)
class BuildStage:
    """One orchestrator stage and its applicability predicate."""

    state: BuildState
    run: Callable[[BuildContext], None]
    applies: Callable[[BuildConfiguration], bool] = _always


def _load_manifest(ctx: BuildContext) -> None:
    ctx.manifest = load_project_manifest(ctx.inputs.manifest_file, logger=ctx.logger)


def _reset_output(ctx: BuildContext) -> None:
    reset_target_directory(ctx.inputs.target_dir, logger=ctx.logger)


def _generate_assets(ctx: BuildContext) -> None:
    manifest = ctx.require_manifest()
    target_dir = ctx.inputs.target_dir
    ctx.outputs.append(
        build_html(
            ctx.inputs.html_template,
            target_dir,
            manifest.brand,
            manifest.artifact_name,
            ctx.config,
            logger=ctx.logger,
        )
    )
    ctx.outputs.append(
        build_script_bundle(
            ctx.script_engine,
            ctx.inputs.script_entry,
            target_dir,
            manifest.artifact_name,
            logger=ctx.logger,
        )
    )
    ctx.outputs.append(
        build_style_bundle(
            ctx.style_engine,
            ctx.inputs.style_entry,
            target_dir,
            manifest.artifact_name,
            logger=ctx.logger,
        )
    )


def _package_offline(ctx: BuildContext) -> None:
    manifest = ctx.require_manifest()
    result = package_offline(
        target_dir=ctx.inputs.target_dir,
        version=manifest.version,
        name=manifest.brand.name,
        short_name=manifest.brand.short_name,
        artifact_name=manifest.artifact_name,
        service_worker_template=ctx.inputs.service_worker_template,
        icon_source=ctx.inputs.icon_file,
        logger=ctx.logger,
    )
    ctx.outputs.extend(result.paths())


def _verify_output(ctx: BuildContext) -> None:
    manifest = ctx.require_manifest()
    result = verify_build_output(
        ctx.inputs.target_dir,
        manifest.artifact_name,
        ctx.config.offline,
        logger=ctx.logger,
    )
    if not result.ok:
        raise PackagingError(
            f"Build output in {ctx.inputs.target_dir} is missing: {', '.join(result.missing_files)}"
        )


BUILD_STAGES: tuple[BuildStage, ...] = (
    BuildStage(BuildState.LOAD_MANIFEST, _load_manifest),
    BuildStage(BuildState.RESET_OUTPUT, _reset_output),
    BuildStage(BuildState.GENERATE_ASSETS, _generate_assets),
    BuildStage(BuildState.PACKAGE_OFFLINE, _package_offline, applies=_offline_enabled),
    BuildStage(BuildState.VERIFY_OUTPUT, _verify_output),
)


@dataclass(frozen=True, slots=True)
class BuildRunResult:
    """Return object for one build run."""

    run_id: str
    state: BuildState
    config: BuildConfiguration
    manifest: ProjectManifest | None
    completed_stages: tuple[BuildState, ...]
    skipped_stages: tuple[BuildState, ...]
    outputs: tuple[Path, ...]
    started_ts: datetime
    duration_seconds: float
    error: str | None = None
    summary_path: Path | None = None

    @property
    def succeeded(self) -> bool:
        return self.state is BuildState.DONE

    def summary(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "state": self.state.value,
            "started_ts": self.started_ts.isoformat(),
            "duration_seconds": round(self.duration_seconds, 3),
            "config": {"debug": self.config.debug, "offline": self.config.offline},
            "project": None
            if self.manifest is None
            else {
                "name": self.manifest.display_name,
                "version": self.manifest.version,
                "artifact_name": self.manifest.artifact_name,
            },
            "completed_stages": [stage.value for stage in self.completed_stages],
            "skipped_stages": [stage.value for stage in self.skipped_stages],
            "outputs": [str(path) for path in self.outputs],
            "error": self.error,
        }


def run_build(
    inputs: BuildInputs,
    config: BuildConfiguration,
    *,
    script_engine: BundleEngine,
    style_engine: BundleEngine,
    reports_root: Path | None = None,
    stages: tuple[BuildStage, ...] = BUILD_STAGES,
    logger: logging.Logger | None = None,
) -> BuildRunResult:
    """Run every applicable stage in order.

    The first stage error stops the build; it is logged once, recorded in the
    run summary, and re-raised unchanged. There is no retry.
    """

    effective_logger = logger or LOGGER
    run_id = f"build-{uuid4().hex[:12]}"
    started_ts = now_utc()
    started_mono = time.monotonic()

    ctx = BuildContext(
        inputs=inputs,
        config=config,
        script_engine=script_engine,
        style_engine=style_engine,
        logger=effective_logger,
    )
    plan = [(stage, stage.applies(config)) for stage in stages]
    completed: list[BuildState] = []
    skipped: list[BuildState] = []

    effective_logger.info(
        "pipeline.start run_id=%s project_root=%s target_dir=%s debug=%s offline=%s",
        run_id,
        inputs.project_root,
        inputs.target_dir,
        config.debug,
        config.offline,
    )

    def finish(state: BuildState, error: str | None) -> BuildRunResult:
        result = BuildRunResult(
            run_id=run_id,
            state=state,
            config=config,
            manifest=ctx.manifest,
            completed_stages=tuple(completed),
            skipped_stages=tuple(skipped),
            outputs=tuple(ctx.outputs),
            started_ts=started_ts,
            duration_seconds=time.monotonic() - started_mono,
            error=error,
        )
        if reports_root is None:
            return result
        summary_path = write_json_atomically(result.summary(), reports_root / BUILD_SUMMARY_FILE)
        return replace(result, summary_path=summary_path)

    for stage, applicable in plan:
        if not applicable:
            skipped.append(stage.state)
            effective_logger.info("pipeline.stage_skipped run_id=%s stage=%s", run_id, stage.state.value)
            continue
        effective_logger.info("pipeline.stage_start run_id=%s stage=%s", run_id, stage.state.value)
        try:
            stage.run(ctx)
        except Exception as exc:
            effective_logger.exception(
                "pipeline.failed run_id=%s stage=%s error=%s",
                run_id,
                stage.state.value,
                exc,
            )
            try:
                finish(BuildState.FAILED, f"{type(exc).__name__}: {exc}")
            except OSError as summary_exc:
                effective_logger.warning(
                    "pipeline.summary_write_failed run_id=%s error=%s",
                    run_id,
                    summary_exc,
                )
            raise
        completed.append(stage.state)

    result = finish(BuildState.DONE, None)
    manifest = ctx.require_manifest()
    effective_logger.info(
        "pipeline.done run_id=%s name=%s version=%s outputs=%s duration_seconds=%.3f",
        run_id,
        manifest.display_name,
        manifest.version,
        len(result.outputs),
        result.duration_seconds,
    )
    return result


def run_build_from_settings(settings: AppSettings, logger: logging.Logger | None = None) -> BuildRunResult:
    """Freeze settings into build inputs, flags and engines, then run the build."""

    inputs = settings.build_inputs()
    script_engine, style_engine = engines_from_settings(settings.bundlers, inputs.project_root)
    return run_build(
        inputs,
        settings.build_configuration(),
        script_engine=script_engine,
        style_engine=style_engine,
        reports_root=settings.paths.reports_root,
        logger=logger,
    )
