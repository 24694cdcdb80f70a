"""Typer CLI entrypoint for sitepack."""

from __future__ import annotations

import logging
from pathlib import Path

import typer
import yaml

from sitepack.config import AppSettings, load_settings
from sitepack.errors import SitePackError
from sitepack.logging_utils import configure_logging
from sitepack.manifest import load_project_manifest
from sitepack.pipeline import run_build_from_settings
from sitepack.sanity import verify_build_output

app = typer.Typer(
    add_completion=False,
    help="sitepack static-site build pipeline.",
    no_args_is_help=True,
)

CONFIG_FILE_OPTION = typer.Option(
    None,
    "--config-file",
    help="Optional settings YAML path.",
    exists=False,
    file_okay=True,
    dir_okay=False,
    readable=True,
)
PROJECT_ROOT_OPTION = typer.Option(
    None,
    "--project-root",
    help="Project directory that relative source paths resolve against.",
    file_okay=False,
    dir_okay=True,
)


def _load_and_optionally_configure_logger(
    config_file: Path | None,
    project_root: Path | None,
    configure: bool,
) -> tuple[AppSettings, logging.Logger]:
    settings = load_settings(config_file=config_file, project_root=project_root)
    if configure:
        logger = configure_logging(settings.paths.logs_root / "build.log")
    else:
        logger = logging.getLogger("sitepack")
    return settings, logger


def _with_flag_overrides(settings: AppSettings, debug: bool, no_offline: bool) -> AppSettings:
    updates: dict[str, bool] = {}
    if debug:
        updates["debug"] = True
    if no_offline:
        updates["offline"] = False
    if not updates:
        return settings
    return settings.model_copy(update={"build": settings.build.model_copy(update=updates)})


@app.command("show-config")
def show_config(
    config_file: Path | None = CONFIG_FILE_OPTION,
    project_root: Path | None = PROJECT_ROOT_OPTION,
) -> None:
    """Print the effective configuration after env overrides."""

    settings, _ = _load_and_optionally_configure_logger(config_file, project_root, configure=False)
    rendered = yaml.safe_dump(settings.as_dict(), sort_keys=False)
    typer.echo(rendered)


@app.command("build")
def build(
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Force build.debug on (keep and enable the phone-debug scripts).",
    ),
    no_offline: bool = typer.Option(
        False,
        "--no-offline",
        help="Force build.offline off (skip appcache, service worker and web manifest).",
    ),
    config_file: Path | None = CONFIG_FILE_OPTION,
    project_root: Path | None = PROJECT_ROOT_OPTION,
) -> None:
    """Rebuild the target directory from the project sources."""

    settings, logger = _load_and_optionally_configure_logger(config_file, project_root, configure=True)
    settings = _with_flag_overrides(settings, debug, no_offline)
    try:
        result = run_build_from_settings(settings, logger=logger)
    except SitePackError as exc:
        typer.echo(f"build failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    manifest = result.manifest
    if manifest is not None:
        typer.echo(f"built {manifest.display_name} {manifest.version} successfully")
    typer.echo(f"run_id: {result.run_id}")
    typer.echo(f"target_dir: {settings.paths.target_dir}")
    for path in result.outputs:
        typer.echo(f"output: {path.name}")
    if result.summary_path is not None:
        typer.echo(f"summary_path: {result.summary_path}")


@app.command("sanity")
def sanity(
    config_file: Path | None = CONFIG_FILE_OPTION,
    project_root: Path | None = PROJECT_ROOT_OPTION,
) -> None:
    """Check an existing target directory against the expected output files."""

    settings, logger = _load_and_optionally_configure_logger(config_file, project_root, configure=False)
    try:
        manifest = load_project_manifest(settings.paths.manifest_file, logger=logger)
    except SitePackError as exc:
        typer.echo(f"sanity failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    result = verify_build_output(
        settings.paths.target_dir,
        manifest.artifact_name,
        settings.build.offline,
        logger=logger,
    )
    typer.echo(f"target_dir: {result.target_dir}")
    typer.echo(f"expected_files: {len(result.expected_files)}")
    typer.echo(f"missing_files: {','.join(result.missing_files) or 'none'}")
    typer.echo(f"empty_files: {','.join(result.empty_files) or 'none'}")
    typer.echo(f"unexpected_files: {','.join(result.unexpected_files) or 'none'}")
    if not result.ok:
        raise typer.Exit(code=1)


def main() -> None:
    """CLI script entrypoint."""

    app()


if __name__ == "__main__":
    main()
