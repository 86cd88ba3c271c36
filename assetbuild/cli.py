"""
CLI interface for assetbuild.

Provides commands: run, build, watch, serve, validate, config.

`run` reproduces the environment-driven behaviour (BUILD_ONLY, BUILD_SERVE,
BUILD_WATCH, WITH_TIMINGS); build/watch/serve pin the mode explicitly.
"""

import asyncio
from pathlib import Path
from typing import List, Optional

import click
import yaml

from assetbuild import __version__
from assetbuild.config import BuildMode, BuildSettings, load_settings, resolve_target
from assetbuild.errors import ConfigError
from assetbuild.orchestrator import Orchestrator, build_pipelines
from assetbuild.output import OutputDirectoryManager
from assetbuild.pipelines import CompileResult
from assetbuild.tools import ReloadNotifier
from assetbuild.utils import (
    format_duration,
    print_banner,
    print_error,
    print_info,
    print_success,
    print_warning,
    setup_logging,
)


def _build_options(f):
    """Options shared by every build command."""
    f = click.option(
        "--verbose",
        is_flag=True,
        help="Enable debug logging",
    )(f)
    f = click.option(
        "--timings",
        is_flag=True,
        help="Log wall time of every external command (WITH_TIMINGS)",
    )(f)
    f = click.option(
        "--only",
        type=click.Choice(["css", "javascript", "all"], case_sensitive=False),
        help="Build a single pipeline (BUILD_ONLY)",
    )(f)
    f = click.option(
        "--config",
        type=click.Path(exists=True, path_type=Path),
        help="Project file (default: ./assetbuild.yaml)",
    )(f)
    return f


def _load(config: Optional[Path], **overrides) -> BuildSettings:
    try:
        settings = load_settings(config)
    except ConfigError as e:
        print_error(f"Configuration error: {e}")
        raise SystemExit(1)
    return settings.with_overrides(**overrides)


def _print_summary(results: List[CompileResult]) -> None:
    for result in results:
        duration = format_duration(result.duration_seconds)
        if result.success:
            print_success(
                f"{result.pipeline:<8} {duration:>8}  {len(result.produced_files)} artifact(s)"
            )
        elif result.fatal:
            print_error(f"{result.pipeline:<8} {duration:>8}  {result.error}")
        else:
            print_warning(f"{result.pipeline:<8} {duration:>8}  ignored: {result.error}")


def _run_build(
    config: Optional[Path],
    mode: Optional[BuildMode],
    only: Optional[str],
    timings: bool,
    verbose: bool,
) -> None:
    settings = _load(
        config,
        mode=mode,
        target=resolve_target(only) if only else None,
        timed=True if timings else None,
        log_level="DEBUG" if verbose else None,
    )
    setup_logging(settings.log_level, settings.log_format, settings.log_file)

    orchestrator = Orchestrator(settings)
    if settings.mode.is_watching:
        print_info(f"{settings.mode.value}: watching for changes (Ctrl-C to stop)")

    try:
        results = asyncio.run(orchestrator.run())
    except KeyboardInterrupt:
        print_info("Stopped")
        raise SystemExit(0)

    _print_summary(results)
    if any(not r.success and r.fatal for r in results):
        raise SystemExit(1)
    raise SystemExit(0)


@click.group()
@click.version_option(version=__version__, prog_name="assetbuild")
def main():
    """
    assetbuild - style and script asset builder.

    Compiles LESS to CSS (post-processed for release) and runs the script
    bundling step, once or on every source change.
    """
    pass


@main.command()
@_build_options
def run(config, only, timings, verbose):
    """
    Build using BUILD_* environment flags.

    Examples:

      # Release build
      assetbuild run

      # Watch styles only
      BUILD_WATCH=true BUILD_ONLY=css assetbuild run
    """
    _run_build(config, None, only, timings, verbose)


@main.command()
@_build_options
def build(config, only, timings, verbose):
    """One-shot release build with post-processing."""
    _run_build(config, BuildMode.RELEASE, only, timings, verbose)


@main.command()
@_build_options
def watch(config, only, timings, verbose):
    """Rebuild on every source change (no minification)."""
    _run_build(config, BuildMode.WATCH, only, timings, verbose)


@main.command()
@_build_options
def serve(config, only, timings, verbose):
    """Watch and notify the live-reload server after rebuilds."""
    _run_build(config, BuildMode.SERVE, only, timings, verbose)


@main.command()
@click.option(
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Project file (default: ./assetbuild.yaml)",
)
def validate(config):
    """
    Validate project layout and external tools.

    Checks:
    - Source directories exist
    - Compiler, post-processor, bundler and reload executables are on PATH
    - postcss config exists
    """
    settings = _load(config)
    output = OutputDirectoryManager(settings.path(settings.output_dir))
    pipelines = build_pipelines(settings, output)

    errors: List[str] = []
    warnings: List[str] = []

    for pipeline in pipelines.values():
        if not pipeline.spec.source_dir.is_dir():
            message = f"{pipeline.name}: source directory not found: {pipeline.spec.source_dir}"
            (errors if pipeline.fatal else warnings).append(message)

    style = pipelines["style"]
    script = pipelines["script"]
    adapters = [
        style.compiler,
        style.post_processor,
        script.bundler,
        ReloadNotifier(settings.reload, cwd=settings.root),
    ]
    for adapter in adapters:
        report = adapter.validate()
        errors.extend(report["errors"])
        warnings.extend(report["warnings"])

    if not style.postcss_config.exists():
        warnings.append(f"postcss config not found: {style.postcss_config}")

    for warning in warnings:
        print_warning(warning)
    for error in errors:
        print_error(error)

    if errors:
        print_error("Validation failed")
        raise SystemExit(1)
    print_success("Project configuration is valid")


@main.command("config")
@click.option(
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Project file (default: ./assetbuild.yaml)",
)
def show_config(config):
    """Print the resolved settings."""
    settings = _load(config)
    print_banner("assetbuild settings")
    click.echo(yaml.safe_dump(settings.to_dict(), sort_keys=False))


if __name__ == "__main__":
    main()
