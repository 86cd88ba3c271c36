"""
Top-level build orchestration.

The orchestrator selects pipelines from the target selector, ensures the
output directory exists, and then either runs each selected pipeline once,
concurrently (release), or starts paused watchers, runs them once, and then
lets the watch coordinator drive them until the session is stopped
(watch/serve).

It is the outermost catch boundary: pipeline failures are logged and
returned as results, never raised, and never cancel sibling pipelines.
"""

import asyncio
import logging
import time
from typing import Dict, List, Optional, Tuple

from assetbuild.config import BuildMode, BuildSettings, TargetSelector
from assetbuild.output import OutputDirectoryManager
from assetbuild.pipelines import (
    CompileResult,
    Pipeline,
    PipelineSpec,
    ScriptPipeline,
    StylePipeline,
)
from assetbuild.tools import LessCompiler, PostCssProcessor, ReloadNotifier, ScriptBundler
from assetbuild.watch import WatchCoordinator, WatchHandle


logger = logging.getLogger(__name__)

STYLE = "style"
SCRIPT = "script"

TARGET_PIPELINES: Dict[TargetSelector, Tuple[str, ...]] = {
    TargetSelector.ALL: (STYLE, SCRIPT),
    TargetSelector.STYLE_ONLY: (STYLE,),
    TargetSelector.SCRIPT_ONLY: (SCRIPT,),
}

STYLE_PATTERNS = ("*.less",)
SCRIPT_PATTERNS = ("*.ts", "*.js")


def build_pipelines(
    settings: BuildSettings, output: OutputDirectoryManager
) -> Dict[str, Pipeline]:
    """Construct both pipelines from settings."""
    style_spec = PipelineSpec(
        name=STYLE,
        source_dir=settings.path(settings.styles_dir),
        patterns=STYLE_PATTERNS,
        output_dir=output.output_dir,
        artifact_suffix=".css",
        staging_dir=settings.path(settings.staging_dir),
        post_process=settings.mode.post_process,
    )
    script_spec = PipelineSpec(
        name=SCRIPT,
        source_dir=settings.path(settings.scripts_dir),
        patterns=SCRIPT_PATTERNS,
        output_dir=output.output_dir,
        artifact_suffix=".js",
    )

    tool_args = {"cwd": settings.root, "timed": settings.timed}
    return {
        STYLE: StylePipeline(
            style_spec,
            settings.mode,
            output,
            compiler=LessCompiler(settings.style_compiler, **tool_args),
            post_processor=PostCssProcessor(settings.post_processor, **tool_args),
            postcss_config=settings.path(settings.postcss_config),
        ),
        SCRIPT: ScriptPipeline(
            script_spec,
            settings.mode,
            output,
            bundler=ScriptBundler(settings.bundler, **tool_args),
        ),
    }


class Orchestrator:
    """Runs the selected pipelines for one process lifetime."""

    def __init__(
        self,
        settings: BuildSettings,
        pipelines: Optional[Dict[str, Pipeline]] = None,
        output: Optional[OutputDirectoryManager] = None,
    ):
        """
        Args:
            settings: Resolved build settings
            pipelines: Pipelines by name (built from settings if omitted)
            output: Output directory manager (built from settings if omitted)
        """
        self.settings = settings
        self.output = output or OutputDirectoryManager(settings.path(settings.output_dir))
        self.pipelines = pipelines if pipelines is not None else build_pipelines(settings, self.output)
        self.reloader = ReloadNotifier(settings.reload, cwd=settings.root, timed=settings.timed)
        self.coordinator = WatchCoordinator(self.output, on_compiled=self._after_compile)
        self._handle: Optional[WatchHandle] = None
        self._stopping = False

    def selected(self) -> List[Pipeline]:
        """Pipelines chosen by the target selector."""
        names = TARGET_PIPELINES[self.settings.target]
        return [self.pipelines[name] for name in names if name in self.pipelines]

    async def _guarded(self, pipeline: Pipeline) -> CompileResult:
        try:
            return await pipeline.run()
        except Exception as e:
            logger.exception(
                f"{pipeline.name} pipeline crashed: {e}",
                extra={"pipeline": pipeline.name, "event": "pipeline_crashed"},
            )
            return CompileResult(
                pipeline=pipeline.name, success=False, error=str(e), fatal=pipeline.fatal
            )

    async def run_once(self, pipelines: List[Pipeline]) -> List[CompileResult]:
        """Run each pipeline once, concurrently."""
        return list(await asyncio.gather(*(self._guarded(p) for p in pipelines)))

    async def _after_compile(self, result: CompileResult) -> None:
        if self.settings.mode != BuildMode.SERVE:
            return
        if result.success and result.produced_files:
            await self.reloader.notify(result.produced_files)

    def stop(self) -> None:
        """Ask a running watch session to shut down."""
        self._stopping = True
        if self._handle is not None:
            self._handle.stop_event.set()

    async def run(self) -> List[CompileResult]:
        """
        Run the build for the configured mode.

        Release returns after every selected pipeline finished. Watch and
        serve return only after stop() (or external interruption).

        Returns:
            Results of the one-shot (release) or initial (watch) compilation
        """
        mode = self.settings.mode
        self.output.ensure()
        selected = self.selected()

        logger.info(
            f"Building {', '.join(p.name for p in selected)} in {mode.value} mode",
            extra={"event": "build_started", "metadata": {"mode": mode.value}},
        )

        if mode.is_watching:
            # Watch before the initial build so edits made during it are queued.
            self._handle = self.coordinator.start(selected, paused=True)
            if self._stopping:
                self._handle.stop_event.set()

        try:
            start_time = time.time()
            results = await self.run_once(selected)
            logger.debug(
                f"Initial build finished in {time.time() - start_time:.3f}s",
                extra={"event": "build_finished"},
            )

            if self._handle is None:
                return results

            for result in results:
                await self._after_compile(result)

            self._handle.resume()
            await self._handle.wait()
        finally:
            if self._handle is not None:
                await self.coordinator.stop(self._handle)
                self._handle = None

        return results
