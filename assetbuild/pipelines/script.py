"""
Script pipeline: TS/JS sources -> bundled artifacts.

The bundling transform is inert until a bundler command is configured.
Failures never leave this pipeline: they are logged and reported as a
non-fatal CompileResult.
"""

import logging
from pathlib import Path
from typing import Optional

from assetbuild.config import BuildMode
from assetbuild.output import OutputDirectoryManager
from assetbuild.pipelines.base import CompileResult, Pipeline, PipelineSpec
from assetbuild.tools.bundler import ScriptBundler


class ScriptPipeline(Pipeline):
    """Placeholder bundling step for script sources."""

    fatal = False

    def __init__(
        self,
        spec: PipelineSpec,
        mode: BuildMode,
        output: OutputDirectoryManager,
        bundler: ScriptBundler,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(spec, mode, output, logger)
        self.bundler = bundler

    async def compile(self, changed_file: Optional[Path] = None) -> CompileResult:
        try:
            await self.bundler.bundle(self.spec.source_dir, self.spec.output_dir, changed_file)
        except Exception as e:
            self.logger.warning(
                f"Script pipeline is inert; bundling failed and was ignored: {e}",
                extra={"pipeline": self.name, "event": "transform_failed"},
            )
            return CompileResult(pipeline=self.name, success=False, error=str(e), fatal=False)

        produced = set()
        if self.bundler.configured and changed_file is not None:
            artifact = self.output.artifact_path(changed_file, self.spec.artifact_suffix)
            if artifact.exists():
                produced.add(artifact)
        return CompileResult(pipeline=self.name, success=True, produced_files=produced, fatal=False)
