"""
Style pipeline: LESS sources -> CSS artifacts.

Each invocation compiles into a private staging directory, then either runs
the production post-processing chain (release) or copies the staged CSS
verbatim (watch/serve), and always removes staging before returning.
"""

import asyncio
import logging
import shutil
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Iterable, List, Optional, Set

from assetbuild.config import BuildMode
from assetbuild.output import OutputDirectoryManager
from assetbuild.pipelines.base import CompileResult, Pipeline, PipelineSpec
from assetbuild.tools.less import LessCompiler
from assetbuild.tools.postcss import PostCssProcessor


logger = logging.getLogger(__name__)


def _remove_tree(path: Path) -> None:
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not remove staging directory {path}: {e}")


def _copy_files(files: Iterable[Path], destination: Path) -> Set[Path]:
    copied = set()
    for f in files:
        target = destination / f.name
        shutil.copyfile(f, target)
        copied.add(target)
    return copied


@asynccontextmanager
async def staging_area(path: Path) -> AsyncIterator[Path]:
    """
    Scoped staging directory.

    Created if absent; removed on every exit path, including failures and
    cancellation.
    """
    path.mkdir(parents=True, exist_ok=True)
    try:
        yield path
    finally:
        await asyncio.shield(asyncio.to_thread(_remove_tree, path))


class StylePipeline(Pipeline):
    """Compiles style sources to CSS in the output directory."""

    def __init__(
        self,
        spec: PipelineSpec,
        mode: BuildMode,
        output: OutputDirectoryManager,
        compiler: LessCompiler,
        post_processor: PostCssProcessor,
        postcss_config: Path,
        logger: Optional[logging.Logger] = None,
    ):
        if spec.staging_dir is None:
            raise ValueError("Style pipeline requires a staging directory")
        super().__init__(spec, mode, output, logger)
        self.compiler = compiler
        self.post_processor = post_processor
        self.postcss_config = postcss_config

    def target_for(self, path: Path) -> Optional[Path]:
        # Any file may be an imported partial: rebuild every entry.
        return None

    async def compile(self, changed_file: Optional[Path] = None) -> CompileResult:
        async with staging_area(self.spec.staging_dir) as staging:
            await self.compiler.compile(self.spec.source_dir, staging, changed_file)

            staged: List[Path] = sorted(staging.glob("*.css"))
            if not staged:
                self.logger.warning(
                    "Style compiler produced no CSS",
                    extra={"pipeline": self.name, "event": "compile_empty"},
                )
                return CompileResult(pipeline=self.name, success=True)

            if self.spec.post_process:
                await self.post_processor.process(
                    staged,
                    self.spec.output_dir,
                    self.postcss_config,
                    production=self.mode == BuildMode.RELEASE,
                )
                produced = {self.spec.output_dir / f.name for f in staged}
            else:
                produced = await asyncio.to_thread(_copy_files, staged, self.spec.output_dir)

        return CompileResult(pipeline=self.name, success=True, produced_files=produced)
