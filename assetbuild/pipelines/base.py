"""
Base classes for compilation pipelines.

All pipelines inherit from Pipeline and return CompileResult.
"""

import fnmatch
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Set, Tuple

from assetbuild.config import BuildMode
from assetbuild.output import OutputDirectoryManager


@dataclass(frozen=True)
class PipelineSpec:
    """
    Static description of one source-to-artifact path.

    Attributes:
        name: Pipeline identity ("style", "script")
        source_dir: Root of the sources
        patterns: File-name globs of tracked sources (e.g. ("*.less",))
        output_dir: Artifact directory
        artifact_suffix: Extension of derived artifacts (e.g. ".css")
        staging_dir: Transient directory for raw compiler output, if used
        post_process: Run the production post-processing chain
    """
    name: str
    source_dir: Path
    patterns: Tuple[str, ...]
    output_dir: Path
    artifact_suffix: str
    staging_dir: Optional[Path] = None
    post_process: bool = False

    @property
    def source_globs(self) -> Tuple[str, ...]:
        return tuple(str(self.source_dir / "**" / p) for p in self.patterns)

    def _relative(self, path: Path) -> Optional[Path]:
        try:
            return Path(path).absolute().relative_to(self.source_dir.absolute())
        except ValueError:
            return None

    def matches(self, path: Path) -> bool:
        """True for a tracked source file at any depth under source_dir."""
        relative = self._relative(path)
        if relative is None or not relative.parts:
            return False
        return any(fnmatch.fnmatch(relative.name, p) for p in self.patterns)

    def is_direct(self, path: Path) -> bool:
        """True for a tracked source file directly inside source_dir."""
        relative = self._relative(path)
        return relative is not None and len(relative.parts) == 1 and self.matches(path)

    def artifact_name(self, path: Path) -> str:
        return f"{Path(path).stem}{self.artifact_suffix}"


@dataclass
class CompileResult:
    """Result of one pipeline invocation. Never persisted."""

    pipeline: str
    success: bool
    produced_files: Set[Path] = field(default_factory=set)
    error: Optional[str] = None
    fatal: bool = True
    duration_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "pipeline": self.pipeline,
            "success": self.success,
            "produced_files": sorted(str(f) for f in self.produced_files),
            "error": self.error,
            "fatal": self.fatal,
            "duration_seconds": self.duration_seconds,
        }


class Pipeline(ABC):
    """
    Abstract base class for compilation pipelines.

    Subclasses implement compile(), which may raise. run() is the invocation
    boundary: it logs and turns every exception into a failed CompileResult,
    so a failure never crosses into another pipeline.
    """

    # Whether a failure of this pipeline fails a release build
    fatal = True

    def __init__(
        self,
        spec: PipelineSpec,
        mode: BuildMode,
        output: OutputDirectoryManager,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize pipeline.

        Args:
            spec: Pipeline description
            mode: Build mode for the whole session
            output: Shared output directory manager
            logger: Logger instance
        """
        self.spec = spec
        self.mode = mode
        self.output = output
        self.name = spec.name
        self.logger = logger or logging.getLogger(f"assetbuild.pipelines.{spec.name}")

    @abstractmethod
    async def compile(self, changed_file: Optional[Path] = None) -> CompileResult:
        """
        Compile sources into the output directory.

        Args:
            changed_file: Restrict compilation to this source, if supported

        Returns:
            CompileResult with produced files

        Raises:
            Exception: If compilation fails
        """
        pass

    def target_for(self, path: Path) -> Optional[Path]:
        """
        File to hand to compile() when a watched source is added or changed.

        None means recompile the whole source set.
        """
        return path

    async def run(self, changed_file: Optional[Path] = None) -> CompileResult:
        """
        Run one invocation with logging and failure isolation.

        Returns:
            CompileResult (never raises for compile errors)
        """
        extra_base = {"pipeline": self.name}
        self.logger.debug(
            f"Starting {self.name} pipeline"
            + (f" for {changed_file.name}" if changed_file else ""),
            extra={**extra_base, "event": "compile_started"},
        )

        start_time = time.time()
        try:
            result = await self.compile(changed_file)
        except Exception as e:
            duration = time.time() - start_time
            self.logger.error(
                f"{self.name} pipeline failed: {e}",
                extra={
                    **extra_base,
                    "event": "compile_failed",
                    "metadata": {"exception": str(e)},
                },
            )
            return CompileResult(
                pipeline=self.name,
                success=False,
                error=str(e),
                fatal=self.fatal,
                duration_seconds=duration,
            )

        result.duration_seconds = time.time() - start_time
        if result.success:
            self.logger.info(
                f"{self.name} pipeline completed: {len(result.produced_files)} artifact(s)",
                extra={
                    **extra_base,
                    "event": "compile_completed",
                    "metadata": {
                        "duration_seconds": result.duration_seconds,
                        "produced_files": len(result.produced_files),
                    },
                },
            )
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name}, mode={self.mode.value})"
