"""
Error classes for assetbuild.

These error types mark where a failure is recovered:
- CompileFailure: an external compiler or post-processor exited non-zero
  (or could not be started). Recovered at the pipeline invocation boundary.
- TransformFailure: the script bundler failed. Recovered inside the script
  pipeline, never surfaced to the orchestrator.
- ConfigError: the project file could not be read. Environment flags never
  raise; unknown values fall back to defaults.

Errors never cross pipeline boundaries: a style failure must not abort the
script pipeline and vice versa.
"""

from typing import Optional, Sequence


class AssetBuildError(Exception):
    """Base exception for assetbuild."""
    pass


class ConfigError(AssetBuildError):
    """Project configuration could not be loaded."""
    pass


class CompileFailure(AssetBuildError):
    """
    External tool failure.

    Attributes:
        command: argv of the failed command (if one was started)
        returncode: exit status, or None if the process never ran
        stderr: captured standard error (truncated)
    """

    def __init__(
        self,
        message: str,
        command: Optional[Sequence[str]] = None,
        returncode: Optional[int] = None,
        stderr: str = "",
    ):
        super().__init__(message)
        self.command = list(command) if command else []
        self.returncode = returncode
        self.stderr = stderr


class TransformFailure(CompileFailure):
    """Script bundling failed. Suppressed by the script pipeline."""
    pass
