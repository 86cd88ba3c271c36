"""Base class for external tool adapters."""

import asyncio
import logging
import os
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Type

from assetbuild.errors import CompileFailure


STDERR_LIMIT = 2000


def expand_command(template: Sequence[str], **values: Any) -> List[str]:
    """
    Expand an argv template.

    A part that is exactly "{name}" is replaced by the value: a list or tuple
    is spliced in, None drops the part. Inside other parts, scalar
    placeholders are substituted and anything else is left as is.

    Example:
        expand_command(["postcss", "{inputs}", "--dir", "{output_dir}"],
                       inputs=["a.css", "b.css"], output_dir="exports")
        -> ["postcss", "a.css", "b.css", "--dir", "exports"]
    """
    argv: List[str] = []
    for part in template:
        if part.startswith("{") and part.endswith("}") and part[1:-1] in values:
            value = values[part[1:-1]]
            if value is None:
                continue
            if isinstance(value, (list, tuple)):
                argv.extend(str(v) for v in value)
                continue
            argv.append(str(value))
        else:
            for key, value in values.items():
                if value is not None and not isinstance(value, (list, tuple)):
                    part = part.replace("{" + key + "}", str(value))
            argv.append(part)
    return argv


@dataclass
class CommandOutput:
    """Captured output of a finished external command."""

    command: List[str]
    returncode: int
    stdout: str
    stderr: str
    duration_seconds: float


class ToolAdapter:
    """
    Base class for tool adapters.

    Tool adapters give assetbuild a uniform way to call external tools
    (style compiler, post-processor, bundler, reload hook). Each adapter owns
    an argv template and turns a non-zero exit into ``failure_class``.
    """

    name = "tool"
    failure_class: Type[CompileFailure] = CompileFailure

    def __init__(
        self,
        command: Optional[Sequence[str]],
        cwd: Optional[Path] = None,
        timed: bool = False,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the tool adapter.

        Args:
            command: argv template, or None if the tool is not configured
            cwd: Working directory for the process
            timed: Log wall time of each run at INFO instead of DEBUG
            logger: Logger instance
        """
        self.command = tuple(command) if command else None
        self.cwd = cwd
        self.timed = timed
        self.logger = logger or logging.getLogger(f"assetbuild.tools.{self.name}")

    @property
    def configured(self) -> bool:
        return self.command is not None

    @property
    def executable(self) -> Optional[str]:
        return self.command[0] if self.command else None

    def validate(self) -> Dict[str, Any]:
        """
        Validate the tool's setup.

        Returns:
            Dictionary with keys:
                - 'valid': bool indicating if validation passed
                - 'errors': list of error messages
                - 'warnings': list of warning messages
        """
        errors = []
        warnings = []

        if not self.configured:
            warnings.append(f"{self.name}: not configured")
        elif shutil.which(self.executable) is None and not Path(self.executable).exists():
            errors.append(f"{self.name}: executable not found on PATH: {self.executable}")

        return {
            "valid": len(errors) == 0,
            "errors": errors,
            "warnings": warnings,
        }

    async def execute(self, env: Optional[Dict[str, str]] = None, **values: Any) -> CommandOutput:
        """
        Run the tool once and wait for it to exit.

        Args:
            env: Extra environment variables for the process
            **values: Placeholder values for the argv template

        Returns:
            CommandOutput of the finished process

        Raises:
            CompileFailure: (or ``failure_class``) if the tool is not
                configured, cannot be started, or exits non-zero
        """
        if not self.configured:
            raise self.failure_class(f"{self.name} is not configured")

        argv = expand_command(self.command, **values)
        process_env = None
        if env:
            process_env = {**os.environ, **env}

        self.logger.debug(f"Running {self.name}: {' '.join(argv)}")
        start_time = time.time()

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                cwd=str(self.cwd) if self.cwd else None,
                env=process_env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await process.communicate()
        except OSError as e:
            raise self.failure_class(
                f"{self.name} could not be started: {e}", command=argv
            ) from e

        duration = time.time() - start_time
        output = CommandOutput(
            command=argv,
            returncode=process.returncode,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
            duration_seconds=duration,
        )

        self.logger.log(
            logging.INFO if self.timed else logging.DEBUG,
            f"{self.name} finished in {duration:.3f}s (exit {output.returncode})",
            extra={"event": "tool_finished", "metadata": {"duration_seconds": duration}},
        )

        if output.returncode != 0:
            raise self.failure_class(
                f"{self.name} failed with exit code {output.returncode}: "
                f"{output.stderr.strip()[:STDERR_LIMIT]}",
                command=argv,
                returncode=output.returncode,
                stderr=output.stderr[:STDERR_LIMIT],
            )

        return output

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(command={self.command})"
