"""Style compiler adapter (LESS -> CSS)."""

from pathlib import Path
from typing import Optional

from assetbuild.tools.base import CommandOutput, ToolAdapter


class LessCompiler(ToolAdapter):
    """
    Adapter for the LESS compiler.

    The default template runs ``less-watch-compiler --run-once`` over the
    styles directory, writing one .css per entry file into staging. When a
    single file is given only that entry is compiled.
    """

    name = "style compiler"

    async def compile(
        self,
        source_dir: Path,
        staging_dir: Path,
        file: Optional[Path] = None,
    ) -> CommandOutput:
        """
        Compile styles into the staging directory.

        Args:
            source_dir: Styles root
            staging_dir: Destination for raw compiler output
            file: Entry file to compile alone (passed by base name)

        Raises:
            CompileFailure: If the compiler exits non-zero
        """
        return await self.execute(
            source_dir=source_dir,
            staging_dir=staging_dir,
            file=file.name if file else None,
        )
