"""Script bundler adapter."""

from pathlib import Path
from typing import Optional

from assetbuild.errors import TransformFailure
from assetbuild.tools.base import CommandOutput, ToolAdapter


class ScriptBundler(ToolAdapter):
    """
    Adapter for the script bundler.

    Bundling is disabled until a ``commands.bundler`` template is set in the
    project file; until then ``bundle()`` does nothing.
    """

    name = "bundler"
    failure_class = TransformFailure

    async def bundle(
        self,
        source_dir: Path,
        output_dir: Path,
        file: Optional[Path] = None,
    ) -> Optional[CommandOutput]:
        """
        Bundle scripts into the output directory.

        Returns:
            CommandOutput, or None when no bundler is configured

        Raises:
            TransformFailure: If the bundler exits non-zero
        """
        if not self.configured:
            self.logger.debug("No bundler configured, skipping transform")
            return None
        return await self.execute(
            source_dir=source_dir,
            output_dir=output_dir,
            file=file,
        )
