"""Post-processor adapter (postcss plugin chain)."""

from pathlib import Path
from typing import Sequence

from assetbuild.tools.base import CommandOutput, ToolAdapter


class PostCssProcessor(ToolAdapter):
    """
    Adapter for the CSS post-processing chain.

    The chain itself (autoprefixer -> purgecss -> cssnano) lives in the
    project's postcss.config.js, which switches its production plugins on
    NODE_ENV. This adapter only knows the input files, the output directory
    and the exit status.
    """

    name = "post-processor"

    async def process(
        self,
        inputs: Sequence[Path],
        output_dir: Path,
        config: Path,
        production: bool = True,
    ) -> CommandOutput:
        """
        Post-process staged CSS files into the output directory.

        Args:
            inputs: Staged .css files
            output_dir: Artifact directory
            config: postcss config file
            production: Set NODE_ENV=production for the chain

        Raises:
            CompileFailure: If the post-processor exits non-zero
        """
        env = {"NODE_ENV": "production"} if production else None
        return await self.execute(
            env=env,
            inputs=[str(p) for p in inputs],
            output_dir=output_dir,
            config=config,
        )
