"""Live-reload notification hook (serve mode)."""

from pathlib import Path
from typing import Iterable, Optional

from assetbuild.errors import CompileFailure
from assetbuild.tools.base import ToolAdapter


class ReloadNotifier(ToolAdapter):
    """
    Runs the configured reload command (e.g. ``browser-sync reload``) after a
    rebuild. The reload server itself is supervised elsewhere.
    """

    name = "reload"

    async def notify(self, files: Iterable[Path]) -> bool:
        """
        Notify the reload server about changed artifacts.

        Failures are logged, never raised.

        Returns:
            True if a notification was sent
        """
        if not self.configured:
            return False
        try:
            await self.execute(files=[str(f) for f in sorted(files)])
        except CompileFailure as e:
            self.logger.warning(
                f"Reload notification failed: {e}",
                extra={"event": "reload_failed"},
            )
            return False
        return True
