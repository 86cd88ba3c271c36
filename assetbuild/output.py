"""
Output directory management.

The output directory is created once, lazily, and never deleted here. Only
individual stale artifacts are removed when their source goes away.
"""

import logging
from pathlib import Path
from typing import List, Optional


logger = logging.getLogger(__name__)


class OutputDirectoryManager:
    """Owns the flat artifact directory shared by all pipelines."""

    def __init__(self, output_dir: Path):
        self.output_dir = Path(output_dir)

    def ensure(self) -> Path:
        """Create the output directory if absent. Safe to call repeatedly."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        return self.output_dir

    def artifact_path(self, source: Path, suffix: str) -> Path:
        """Artifact path derived from a source file's base name."""
        return self.output_dir / f"{Path(source).stem}{suffix}"

    def remove_artifact(self, source: Path, suffix: str) -> bool:
        """
        Best-effort delete of the artifact derived from a deleted source.

        Args:
            source: The deleted source file
            suffix: Artifact extension (e.g. ".css")

        Returns:
            True if a file was removed, False if it was already absent or
            could not be removed
        """
        artifact = self.artifact_path(source, suffix)
        try:
            artifact.unlink()
        except FileNotFoundError:
            logger.debug(f"Artifact already absent: {artifact.name}")
            return False
        except OSError as e:
            logger.warning(
                f"Could not remove artifact {artifact.name}: {e}",
                extra={"event": "artifact_remove_failed"},
            )
            return False

        logger.info(
            f"Removed {artifact.name} (source {Path(source).name} deleted)",
            extra={"event": "artifact_removed", "metadata": {"artifact": str(artifact)}},
        )
        return True

    def artifacts(self, pattern: Optional[str] = None) -> List[Path]:
        """List current artifacts, optionally filtered by a glob."""
        if not self.output_dir.exists():
            return []
        return sorted(p for p in self.output_dir.glob(pattern or "*") if p.is_file())

    def __repr__(self) -> str:
        return f"OutputDirectoryManager(output_dir={self.output_dir})"
