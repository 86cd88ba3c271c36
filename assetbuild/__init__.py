"""
assetbuild - front-end asset build orchestrator

Compiles style and script sources into deployable artifacts, once for
release or continuously while watching.
"""

__version__ = "0.1.0"


__all__ = ["BuildMode", "BuildSettings", "TargetSelector", "load_settings", "resolve_flags"]

from .config import BuildMode, BuildSettings, TargetSelector, load_settings, resolve_flags
