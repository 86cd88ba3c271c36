"""Tool adapters for the external programs assetbuild drives."""

from assetbuild.tools.base import CommandOutput, ToolAdapter, expand_command
from assetbuild.tools.bundler import ScriptBundler
from assetbuild.tools.less import LessCompiler
from assetbuild.tools.postcss import PostCssProcessor
from assetbuild.tools.reload import ReloadNotifier

__all__ = [
    "CommandOutput",
    "ToolAdapter",
    "expand_command",
    "LessCompiler",
    "PostCssProcessor",
    "ScriptBundler",
    "ReloadNotifier",
]
