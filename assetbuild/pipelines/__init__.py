"""Compilation pipelines (style, script)."""

from assetbuild.pipelines.base import CompileResult, Pipeline, PipelineSpec
from assetbuild.pipelines.script import ScriptPipeline
from assetbuild.pipelines.style import StylePipeline, staging_area

__all__ = [
    "CompileResult",
    "Pipeline",
    "PipelineSpec",
    "ScriptPipeline",
    "StylePipeline",
    "staging_area",
]
