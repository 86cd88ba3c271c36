"""Tests for the style and script pipelines."""

import asyncio
import sys

import pytest

from assetbuild.config import BuildMode
from assetbuild.orchestrator import SCRIPT, STYLE, build_pipelines
from assetbuild.output import OutputDirectoryManager
from assetbuild.pipelines import CompileResult, PipelineSpec, ScriptPipeline, staging_area
from assetbuild.tools import ScriptBundler


def _pipelines(settings):
    output = OutputDirectoryManager(settings.path(settings.output_dir))
    output.ensure()
    return build_pipelines(settings, output), output


class TestPipelineSpec:
    @pytest.fixture
    def spec(self, tmp_path):
        return PipelineSpec(
            name="style",
            source_dir=tmp_path / "styles",
            patterns=("*.less",),
            output_dir=tmp_path / "exports",
            artifact_suffix=".css",
        )

    def test_matches_any_depth(self, spec, tmp_path):
        assert spec.matches(tmp_path / "styles" / "a.less")
        assert spec.matches(tmp_path / "styles" / "partials" / "_vars.less")

    def test_rejects_other_files(self, spec, tmp_path):
        assert not spec.matches(tmp_path / "styles" / "a.css")
        assert not spec.matches(tmp_path / "other" / "a.less")
        assert not spec.matches(tmp_path / "styles")

    def test_is_direct(self, spec, tmp_path):
        assert spec.is_direct(tmp_path / "styles" / "a.less")
        assert not spec.is_direct(tmp_path / "styles" / "partials" / "_vars.less")

    def test_artifact_name(self, spec, tmp_path):
        assert spec.artifact_name(tmp_path / "styles" / "a.less") == "a.css"

    def test_source_globs(self, spec, tmp_path):
        assert spec.source_globs == (str(tmp_path / "styles" / "**" / "*.less"),)


class TestStagingArea:
    def test_removed_on_success(self, tmp_path):
        staging = tmp_path / ".stage"

        async def use():
            async with staging_area(staging) as path:
                (path / "a.css").write_text("x")
                assert staging.is_dir()

        asyncio.run(use())
        assert not staging.exists()

    def test_removed_on_failure(self, tmp_path):
        staging = tmp_path / ".stage"

        async def use():
            async with staging_area(staging):
                raise RuntimeError("compiler crashed")

        with pytest.raises(RuntimeError):
            asyncio.run(use())
        assert not staging.exists()


class TestStylePipeline:
    def test_release_post_processes(self, make_settings):
        """Release output has no comments and no unused selectors."""
        settings = make_settings(BuildMode.RELEASE)
        pipelines, output = _pipelines(settings)

        result = asyncio.run(pipelines[STYLE].run())

        assert result.success is True
        assert {p.name for p in result.produced_files} == {"a.css", "b.css"}
        css = (output.output_dir / "a.css").read_text()
        assert "/*" not in css
        assert ".unused" not in css
        assert ".a { color: red; }" in css
        assert not settings.path(settings.staging_dir).exists()

    @pytest.mark.parametrize("mode", [BuildMode.WATCH, BuildMode.SERVE])
    def test_watch_copies_staged_output_verbatim(self, make_settings, mode):
        """Without post-processing the artifact equals the raw compiler output."""
        settings = make_settings(mode)
        pipelines, output = _pipelines(settings)

        result = asyncio.run(pipelines[STYLE].run())

        assert result.success is True
        styles = settings.path(settings.styles_dir)
        assert (output.output_dir / "a.css").read_bytes() == (styles / "a.less").read_bytes()
        assert (output.output_dir / "b.css").read_bytes() == (styles / "b.less").read_bytes()
        assert not settings.path(settings.staging_dir).exists()

    def test_partials_are_not_artifacts(self, make_settings):
        settings = make_settings(BuildMode.WATCH)
        pipelines, output = _pipelines(settings)
        asyncio.run(pipelines[STYLE].run())
        assert sorted(p.name for p in output.artifacts()) == ["a.css", "b.css"]

    def test_changed_file_compiles_only_that_entry(self, make_settings, project, tmp_path, monkeypatch):
        log = tmp_path / "tool.log"
        monkeypatch.setenv("ASSETBUILD_TEST_LOG", str(log))
        settings = make_settings(BuildMode.WATCH)
        pipelines, output = _pipelines(settings)

        result = asyncio.run(pipelines[STYLE].compile(project / "styles" / "b.less"))

        assert {p.name for p in result.produced_files} == {"b.css"}
        assert log.read_text().strip() == "lessc b.less"

    def test_watch_target_is_whole_set(self, make_settings, project):
        """A changed partial may affect every entry, so watch events rebuild all."""
        pipelines, _ = _pipelines(make_settings(BuildMode.WATCH))
        assert pipelines[STYLE].target_for(project / "styles" / "partials" / "_vars.less") is None

    def test_compiler_failure_cleans_staging_and_recovers(self, make_settings, project):
        """A failed compile leaves no staging and does not poison the next run."""
        settings = make_settings(BuildMode.RELEASE)
        pipelines, output = _pipelines(settings)
        style = pipelines[STYLE]
        staging = settings.path(settings.staging_dir)

        (project / "styles" / "b.less").write_text(".b { !!syntax-error }\n")
        failed = asyncio.run(style.run())

        assert failed.success is False
        assert failed.fatal is True
        assert "ParseError" in failed.error
        assert not staging.exists()

        (project / "styles" / "b.less").write_text(".b { margin: 0; }\n")
        recovered = asyncio.run(style.run())

        assert recovered.success is True
        assert (output.output_dir / "b.css").exists()
        assert not staging.exists()

    def test_compile_raises_for_direct_callers(self, make_settings, project):
        from assetbuild.errors import CompileFailure

        pipelines, _ = _pipelines(make_settings(BuildMode.RELEASE))
        (project / "styles" / "a.less").write_text("!!syntax-error")
        with pytest.raises(CompileFailure):
            asyncio.run(pipelines[STYLE].compile())

    def test_post_processor_failure_cleans_staging(self, make_settings, monkeypatch):
        monkeypatch.setenv("FAKE_POSTCSS_FAIL", "1")
        settings = make_settings(BuildMode.RELEASE)
        pipelines, _ = _pipelines(settings)

        result = asyncio.run(pipelines[STYLE].run())

        assert result.success is False
        assert "postcss exploded" in result.error
        assert not settings.path(settings.staging_dir).exists()

    def test_no_sources_is_empty_success(self, make_settings, project):
        for f in (project / "styles").glob("*.less"):
            f.unlink()
        pipelines, output = _pipelines(make_settings(BuildMode.RELEASE))

        result = asyncio.run(pipelines[STYLE].run())

        assert result.success is True
        assert result.produced_files == set()

    def test_requires_staging_dir(self, make_settings, tmp_path):
        from assetbuild.pipelines import StylePipeline
        from assetbuild.tools import LessCompiler, PostCssProcessor

        spec = PipelineSpec("style", tmp_path, ("*.less",), tmp_path, ".css")
        with pytest.raises(ValueError):
            StylePipeline(
                spec, BuildMode.RELEASE, OutputDirectoryManager(tmp_path),
                LessCompiler(None), PostCssProcessor(None), tmp_path / "c.js",
            )


class TestScriptPipeline:
    def test_inert_by_default(self, make_settings):
        pipelines, output = _pipelines(make_settings(BuildMode.RELEASE))

        result = asyncio.run(pipelines[SCRIPT].run())

        assert result.success is True
        assert result.fatal is False
        assert result.produced_files == set()

    def test_bundler_failure_is_suppressed(self, make_settings, failing_command, caplog):
        """A failing bundler is reported, never raised."""
        pipelines, _ = _pipelines(make_settings(BuildMode.WATCH, bundler=failing_command))

        result = asyncio.run(pipelines[SCRIPT].compile())

        assert isinstance(result, CompileResult)
        assert result.success is False
        assert result.fatal is False
        assert "Script pipeline is inert" in caplog.text

    def test_unexpected_error_is_suppressed(self, tmp_path):
        class ExplodingBundler(ScriptBundler):
            async def bundle(self, *args, **kwargs):
                raise RuntimeError("unexpected")

        spec = PipelineSpec("script", tmp_path, ("*.ts",), tmp_path, ".js")
        pipeline = ScriptPipeline(
            spec, BuildMode.WATCH, OutputDirectoryManager(tmp_path), ExplodingBundler(None)
        )

        result = asyncio.run(pipeline.compile(tmp_path / "main.ts"))

        assert result.success is False
        assert result.error == "unexpected"

    def test_target_is_changed_file(self, make_settings, project):
        pipelines, _ = _pipelines(make_settings(BuildMode.WATCH))
        path = project / "src" / "main.ts"
        assert pipelines[SCRIPT].target_for(path) == path

    def test_configured_bundler_reports_artifact(self, make_settings, project, tmp_path):
        script = tmp_path / "fake_bundler.py"
        script.write_text(
            "import sys\nfrom pathlib import Path\n"
            "src, out, f = Path(sys.argv[1]), Path(sys.argv[2]), Path(sys.argv[3])\n"
            "(out / (f.stem + '.js')).write_text(f.read_text())\n"
        )
        settings = make_settings(
            BuildMode.WATCH,
            bundler=(sys.executable, str(script), "{source_dir}", "{output_dir}", "{file}"),
        )
        pipelines, output = _pipelines(settings)

        result = asyncio.run(pipelines[SCRIPT].run(project / "src" / "main.ts"))

        assert result.success is True
        assert result.produced_files == {output.output_dir / "main.js"}
