"""Shared fixtures: a throwaway front-end project and fake external tools."""

import logging
import sys
import textwrap
from pathlib import Path

import pytest

from assetbuild.config import BuildMode, BuildSettings, TargetSelector


# Stand-in for less-watch-compiler: copies each entry .less to staging as .css.
FAKE_LESSC = textwrap.dedent(
    """
    import os
    import sys
    from pathlib import Path

    log = os.environ.get("ASSETBUILD_TEST_LOG")
    if log:
        with open(log, "a") as f:
            f.write("lessc " + " ".join(sys.argv[3:]) + "\\n")

    source_dir, staging_dir = Path(sys.argv[1]), Path(sys.argv[2])
    names = sys.argv[3:]
    entries = [source_dir / n for n in names] if names else sorted(source_dir.glob("*.less"))
    for entry in entries:
        text = entry.read_text()
        if "!!syntax-error" in text:
            sys.stderr.write("ParseError: " + entry.name + "\\n")
            sys.exit(1)
        (staging_dir / (entry.stem + ".css")).write_text(text)
    """
)

# Stand-in for postcss: strips comments and .unused rules under NODE_ENV=production.
FAKE_POSTCSS = textwrap.dedent(
    """
    import os
    import re
    import sys
    from pathlib import Path

    if os.environ.get("FAKE_POSTCSS_FAIL"):
        sys.stderr.write("postcss exploded\\n")
        sys.exit(2)

    args = sys.argv[1:]
    out = Path(args[args.index("--dir") + 1])
    inputs = [Path(a) for a in args[: args.index("--dir")]]
    production = os.environ.get("NODE_ENV") == "production"
    for src in inputs:
        css = src.read_text()
        if production:
            css = re.sub(r"/\\*.*?\\*/", "", css, flags=re.S)
            css = re.sub(r"\\.unused[^{]*\\{[^}]*\\}", "", css)
            css = "".join(line.strip() for line in css.splitlines())
        (out / src.name).write_text(css)
    """
)

# Stand-in for a bundler / reload hook that always fails.
FAILING_TOOL = "import sys\nsys.stderr.write('boom\\n')\nsys.exit(3)\n"

A_LESS = "/* header */\n.a { color: red; }\n.unused { color: blue; }\n"
B_LESS = ".b { margin: 0; }\n"


@pytest.fixture
def tools_dir(tmp_path) -> Path:
    """Directory holding the fake tool scripts."""
    tools = tmp_path / "tools"
    tools.mkdir()
    (tools / "fake_lessc.py").write_text(FAKE_LESSC)
    (tools / "fake_postcss.py").write_text(FAKE_POSTCSS)
    (tools / "failing_tool.py").write_text(FAILING_TOOL)
    return tools


@pytest.fixture
def project(tmp_path) -> Path:
    """Project root with two style entries, a nested partial and a script."""
    root = tmp_path / "project"
    styles = root / "styles"
    (styles / "partials").mkdir(parents=True)
    (styles / "a.less").write_text(A_LESS)
    (styles / "b.less").write_text(B_LESS)
    (styles / "partials" / "_vars.less").write_text("@red: #f00;\n")
    (root / "src").mkdir()
    (root / "src" / "main.ts").write_text("console.log('hi');\n")
    (root / "postcss.config.js").write_text("module.exports = {};\n")
    return root


@pytest.fixture
def make_settings(project, tools_dir):
    """Factory for BuildSettings wired to the fake tools."""

    def _make(
        mode: BuildMode = BuildMode.RELEASE,
        target: TargetSelector = TargetSelector.ALL,
        **overrides,
    ) -> BuildSettings:
        values = dict(
            mode=mode,
            target=target,
            root=project,
            style_compiler=(
                sys.executable, str(tools_dir / "fake_lessc.py"),
                "{source_dir}", "{staging_dir}", "{file}",
            ),
            post_processor=(
                sys.executable, str(tools_dir / "fake_postcss.py"),
                "{inputs}", "--dir", "{output_dir}", "--config", "{config}",
            ),
        )
        values.update(overrides)
        return BuildSettings(**values)

    return _make


@pytest.fixture
def failing_command(tools_dir):
    return (sys.executable, str(tools_dir / "failing_tool.py"))


@pytest.fixture(autouse=True)
def reset_logging():
    """CLI tests install handlers on the package logger; drop them afterwards."""
    yield
    logger = logging.getLogger("assetbuild")
    logger.handlers = []
    logger.setLevel(logging.NOTSET)
