"""
Configuration management for assetbuild.

Build mode and target come from environment flags (BUILD_ONLY, BUILD_SERVE,
BUILD_WATCH, WITH_TIMINGS), optionally loaded from a .env file. Project paths
and external command templates come from an optional assetbuild.yaml.
"""

import os
import shlex
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml
from dotenv import load_dotenv

from assetbuild.errors import ConfigError


DEFAULT_CONFIG_FILE = "assetbuild.yaml"
CONFIG_ENV_VAR = "ASSETBUILD_CONFIG"

DEFAULT_STYLE_COMPILER = (
    "less-watch-compiler", "--run-once", "{source_dir}", "{staging_dir}", "{file}",
)
DEFAULT_POST_PROCESSOR = (
    "postcss", "{inputs}", "--dir", "{output_dir}", "--config", "{config}",
)


class BuildMode(str, Enum):
    """Operating mode, derived once at startup."""
    RELEASE = "release"
    WATCH = "watch"
    SERVE = "serve"

    @property
    def is_watching(self) -> bool:
        """Serve implies watch."""
        return self in (BuildMode.WATCH, BuildMode.SERVE)

    @property
    def post_process(self) -> bool:
        """Production post-processing only runs for release builds."""
        return self == BuildMode.RELEASE


class TargetSelector(str, Enum):
    """Which pipeline(s) the orchestrator runs."""
    ALL = "all"
    STYLE_ONLY = "css"
    SCRIPT_ONLY = "javascript"


def _flag(env: Mapping[str, str], name: str) -> bool:
    return env.get(name) == "true"


def resolve_target(value: Optional[str]) -> TargetSelector:
    """Map a BUILD_ONLY value to a selector. Unknown values mean all pipelines."""
    if value is None:
        return TargetSelector.ALL
    try:
        return TargetSelector(str(value).strip().lower())
    except ValueError:
        return TargetSelector.ALL


def resolve_flags(env: Mapping[str, str]) -> Tuple[BuildMode, TargetSelector, bool]:
    """
    Resolve build flags from an environment mapping.

    Serve wins over watch; neither means release. Absent or malformed
    booleans are false.

    Args:
        env: Environment-style mapping (usually os.environ)

    Returns:
        (mode, target, timed)
    """
    if _flag(env, "BUILD_SERVE"):
        mode = BuildMode.SERVE
    elif _flag(env, "BUILD_WATCH"):
        mode = BuildMode.WATCH
    else:
        mode = BuildMode.RELEASE

    return mode, resolve_target(env.get("BUILD_ONLY")), _flag(env, "WITH_TIMINGS")


@dataclass(frozen=True)
class BuildSettings:
    """Complete, immutable build configuration."""

    mode: BuildMode = BuildMode.RELEASE
    target: TargetSelector = TargetSelector.ALL
    timed: bool = False

    root: Path = field(default_factory=Path.cwd)
    styles_dir: Path = Path("styles")
    scripts_dir: Path = Path("src")
    output_dir: Path = Path("exports")
    staging_dir: Path = Path(".stage-css.tmp")
    postcss_config: Path = Path("postcss.config.js")

    style_compiler: Tuple[str, ...] = DEFAULT_STYLE_COMPILER
    post_processor: Tuple[str, ...] = DEFAULT_POST_PROCESSOR
    bundler: Optional[Tuple[str, ...]] = None
    reload: Optional[Tuple[str, ...]] = None

    log_level: str = "INFO"
    log_format: str = "pretty"
    log_file: Optional[Path] = None

    def path(self, value: Path) -> Path:
        """Resolve a configured path against the project root."""
        return value if value.is_absolute() else self.root / value

    def with_overrides(self, **changes: Any) -> "BuildSettings":
        """Copy with the non-None overrides applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for display."""
        return {
            "mode": self.mode.value,
            "target": self.target.value,
            "timed": self.timed,
            "root": str(self.root),
            "styles_dir": str(self.path(self.styles_dir)),
            "scripts_dir": str(self.path(self.scripts_dir)),
            "output_dir": str(self.path(self.output_dir)),
            "staging_dir": str(self.path(self.staging_dir)),
            "postcss_config": str(self.path(self.postcss_config)),
            "style_compiler": list(self.style_compiler),
            "post_processor": list(self.post_processor),
            "bundler": list(self.bundler) if self.bundler else None,
            "reload": list(self.reload) if self.reload else None,
            "log_level": self.log_level,
            "log_format": self.log_format,
            "log_file": str(self.log_file) if self.log_file else None,
        }


def _load_yaml(config_path: Path) -> Dict[str, Any]:
    """Load and parse the project file."""
    try:
        with open(config_path, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax in {config_path}: {e}")
    except OSError as e:
        raise ConfigError(f"Could not read {config_path}: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{config_path}: expected a mapping at top level")
    return data


def _command(value: Any, key: str) -> Optional[Tuple[str, ...]]:
    if value is None:
        return None
    if isinstance(value, str):
        return tuple(shlex.split(value))
    if isinstance(value, list):
        return tuple(str(v) for v in value)
    raise ConfigError(f"commands.{key}: expected a string or a list")


def _section(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"{key}: expected a mapping")
    return value


def _path(value: Any, key: str) -> Path:
    if not isinstance(value, str) or not value:
        raise ConfigError(f"{key}: expected a path string")
    return Path(value)


def _settings_from_file(data: Dict[str, Any], root: Path) -> Dict[str, Any]:
    paths = _section(data, "paths")
    commands = _section(data, "commands")
    logging_cfg = _section(data, "logging")

    values: Dict[str, Any] = {"root": root}
    for key, attr in (
        ("styles", "styles_dir"),
        ("scripts", "scripts_dir"),
        ("output", "output_dir"),
        ("staging", "staging_dir"),
        ("postcss_config", "postcss_config"),
    ):
        if key in paths:
            values[attr] = _path(paths[key], f"paths.{key}")

    if "style_compiler" in commands:
        values["style_compiler"] = _command(commands["style_compiler"], "style_compiler")
    if "post_processor" in commands:
        values["post_processor"] = _command(commands["post_processor"], "post_processor")
    values["bundler"] = _command(commands.get("bundler"), "bundler")
    values["reload"] = _command(commands.get("reload"), "reload")

    if "level" in logging_cfg:
        values["log_level"] = str(logging_cfg["level"]).upper()
    if "format" in logging_cfg:
        if logging_cfg["format"] not in ("pretty", "structured"):
            raise ConfigError("logging.format: expected 'pretty' or 'structured'")
        values["log_format"] = logging_cfg["format"]
    if logging_cfg.get("file"):
        values["log_file"] = _path(logging_cfg["file"], "logging.file")

    return values


def load_settings(
    config_path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
    root: Optional[Path] = None,
) -> BuildSettings:
    """
    Load build settings.

    Reads .env (without overriding variables already set), then the project
    file, then the environment flags.

    Args:
        config_path: Project file. Defaults to $ASSETBUILD_CONFIG or
            ./assetbuild.yaml; a missing default file means defaults.
        env: Environment mapping. Defaults to os.environ.
        root: Project root. Defaults to the project file's directory or cwd.

    Returns:
        BuildSettings instance

    Raises:
        ConfigError: If an explicit project file is missing or invalid
    """
    if env is None:
        load_dotenv(Path.cwd() / ".env", override=False)
        env = os.environ

    explicit = config_path is not None or bool(env.get(CONFIG_ENV_VAR))
    if config_path is None:
        config_path = Path(env.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_FILE)

    values: Dict[str, Any] = {"root": root or Path.cwd()}
    if config_path.exists():
        data = _load_yaml(config_path)
        env_file = data.get("env_file")
        if env_file and env is os.environ:
            load_dotenv(_path(env_file, "env_file").expanduser(), override=False)
        values = _settings_from_file(data, root or config_path.resolve().parent)
    elif explicit:
        raise ConfigError(f"Configuration file not found: {config_path}")

    mode, target, timed = resolve_flags(env)
    return BuildSettings(mode=mode, target=target, timed=timed, **values)
