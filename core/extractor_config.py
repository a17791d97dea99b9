"""Extractor configuration model and loaders.

The configuration is an immutable value object validated at construction.
Files are YAML (``.yaml``/``.yml``) or JSON (``.json``), either flat::

    include_docs: true
    include: ["src/**/*.rs"]

or with the filter lists nested under ``filters``::

    filters:
      include: ["src/**/*.rs"]
      exclude: ["target/**"]
"""

from __future__ import annotations

import enum
import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Iterable, Optional

import yaml

from core.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024
LARGE_FILE_SIZE_WARNING = 100 * 1024 * 1024
DEFAULT_INCLUDE: tuple[str, ...] = ("src/**/*.rs",)
DEFAULT_EXCLUDE: tuple[str, ...] = ("target/**", "tests/**")

CONFIG_ENV_VAR = "RSEXTRACT_CONFIG"
STANDARD_CONFIG_FILENAMES: tuple[str, ...] = (
    "rsextract.yaml",
    "rsextract.yml",
    ".rsextract.yaml",
    "rsextract.json",
)

EXAMPLE_CONFIG = """\
# rsextract configuration

# Include documentation comments in extraction
include_docs: true

# Include private items in extraction
include_private: false

# Read dependency information from Cargo.toml
parse_dependencies: false

# Maximum file size to process (in bytes)
max_file_size: 10485760  # 10MB

# Worker threads for parallel file processing (null = CPU count, capped at 8)
max_workers: null

filters:
  # Glob patterns for files to include
  include:
    - "src/**/*.rs"
  # Glob patterns for files to exclude (exclude wins on overlap)
  exclude:
    - "target/**"
    - "tests/**"
"""


class ConfigUseCase(enum.Enum):
    """Predefined configuration presets."""

    DOCUMENTATION = "documentation"
    CODE_ANALYSIS = "code_analysis"
    LLM_TRAINING = "llm_training"
    TESTING = "testing"


def _as_pattern_tuple(value: Any, name: str) -> tuple[str, ...]:
    if isinstance(value, str):
        raise ConfigError(f"{name} must be a list of glob patterns, not a string")
    try:
        items = tuple(value)
    except TypeError as exc:
        raise ConfigError(f"{name} must be a list of glob patterns") from exc
    for item in items:
        if not isinstance(item, str) or not item.strip():
            raise ConfigError(f"{name} contains an empty or non-string pattern: {item!r}")
    return items


@dataclass(frozen=True)
class ExtractorConfig:
    """Settings shared read-only by every pipeline component."""

    include_docs: bool = True
    include_private: bool = False
    parse_dependencies: bool = False
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    include: tuple[str, ...] = DEFAULT_INCLUDE
    exclude: tuple[str, ...] = DEFAULT_EXCLUDE
    max_workers: Optional[int] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "include", _as_pattern_tuple(self.include, "include"))
        object.__setattr__(self, "exclude", _as_pattern_tuple(self.exclude, "exclude"))
        self.validate()

    def validate(self) -> None:
        """Reject configurations that cannot drive a run.

        Raises:
            ConfigError: On an empty include list, a non-positive size limit
                or worker count, or an include pattern repeated verbatim in
                the exclude list.
        """
        if isinstance(self.max_file_size, bool) or not isinstance(self.max_file_size, int):
            raise ConfigError("max_file_size must be an integer number of bytes")
        if self.max_file_size <= 0:
            raise ConfigError("max_file_size must be greater than 0")
        if self.max_file_size > LARGE_FILE_SIZE_WARNING:
            logger.warning(
                "max_file_size=%d is above 100MB; very large files may exhaust memory",
                self.max_file_size,
            )

        if self.max_workers is not None:
            if isinstance(self.max_workers, bool) or not isinstance(self.max_workers, int):
                raise ConfigError("max_workers must be an integer or null")
            if self.max_workers <= 0:
                raise ConfigError("max_workers must be greater than 0 when set")

        if not self.include:
            raise ConfigError("At least one include pattern must be specified")

        conflicts = sorted(set(self.include) & set(self.exclude))
        if conflicts:
            raise ConfigError(
                "Include and exclude patterns cannot be identical: " + ", ".join(conflicts)
            )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dict in the nested file layout."""
        payload = asdict(self)
        payload["filters"] = {
            "include": list(payload.pop("include")),
            "exclude": list(payload.pop("exclude")),
        }
        return payload

    def merge_with(self, other: "ExtractorConfig") -> "ExtractorConfig":
        """Return a new config preferring values of ``other`` that differ from defaults."""
        defaults = ExtractorConfig()
        changes: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(other, f.name)
            if value != getattr(defaults, f.name):
                changes[f.name] = value
        return replace(self, **changes)

    @classmethod
    def from_mapping(cls, payload: Any, source: str = "<mapping>") -> "ExtractorConfig":
        """Build a config from a parsed YAML/JSON payload."""
        if payload is None:
            return cls()
        if not isinstance(payload, dict):
            raise ConfigError(f"{source}: configuration must be a mapping")

        data = dict(payload)
        filters = data.pop("filters", None)
        if filters is not None:
            if not isinstance(filters, dict):
                raise ConfigError(f"{source}: 'filters' must be a mapping")
            unknown_filters = set(filters) - {"include", "exclude"}
            if unknown_filters:
                raise ConfigError(
                    f"{source}: unknown filter keys: {', '.join(sorted(unknown_filters))}"
                )
            for key in ("include", "exclude"):
                if key in filters:
                    if key in data:
                        raise ConfigError(f"{source}: '{key}' given both flat and under filters")
                    data[key] = filters[key]

        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"{source}: unknown configuration keys: {', '.join(sorted(unknown))}")

        for key in ("include_docs", "include_private", "parse_dependencies"):
            if key in data and not isinstance(data[key], bool):
                raise ConfigError(f"{source}: '{key}' must be true or false")

        return cls(**data)

    @classmethod
    def for_use_case(cls, use_case: ConfigUseCase) -> "ExtractorConfig":
        """Create a configuration tuned for a predefined use case."""
        if use_case is ConfigUseCase.DOCUMENTATION:
            return cls(
                include_docs=True,
                include_private=False,
                include=("src/**/*.rs", "examples/**/*.rs"),
                exclude=("target/**",),
            )
        if use_case is ConfigUseCase.CODE_ANALYSIS:
            return cls(
                include_docs=True,
                include_private=True,
                parse_dependencies=True,
                include=("**/*.rs",),
                exclude=("target/**",),
            )
        if use_case is ConfigUseCase.LLM_TRAINING:
            return cls(
                include_docs=True,
                include_private=False,
                parse_dependencies=False,
                include=("src/**/*.rs", "examples/**/*.rs"),
                exclude=("target/**", "tests/**"),
            )
        if use_case is ConfigUseCase.TESTING:
            return cls(
                include_docs=False,
                include_private=True,
                parse_dependencies=False,
                max_file_size=1024 * 1024,
                include=("tests/**/*.rs", "src/**/*.rs"),
                exclude=("target/**",),
            )
        raise ConfigError(f"Unknown use case: {use_case!r}")


def load_extractor_config(path: str | os.PathLike[str]) -> ExtractorConfig:
    """Load and validate a configuration file.

    Raises:
        ConfigError: If the file is missing, unreadable, malformed or invalid.
    """
    config_path = Path(path)
    try:
        text = config_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigError(f"Config file not found: {config_path}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed to read config file {config_path}: {exc}") from exc

    try:
        if config_path.suffix.lower() == ".json":
            payload = json.loads(text)
        else:
            payload = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to parse config file {config_path}: {exc}") from exc

    config = ExtractorConfig.from_mapping(payload, source=str(config_path))
    logger.debug("Loaded extractor config from %s", config_path)
    return config


def _candidate_paths(cwd: Path) -> Iterable[Path]:
    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        yield Path(env_path)
    for filename in STANDARD_CONFIG_FILENAMES:
        yield cwd / filename
    yield Path.home() / ".config" / "rsextract" / "config.yaml"


def load_from_standard_locations(cwd: str | os.PathLike[str] | None = None) -> ExtractorConfig:
    """Load the first usable config from the standard locations.

    Looks at ``$RSEXTRACT_CONFIG``, then project-local files in ``cwd``, then
    ``~/.config/rsextract/config.yaml``. Candidates that fail to load are
    skipped with a warning; defaults are returned when none load.
    """
    base = Path(cwd) if cwd is not None else Path.cwd()
    for candidate in _candidate_paths(base):
        if not candidate.is_file():
            continue
        try:
            config = load_extractor_config(candidate)
        except ConfigError as exc:
            logger.warning("Ignoring config %s: %s", candidate, exc)
            continue
        logger.info("Using extractor config %s", candidate)
        return config
    logger.debug("No config file found; using defaults")
    return ExtractorConfig()


def write_example_config(path: str | os.PathLike[str]) -> str:
    """Write a commented example configuration and return its path."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(EXAMPLE_CONFIG, encoding="utf-8")
    return str(target)


def dump_config_yaml(config: ExtractorConfig) -> str:
    """Serialize a config to YAML in the nested file layout."""
    return yaml.safe_dump(config.to_dict(), sort_keys=False)


__all__ = [
    "ConfigUseCase",
    "ExtractorConfig",
    "load_extractor_config",
    "load_from_standard_locations",
    "write_example_config",
    "dump_config_yaml",
    "DEFAULT_MAX_FILE_SIZE",
]
