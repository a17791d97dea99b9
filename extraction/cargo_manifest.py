"""Project metadata and dependency names read from ``Cargo.toml``."""

import logging
import os
import tomllib
from typing import Any, Dict, Optional, Tuple

from extraction.models import DependencyInfo, ProjectInfo

logger = logging.getLogger(__name__)

CARGO_MANIFEST = "Cargo.toml"
DEFAULT_VERSION = "0.1.0"
DEFAULT_EDITION = "2021"
UNKNOWN_PROJECT = "unknown-project"


def load_cargo_manifest(root: str) -> Optional[Dict[str, Any]]:
    """Parse ``<root>/Cargo.toml``.

    Returns:
        The parsed manifest, or None when the file is absent or malformed.
    """
    manifest_path = os.path.join(root, CARGO_MANIFEST)
    if not os.path.isfile(manifest_path):
        return None
    try:
        with open(manifest_path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning("Failed to parse %s: %s", manifest_path, e)
        return None


def _string_field(section: Dict[str, Any], key: str, default: str) -> str:
    value = section.get(key)
    # `version.workspace = true` and similar inherit from the workspace root
    return value if isinstance(value, str) else default


def read_project_info(root: str, manifest: Optional[Dict[str, Any]] = None) -> ProjectInfo:
    """Build the project info from ``Cargo.toml``, falling back to the directory name."""
    root = os.path.abspath(root)
    if manifest is None:
        manifest = load_cargo_manifest(root)
    fallback_name = os.path.basename(root.rstrip(os.sep)) or UNKNOWN_PROJECT

    package = (manifest or {}).get("package")
    if not isinstance(package, dict):
        return ProjectInfo(
            name=fallback_name,
            version=DEFAULT_VERSION,
            edition=DEFAULT_EDITION,
            root_path=root,
        )
    return ProjectInfo(
        name=_string_field(package, "name", fallback_name),
        version=_string_field(package, "version", DEFAULT_VERSION),
        edition=_string_field(package, "edition", DEFAULT_EDITION),
        root_path=root,
    )


def _table_names(manifest: Dict[str, Any], key: str) -> Tuple[str, ...]:
    table = manifest.get(key)
    if not isinstance(table, dict):
        return ()
    return tuple(sorted(table))


def read_dependencies(root: str, manifest: Optional[Dict[str, Any]] = None) -> DependencyInfo:
    """Collect direct, dev and build dependency names (sorted)."""
    if manifest is None:
        manifest = load_cargo_manifest(root)
    if not manifest:
        return DependencyInfo()
    return DependencyInfo(
        direct=_table_names(manifest, "dependencies"),
        dev_dependencies=_table_names(manifest, "dev-dependencies"),
        build_dependencies=_table_names(manifest, "build-dependencies"),
    )
