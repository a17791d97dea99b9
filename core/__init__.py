"""Core shared contracts and utilities."""

from core.element_id import (
    ELEMENT_ID_SEPARATOR,
    content_hash,
    create_element_id,
    join_scope,
    normalize_rust_path,
    parse_element_id,
)
from core.errors import (
    AccessDenied,
    ConfigError,
    ExtractionCancelled,
    ExtractionError,
    FatalError,
    FileError,
    FileReadError,
    InvalidProjectRoot,
    MaxFileSizeExceeded,
    NoFilesDiscovered,
    NoFilesParsed,
    ParseError,
)
from core.structured_logging import (
    configure_structured_logging,
    get_run_id,
    phase_scope,
    run_scope,
    set_run_id,
)
from core.extractor_config import (
    ConfigUseCase,
    ExtractorConfig,
    load_extractor_config,
    load_from_standard_locations,
    write_example_config,
)

__all__ = [
    "ELEMENT_ID_SEPARATOR",
    "content_hash",
    "create_element_id",
    "join_scope",
    "normalize_rust_path",
    "parse_element_id",
    "AccessDenied",
    "ConfigError",
    "ExtractionCancelled",
    "ExtractionError",
    "FatalError",
    "FileError",
    "FileReadError",
    "InvalidProjectRoot",
    "MaxFileSizeExceeded",
    "NoFilesDiscovered",
    "NoFilesParsed",
    "ParseError",
    "configure_structured_logging",
    "get_run_id",
    "phase_scope",
    "run_scope",
    "set_run_id",
    "ConfigUseCase",
    "ExtractorConfig",
    "load_extractor_config",
    "load_from_standard_locations",
    "write_example_config",
]
