"""
envibe core modules.

Includes:
- types: Access levels, variable policy, manifest and projection types
- dotenv: .env parsing, serialization and single-key updates
- patterns: Default access levels inferred from variable names
- filter: AI-visible projection and modification gate
- manifest: Manifest YAML storage and consistency checks
- discovery: Example file and raw .env file discovery
- guards: .gitignore and Claude settings protection
"""

from . import types
from . import errors
from . import dotenv
from . import patterns
from . import manifest
from . import filter
from . import discovery
from . import guards

from .types import (
    AccessLevel,
    AIVisibleVariable,
    Manifest,
    ModificationResult,
    ReadOnlyConfig,
    SchemaOnlyConfig,
    VariableConfig,
    make_config,
)
from .errors import EnvibeError, ManifestError, ManifestNotFoundError, ManifestParseError
from .dotenv import parse_env_content, serialize_env, update_env_content
from .patterns import classify_variable, classify_variables, get_default_config
from .filter import (
    can_modify,
    can_see,
    filter_for_ai,
    generate_ai_env_content,
    get_display_value,
    get_variable_for_ai,
    validate_modification,
)
from .manifest import load_manifest, save_manifest

__all__ = [
    "types",
    "errors",
    "dotenv",
    "patterns",
    "manifest",
    "filter",
    "discovery",
    "guards",
    "AccessLevel",
    "AIVisibleVariable",
    "Manifest",
    "ModificationResult",
    "ReadOnlyConfig",
    "SchemaOnlyConfig",
    "VariableConfig",
    "make_config",
    "EnvibeError",
    "ManifestError",
    "ManifestNotFoundError",
    "ManifestParseError",
    "parse_env_content",
    "serialize_env",
    "update_env_content",
    "classify_variable",
    "classify_variables",
    "get_default_config",
    "can_modify",
    "can_see",
    "filter_for_ai",
    "generate_ai_env_content",
    "get_display_value",
    "get_variable_for_ai",
    "validate_modification",
    "load_manifest",
    "save_manifest",
]
