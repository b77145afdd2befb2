"""
Manifest storage and consistency checks.

The manifest (.env.manifest.yaml) is the source of truth for access
levels:

    version: 1
    variables:
      DATABASE_URL:
        access: read-only
        description: Database connection string
        required: true

It is created once (by `envibe init` / `envibe setup`) and edited by hand
afterwards; nothing here ever removes an entry.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from .errors import ManifestNotFoundError, ManifestParseError
from .types import AccessLevel, Manifest, VariableConfig, make_config


MANIFEST_FILENAME = ".env.manifest.yaml"
MANIFEST_VERSION = 1
SUPPORTED_VERSIONS = {1}

MANIFEST_HEADER = """# envibe manifest - access levels for environment variables
# Levels: full, read-only, placeholder, schema-only, hidden
"""

SECRET_LOOKING = re.compile(r"SECRET|KEY|TOKEN|PASSWORD|CREDENTIAL", re.IGNORECASE)


@dataclass
class ValidationIssue:
    """A single problem found by check_manifest."""
    type: str  # "error" or "warning"
    message: str

    @property
    def is_error(self) -> bool:
        return self.type == "error"


def get_manifest_filename() -> str:
    return MANIFEST_FILENAME


def create_empty_manifest() -> Manifest:
    return Manifest(version=MANIFEST_VERSION, variables={})


def create_fallback_manifest() -> Manifest:
    """Starter manifest used when there is nothing to classify."""
    return Manifest(
        version=MANIFEST_VERSION,
        variables={
            "NODE_ENV": make_config(
                AccessLevel.FULL,
                description="Environment mode (development, staging, production)",
            ),
            "DEBUG": make_config(AccessLevel.FULL, description="Enable debug mode"),
            "PORT": make_config(AccessLevel.FULL, description="Server port"),
            "DATABASE_URL": make_config(
                AccessLevel.READ_ONLY,
                description="Database connection string",
            ),
            "API_KEY": make_config(
                AccessLevel.PLACEHOLDER,
                description="API key (add your actual key names)",
            ),
            "SECRET_KEY": make_config(
                AccessLevel.HIDDEN,
                description="Secret key (add your actual secret names)",
            ),
        },
    )


def manifest_from_dict(data, path: str = MANIFEST_FILENAME) -> Manifest:
    """
    Build a Manifest from parsed YAML.

    Args:
        data: Parsed document
        path: File name used in error messages

    Raises:
        ManifestParseError: If the document does not describe a valid
            manifest
    """
    if not isinstance(data, dict):
        raise ManifestParseError(path, "expected a mapping at the top level")

    version = data.get("version")
    if isinstance(version, bool) or not isinstance(version, int) or version < 1:
        raise ManifestParseError(path, f"version must be a positive integer, got {version!r}")
    if version not in SUPPORTED_VERSIONS:
        raise ManifestParseError(path, f"unsupported manifest version {version}")

    raw_variables = data.get("variables") or {}
    if not isinstance(raw_variables, dict):
        raise ManifestParseError(path, "'variables' must be a mapping")

    variables: Dict[str, VariableConfig] = {}
    for key, entry in raw_variables.items():
        name = "" if key is None else str(key).strip()
        if not name:
            raise ManifestParseError(path, "variable names must be non-empty")
        if not isinstance(entry, dict):
            raise ManifestParseError(path, "expected a mapping with an 'access' field", key=name)
        try:
            variables[name] = VariableConfig.from_dict(entry)
        except (ValueError, TypeError) as e:
            raise ManifestParseError(path, str(e), key=name) from e

    return Manifest(version=version, variables=variables)


def manifest_to_dict(manifest: Manifest) -> dict:
    return {
        "version": manifest.version,
        "variables": {
            key: config.to_dict()
            for key, config in manifest.variables.items()
        },
    }


def load_manifest(path: str = MANIFEST_FILENAME) -> Manifest:
    """
    Load the manifest from disk.

    Args:
        path: Path to the manifest file

    Returns:
        Parsed Manifest

    Raises:
        ManifestNotFoundError: If the file does not exist
        ManifestParseError: If the file exists but is not a valid manifest
    """
    manifest_path = Path(path)
    if not manifest_path.exists():
        raise ManifestNotFoundError(str(path))

    try:
        data = yaml.safe_load(manifest_path.read_text())
    except yaml.YAMLError as e:
        raise ManifestParseError(str(path), f"invalid YAML ({e})") from e

    return manifest_from_dict(data, str(path))


def save_manifest(manifest: Manifest, path: str = MANIFEST_FILENAME) -> None:
    """Write the manifest as YAML, keeping variable order."""
    body = yaml.safe_dump(
        manifest_to_dict(manifest),
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
    )
    Path(path).write_text(MANIFEST_HEADER + body)


def manifest_exists(path: str = MANIFEST_FILENAME) -> bool:
    return Path(path).is_file()


def _ignored_fields(raw_entry: dict, config: VariableConfig) -> List[str]:
    allowed = set(config.FIELDS) | {"access"}
    return [name for name in raw_entry if name not in allowed]


def check_manifest(
    env: Dict[str, str],
    manifest: Manifest,
    env_path: str = ".env",
    raw_manifest: Optional[dict] = None,
) -> List[ValidationIssue]:
    """
    Compare a manifest against live .env values.

    Errors:
    - required variables that are not set

    Warnings:
    - .env variables the manifest does not list (they default to placeholder)
    - manifest variables that are unset and have no default
    - full access on names that look like secrets
    - fields the variable's access level ignores (needs raw_manifest)

    Args:
        env: Parsed .env values
        manifest: Loaded manifest
        env_path: .env path used in messages
        raw_manifest: Parsed YAML document, for the ignored-field check

    Returns:
        List of ValidationIssue (errors first)
    """
    errors: List[ValidationIssue] = []
    warnings: List[ValidationIssue] = []

    for key, config in manifest.variables.items():
        if config.required and key not in env:
            errors.append(ValidationIssue(
                "error", f'Required variable "{key}" is not set in {env_path}'
            ))

    for key in env:
        if key not in manifest.variables:
            warnings.append(ValidationIssue(
                "warning",
                f'Variable "{key}" in {env_path} is not defined in manifest '
                f"(will default to placeholder access)",
            ))

    for key, config in manifest.variables.items():
        if not config.required and key not in env and config.default is None:
            warnings.append(ValidationIssue(
                "warning", f'Variable "{key}" is defined in manifest but not set in {env_path}'
            ))

    for key, config in manifest.variables.items():
        if config.access == AccessLevel.FULL and SECRET_LOOKING.search(key):
            warnings.append(ValidationIssue(
                "warning",
                f'Variable "{key}" has full access but looks like a secret. '
                f"Consider using placeholder or hidden access.",
            ))

    raw_variables = (raw_manifest or {}).get("variables") or {}
    for key, config in manifest.variables.items():
        raw_entry = raw_variables.get(key)
        if not isinstance(raw_entry, dict):
            continue
        for name in _ignored_fields(raw_entry, config):
            warnings.append(ValidationIssue(
                "warning",
                f'Variable "{key}": field "{name}" is ignored for {config.access.value} access',
            ))

    return errors + warnings


def load_raw_manifest(path: str = MANIFEST_FILENAME) -> dict:
    """Parsed YAML document of an existing, already-validated manifest."""
    data = yaml.safe_load(Path(path).read_text())
    return data if isinstance(data, dict) else {}
