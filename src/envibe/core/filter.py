"""
Access filtering for AI consumers.

Combines the manifest with live .env values to decide what an AI may see
and whether it may change a variable:

    level        visible  mutable  displayed value
    full         yes      yes      actual value (or default)
    read-only    yes      no       pattern if configured, else value
    placeholder  yes      no       <KEY_NAME>
    schema-only  yes      no       rendered schema, or <schema>
    hidden       no       no       nothing

Everything here is recomputed from its inputs on every call.
"""

from typing import Dict, List, Optional

from .dotenv import format_assignment
from .manifest import MANIFEST_FILENAME
from .patterns import get_default_config
from .types import (
    AccessLevel,
    AIVisibleVariable,
    Manifest,
    ModificationResult,
    ReadOnlyConfig,
    SchemaOnlyConfig,
    VariableConfig,
)


AI_ENV_HEADER = f"""# Generated by envibe - DO NOT EDIT
# Source of truth: {MANIFEST_FILENAME}
# Regenerate with: envibe generate
#
# Access levels:
#   [full]         AI can see and modify
#   [read-only]    AI can see but not modify
#   [placeholder]  AI sees <KEY_NAME> only
#   [schema-only]  AI sees the expected format only
# Hidden variables are not listed.
"""

DENIAL_PHRASES = {
    AccessLevel.READ_ONLY: "is read-only",
    AccessLevel.PLACEHOLDER: "is placeholder-only",
    AccessLevel.SCHEMA_ONLY: "is schema-only",
    AccessLevel.HIDDEN: "is hidden",
}


def render_schema(schema: Optional[Dict[str, str]]) -> str:
    if not schema:
        return "<schema>"
    pairs = ", ".join(f"{key}: {value}" for key, value in schema.items())
    return "{" + pairs + "}"


def get_display_value(key: str, value: Optional[str], config: VariableConfig) -> str:
    """
    Compute what the AI sees for one variable.

    Args:
        key: Variable name
        value: Live value, or None if the variable is unset
        config: The variable's policy

    Returns:
        Display string ("" for hidden variables)
    """
    if value is None:
        value = config.default if config.default is not None else ""

    access = config.access
    if access == AccessLevel.FULL:
        return value
    if access == AccessLevel.READ_ONLY:
        if isinstance(config, ReadOnlyConfig) and config.pattern:
            return config.pattern
        return value
    if access == AccessLevel.PLACEHOLDER:
        return f"<{key}>"
    if access == AccessLevel.SCHEMA_ONLY:
        schema = config.schema if isinstance(config, SchemaOnlyConfig) else None
        return render_schema(schema)
    return ""


def can_modify(access: AccessLevel) -> bool:
    return access == AccessLevel.FULL


def can_see(access: AccessLevel) -> bool:
    return access != AccessLevel.HIDDEN


def get_config(key: str, manifest: Manifest) -> VariableConfig:
    """Manifest entry for `key`, or the placeholder default."""
    config = manifest.variables.get(key)
    if config is None:
        return get_default_config()
    return config


def _project(key: str, env: Dict[str, str], config: VariableConfig) -> AIVisibleVariable:
    return AIVisibleVariable(
        key=key,
        display_value=get_display_value(key, env.get(key), config),
        access=config.access,
        can_modify=can_modify(config.access),
        description=config.description,
    )


def filter_for_ai(env: Dict[str, str], manifest: Manifest) -> List[AIVisibleVariable]:
    """
    Build the AI-visible view of the environment.

    Every variable in either the .env values or the manifest is
    considered; variables missing from the manifest are treated as
    placeholders, and hidden variables are left out.

    Args:
        env: Live variable values
        manifest: Access policy

    Returns:
        AIVisibleVariable list sorted by key
    """
    keys = set(env) | set(manifest.variables)
    result = []

    for key in sorted(keys):
        config = get_config(key, manifest)
        if not can_see(config.access):
            continue
        result.append(_project(key, env, config))

    return result


def generate_ai_env_content(variables: List[AIVisibleVariable]) -> str:
    """
    Render the .env.ai file.

    Schema-only variables become comment lines, since their display value
    is not a usable literal.

    Args:
        variables: Output of filter_for_ai

    Returns:
        .env.ai file content
    """
    lines = [AI_ENV_HEADER]

    for var in variables:
        tag = f"[{var.access.value}]"
        if var.access == AccessLevel.SCHEMA_ONLY:
            line = f"# {var.key}: schema {var.display_value}  {tag}"
        else:
            line = f"{format_assignment(var.key, var.display_value)}  # {tag}"
        if var.description:
            line += f" {var.description}"
        lines.append(line)

    return "\n".join(lines) + "\n"


def validate_modification(key: str, manifest: Manifest) -> ModificationResult:
    """
    Decide whether the AI may change a variable.

    Args:
        key: Variable name
        manifest: Access policy (unknown keys default to placeholder)

    Returns:
        ModificationResult; `reason` is set when the change is denied
    """
    access = get_config(key, manifest).access
    if can_modify(access):
        return ModificationResult(allowed=True)

    phrase = DENIAL_PHRASES[access]
    return ModificationResult(
        allowed=False,
        reason=f"Variable '{key}' {phrase} and cannot be modified by AI",
    )


def get_variable_for_ai(
    key: str,
    env: Dict[str, str],
    manifest: Manifest,
) -> Optional[AIVisibleVariable]:
    """
    Single-variable version of filter_for_ai.

    Returns:
        The projected variable, or None if it is hidden
    """
    config = get_config(key, manifest)
    if not can_see(config.access):
        return None
    return _project(key, env, config)
