"""
Shared types for envibe.

Access levels, per-variable policy, the manifest, and the derived
AI-visible projection.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional


class AccessLevel(Enum):
    """Capability tier governing how a variable is exposed to an AI."""
    FULL = "full"
    READ_ONLY = "read-only"
    PLACEHOLDER = "placeholder"
    SCHEMA_ONLY = "schema-only"
    HIDDEN = "hidden"

    @classmethod
    def parse(cls, raw: str) -> "AccessLevel":
        """
        Parse a manifest spelling into an AccessLevel.

        Accepts the canonical value ("read-only") as well as the enum
        name in any case ("READ_ONLY", "read_only").

        Raises:
            ValueError: If the spelling is not a known level
        """
        if isinstance(raw, cls):
            return raw
        text = str(raw).strip()
        for level in cls:
            if text.lower() == level.value or text.upper() == level.name:
                return level
        raise ValueError(f"Unknown access level: {raw!r}")


@dataclass
class VariableConfig:
    """
    Declared policy for a single variable.

    Used as-is for FULL, PLACEHOLDER and HIDDEN. READ_ONLY and
    SCHEMA_ONLY have their own subclasses carrying the one extra field
    they use.
    """
    access: AccessLevel
    description: Optional[str] = None
    default: Optional[str] = None
    required: bool = False

    # Fields a manifest entry may carry for this variant, besides "access".
    FIELDS = ("description", "default", "required")

    def to_dict(self) -> dict:
        data = {"access": self.access.value}
        for name in self.FIELDS:
            value = getattr(self, name)
            if name == "required":
                if value:
                    data[name] = True
            elif value is not None:
                data[name] = value
        return data

    @staticmethod
    def from_dict(data: dict) -> "VariableConfig":
        """
        Build the config variant matching data["access"].

        Fields the access level does not use are dropped.

        Raises:
            ValueError: If "access" is missing or unknown, or "required"
                is not a boolean
        """
        if "access" not in data:
            raise ValueError("missing 'access'")
        access = AccessLevel.parse(data["access"])
        fields = {
            name: data[name]
            for name in config_class_for(access).FIELDS
            if data.get(name) is not None
        }
        return make_config(access, **fields)


@dataclass
class ReadOnlyConfig(VariableConfig):
    """READ_ONLY policy; `pattern` masks the displayed value."""
    pattern: Optional[str] = None

    FIELDS = VariableConfig.FIELDS + ("pattern",)


@dataclass
class SchemaOnlyConfig(VariableConfig):
    """SCHEMA_ONLY policy; `schema` describes the expected shape."""
    schema: Optional[Dict[str, str]] = None

    FIELDS = VariableConfig.FIELDS + ("schema",)


def config_class_for(access: AccessLevel) -> type:
    if access == AccessLevel.READ_ONLY:
        return ReadOnlyConfig
    if access == AccessLevel.SCHEMA_ONLY:
        return SchemaOnlyConfig
    return VariableConfig


def make_config(access: AccessLevel, **fields) -> VariableConfig:
    """
    Construct the VariableConfig variant for an access level.

    Args:
        access: Access level (AccessLevel or its manifest spelling)
        **fields: description, default, required, and pattern/schema
            where the level supports them

    Returns:
        VariableConfig, ReadOnlyConfig or SchemaOnlyConfig

    Raises:
        ValueError: If the access level is unknown or "required" is not
            a boolean
    """
    access = AccessLevel.parse(access)
    cls = config_class_for(access)

    # YAML scalars (ints, floats) become display strings
    for name in ("description", "default", "pattern"):
        if fields.get(name) is not None:
            fields[name] = str(fields[name])
    if "required" in fields and not isinstance(fields["required"], bool):
        raise ValueError(f"'required' must be true or false, got {fields['required']!r}")
    if fields.get("schema") is not None:
        fields["schema"] = {str(k): str(v) for k, v in dict(fields["schema"]).items()}

    return cls(access=access, **fields)


@dataclass
class Manifest:
    """Version-tagged mapping of variable names to their access policy."""
    version: int = 1
    variables: Dict[str, VariableConfig] = field(default_factory=dict)


@dataclass
class AIVisibleVariable:
    """A variable as the AI is allowed to see it. Derived, never stored."""
    key: str
    display_value: str
    access: AccessLevel
    can_modify: bool
    description: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "key": self.key,
            "display_value": self.display_value,
            "access": self.access.value,
            "can_modify": self.can_modify,
        }
        if self.description:
            data["description"] = self.description
        return data


@dataclass
class ModificationResult:
    """Outcome of a modification request."""
    allowed: bool
    reason: Optional[str] = None


@dataclass
class ParsedEnv:
    """Contents of a loaded .env file."""
    variables: Dict[str, str]
    raw: str
