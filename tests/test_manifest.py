"""
Tests for manifest loading, saving and consistency checks.
"""

import pytest
from pathlib import Path
from envibe.core.errors import EnvibeError, ManifestNotFoundError, ManifestParseError
from envibe.core.manifest import (
    MANIFEST_FILENAME,
    check_manifest,
    create_empty_manifest,
    create_fallback_manifest,
    load_manifest,
    load_raw_manifest,
    manifest_exists,
    manifest_from_dict,
    save_manifest,
)
from envibe.core.types import (
    AccessLevel,
    Manifest,
    ReadOnlyConfig,
    SchemaOnlyConfig,
    VariableConfig,
    make_config,
)


SAMPLE_MANIFEST = """version: 1
variables:
  NODE_ENV:
    access: full
    description: Environment mode
    default: development
  DATABASE_URL:
    access: read-only
    pattern: postgres://***
    required: true
  API_KEY:
    access: placeholder
  CONFIG:
    access: schema-only
    schema:
      type: json
  STRIPE_SECRET:
    access: hidden
"""


class TestAccessLevel:
    """Test access level parsing."""

    def test_parse_values(self):
        """Canonical spellings parse."""
        assert AccessLevel.parse("full") == AccessLevel.FULL
        assert AccessLevel.parse("read-only") == AccessLevel.READ_ONLY
        assert AccessLevel.parse("schema-only") == AccessLevel.SCHEMA_ONLY

    def test_parse_names(self):
        """Enum names parse in any case."""
        assert AccessLevel.parse("READ_ONLY") == AccessLevel.READ_ONLY
        assert AccessLevel.parse("hidden") == AccessLevel.HIDDEN
        assert AccessLevel.parse("Placeholder") == AccessLevel.PLACEHOLDER

    def test_parse_unknown(self):
        """Unknown levels are rejected."""
        with pytest.raises(ValueError):
            AccessLevel.parse("public")


class TestVariableConfig:
    """Test config variants."""

    def test_read_only_variant(self):
        """READ_ONLY configs carry a pattern."""
        config = make_config("read-only", pattern="***")
        assert isinstance(config, ReadOnlyConfig)
        assert config.pattern == "***"

    def test_schema_only_variant(self):
        """SCHEMA_ONLY configs carry a schema."""
        config = make_config("schema-only", schema={"port": 5432})
        assert isinstance(config, SchemaOnlyConfig)
        assert config.schema == {"port": "5432"}

    def test_plain_variant_rejects_pattern(self):
        """Only READ_ONLY accepts a pattern."""
        with pytest.raises(TypeError):
            make_config(AccessLevel.FULL, pattern="***")

    def test_from_dict_drops_unused_fields(self):
        """Fields the level does not use are dropped."""
        config = VariableConfig.from_dict({"access": "full", "pattern": "***"})
        assert type(config) is VariableConfig
        assert not hasattr(config, "pattern")

    def test_from_dict_requires_access(self):
        """Entries without access are rejected."""
        with pytest.raises(ValueError):
            VariableConfig.from_dict({"description": "x"})

    def test_default_is_stringified(self):
        """YAML scalars become strings."""
        config = VariableConfig.from_dict({"access": "full", "default": 3000})
        assert config.default == "3000"

    def test_numeric_text_fields_are_stringified(self):
        """Numeric pattern and description values become strings."""
        config = VariableConfig.from_dict({"access": "read-only", "pattern": 5432, "description": 8080})
        assert config.pattern == "5432"
        assert config.description == "8080"

    def test_required_must_be_bool(self):
        """Quoted booleans are rejected rather than read as true."""
        with pytest.raises(ValueError):
            make_config("full", required="false")

    def test_to_dict(self):
        """Only set fields are written."""
        config = make_config("read-only", description="DB", pattern="***")
        assert config.to_dict() == {"access": "read-only", "description": "DB", "pattern": "***"}
        assert make_config("hidden", required=True).to_dict() == {
            "access": "hidden",
            "required": True,
        }


class TestManifestFromDict:
    """Test manifest validation."""

    def test_valid(self):
        """A valid document builds a manifest."""
        manifest = manifest_from_dict({
            "version": 1,
            "variables": {"PORT": {"access": "full"}},
        })
        assert manifest.version == 1
        assert manifest.variables["PORT"].access == AccessLevel.FULL

    def test_empty_variables(self):
        """A manifest may declare no variables."""
        assert manifest_from_dict({"version": 1, "variables": None}).variables == {}

    def test_not_a_mapping(self):
        """The top level must be a mapping."""
        with pytest.raises(ManifestParseError):
            manifest_from_dict(["version", 1])

    def test_missing_version(self):
        """A version is required."""
        with pytest.raises(ManifestParseError):
            manifest_from_dict({"variables": {}})

    def test_unsupported_version(self):
        """Unknown versions are rejected."""
        with pytest.raises(ManifestParseError, match="unsupported"):
            manifest_from_dict({"version": 2, "variables": {}})

    def test_unknown_access_level(self):
        """Unknown access levels name the variable."""
        with pytest.raises(ManifestParseError) as exc_info:
            manifest_from_dict({"version": 1, "variables": {"X": {"access": "public"}}})
        assert exc_info.value.key == "X"
        assert "X" in str(exc_info.value)

    def test_empty_variable_name(self):
        """Variable names must be non-empty."""
        with pytest.raises(ManifestParseError):
            manifest_from_dict({"version": 1, "variables": {"": {"access": "full"}}})

    def test_required_not_bool(self):
        """A quoted required flag names the variable."""
        with pytest.raises(ManifestParseError) as exc_info:
            manifest_from_dict({"version": 1, "variables": {"PORT": {"access": "full", "required": "no"}}})
        assert exc_info.value.key == "PORT"

    def test_entry_not_mapping(self):
        """Each entry must be a mapping."""
        with pytest.raises(ManifestParseError):
            manifest_from_dict({"version": 1, "variables": {"PORT": "full"}})


class TestLoadSave:
    """Test manifest files."""

    def test_load(self, tmp_path):
        """A YAML manifest loads into typed configs."""
        path = tmp_path / MANIFEST_FILENAME
        path.write_text(SAMPLE_MANIFEST)

        manifest = load_manifest(str(path))

        assert list(manifest.variables) == [
            "NODE_ENV", "DATABASE_URL", "API_KEY", "CONFIG", "STRIPE_SECRET",
        ]
        assert manifest.variables["NODE_ENV"].default == "development"
        assert manifest.variables["DATABASE_URL"].pattern == "postgres://***"
        assert manifest.variables["DATABASE_URL"].required is True
        assert manifest.variables["CONFIG"].schema == {"type": "json"}
        assert manifest.variables["STRIPE_SECRET"].access == AccessLevel.HIDDEN

    def test_missing_file(self, tmp_path):
        """A missing manifest is reported as not found."""
        with pytest.raises(ManifestNotFoundError):
            load_manifest(str(tmp_path / MANIFEST_FILENAME))

    def test_invalid_yaml(self, tmp_path):
        """Broken YAML is a parse error, not a missing file."""
        path = tmp_path / MANIFEST_FILENAME
        path.write_text("version: [1\nvariables: {")
        with pytest.raises(ManifestParseError):
            load_manifest(str(path))

    def test_errors_share_base(self):
        """Both failures are envibe errors."""
        assert issubclass(ManifestNotFoundError, EnvibeError)
        assert issubclass(ManifestParseError, EnvibeError)

    def test_save_then_load(self, tmp_path):
        """Saved manifests load back equal."""
        path = str(tmp_path / MANIFEST_FILENAME)
        manifest = create_fallback_manifest()
        manifest.variables["CONFIG"] = make_config("schema-only", schema={"type": "json"})

        save_manifest(manifest, path)

        assert load_manifest(path) == manifest

    def test_save_keeps_order_and_header(self, tmp_path):
        """Variables are written in manifest order under a header comment."""
        path = tmp_path / MANIFEST_FILENAME
        save_manifest(Manifest(variables={
            "ZED": make_config("full"),
            "ALPHA": make_config("hidden"),
        }), str(path))

        text = path.read_text()
        assert text.startswith("# envibe manifest")
        assert text.index("ZED") < text.index("ALPHA")

    def test_manifest_exists(self, tmp_path):
        """manifest_exists reflects the filesystem."""
        path = tmp_path / MANIFEST_FILENAME
        assert not manifest_exists(str(path))
        save_manifest(create_empty_manifest(), str(path))
        assert manifest_exists(str(path))

    def test_fallback_manifest(self):
        """The fallback manifest covers every level but schema-only."""
        levels = {c.access for c in create_fallback_manifest().variables.values()}
        assert levels == {
            AccessLevel.FULL,
            AccessLevel.READ_ONLY,
            AccessLevel.PLACEHOLDER,
            AccessLevel.HIDDEN,
        }


class TestCheckManifest:
    """Test manifest/.env consistency checks."""

    def test_clean(self):
        """Matching env and manifest produce no issues."""
        manifest = Manifest(variables={"PORT": make_config("full")})
        assert check_manifest({"PORT": "3000"}, manifest) == []

    def test_missing_required_is_error(self):
        """Unset required variables are errors."""
        manifest = Manifest(variables={"DB_URL": make_config("read-only", required=True)})
        issues = check_manifest({}, manifest)
        assert len(issues) == 1
        assert issues[0].is_error
        assert "DB_URL" in issues[0].message

    def test_unlisted_variable_is_warning(self):
        """Variables missing from the manifest are warnings."""
        issues = check_manifest({"EXTRA": "1"}, Manifest())
        assert len(issues) == 1
        assert not issues[0].is_error
        assert "placeholder" in issues[0].message

    def test_unset_without_default_is_warning(self):
        """Optional unset variables without default are warnings."""
        manifest = Manifest(variables={"PORT": make_config("full")})
        issues = check_manifest({}, manifest)
        assert [i.type for i in issues] == ["warning"]

    def test_unset_with_default_is_fine(self):
        """A default covers an unset variable."""
        manifest = Manifest(variables={"PORT": make_config("full", default="3000")})
        assert check_manifest({}, manifest) == []

    def test_full_access_secret_is_warning(self):
        """Secret-looking names with full access are flagged."""
        manifest = Manifest(variables={"API_TOKEN": make_config("full")})
        issues = check_manifest({"API_TOKEN": "x"}, manifest)
        assert len(issues) == 1
        assert "looks like a secret" in issues[0].message

    def test_ignored_field_is_warning(self, tmp_path):
        """Fields the access level ignores are flagged."""
        path = tmp_path / MANIFEST_FILENAME
        path.write_text("version: 1\nvariables:\n  PORT:\n    access: full\n    pattern: '***'\n")

        issues = check_manifest(
            {"PORT": "3000"},
            load_manifest(str(path)),
            raw_manifest=load_raw_manifest(str(path)),
        )

        assert len(issues) == 1
        assert '"pattern"' in issues[0].message

    def test_errors_come_first(self):
        """Errors are listed before warnings."""
        manifest = Manifest(variables={"REQ": make_config("full", required=True)})
        issues = check_manifest({"EXTRA": "1"}, manifest)
        assert [i.type for i in issues] == ["error", "warning"]
