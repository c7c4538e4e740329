"""
Unit tests for the YAML configuration layer.

Tests file loading, mtime-based caching, the typed accessors and startup
validation.
"""

import os
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest
from config import (
    get_agent_config,
    get_crew_presets,
    get_crew_template,
    get_delegation_triggers,
    get_extraction_families,
    get_keyword_routes,
    get_memory_section,
    get_role_toolkits,
)
from config.cache import _config_cache, _get_file_mtime, _load_yaml_file, clear_cache, get_cached_config
from config.validation import validate_config_schema
from domain.enums import SPECIALIST_ROLES, AgentRole, CrewWorkflow, MemoryType


def write_yaml(content: str) -> Path:
    with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as tmp:
        tmp.write(content)
        return Path(tmp.name)


class TestLoadYamlFile:
    """Tests for _load_yaml_file and _get_file_mtime."""

    @pytest.mark.unit
    def test_valid_mapping(self):
        """Test loading a nested mapping."""
        path = write_yaml("parent:\n  child: value\nnumber: 42\n")
        try:
            assert _load_yaml_file(path) == {"parent": {"child": "value"}, "number": 42}
        finally:
            path.unlink()

    @pytest.mark.unit
    def test_empty_and_missing(self):
        """Empty and missing files load as empty dicts."""
        path = write_yaml("")
        try:
            assert _load_yaml_file(path) == {}
        finally:
            path.unlink()
        assert _load_yaml_file(Path("/nonexistent/file.yaml")) == {}
        assert _get_file_mtime(Path("/nonexistent/file.yaml")) == 0.0

    @pytest.mark.unit
    def test_invalid_yaml_and_non_mapping(self):
        """Unparseable files and top-level lists load as empty dicts."""
        broken = write_yaml("key: [unclosed\n")
        listing = write_yaml("- a\n- b\n")
        try:
            assert _load_yaml_file(broken) == {}
            assert _load_yaml_file(listing) == {}
        finally:
            broken.unlink()
            listing.unlink()


class TestCachedConfig:
    """Tests for get_cached_config."""

    def setup_method(self):
        """Clear cache before each test."""
        clear_cache()

    def teardown_method(self):
        clear_cache()

    @pytest.mark.unit
    def test_first_load_populates_cache(self):
        """Test a cache miss reads the file and stores it."""
        path = write_yaml("test: value\n")
        try:
            assert get_cached_config(path) == {"test": "value"}
            assert path in _config_cache
        finally:
            path.unlink()

    @pytest.mark.unit
    def test_unchanged_file_is_not_reparsed(self):
        """Test a second load with the same mtime hits the cache."""
        path = write_yaml("test: value\n")
        try:
            get_cached_config(path)
            with patch("config.cache._load_yaml_file") as mock_load:
                assert get_cached_config(path) == {"test": "value"}
                mock_load.assert_not_called()
        finally:
            path.unlink()

    @pytest.mark.unit
    def test_modified_file_is_reloaded(self):
        """Test a newer mtime invalidates the cached copy."""
        path = write_yaml("test: value1\n")
        try:
            assert get_cached_config(path) == {"test": "value1"}
            mtime = _get_file_mtime(path)

            path.write_text("test: value2\n")
            os.utime(path, (mtime + 10, mtime + 10))

            assert get_cached_config(path) == {"test": "value2"}
        finally:
            path.unlink()


class TestAccessors:
    """Tests for the typed views over the bundled YAML files."""

    @pytest.mark.unit
    def test_every_specialist_is_configured(self):
        """Each specialist has a prompt and a display label."""
        for role in SPECIALIST_ROLES:
            config = get_agent_config(role)
            assert config.system_prompt
            assert config.display_label.endswith(config.name)

    @pytest.mark.unit
    def test_keyword_table_order(self):
        """Keyword rows keep file order: sales first, data last."""
        roles = [route.role for route in get_keyword_routes()]
        assert roles == [AgentRole.SALES, AgentRole.MARKETING, AgentRole.RESEARCH, AgentRole.CODE, AgentRole.DATA]

    @pytest.mark.unit
    def test_role_toolkits(self):
        """Toolkit keywords are upper-cased per role."""
        toolkits = get_role_toolkits()
        assert toolkits[AgentRole.SALES] == ["HUBSPOT", "SALESFORCE", "CRM"]
        assert "GITHUB" in toolkits[AgentRole.CODE]

    @pytest.mark.unit
    def test_crew_presets(self):
        """Presets parse workflow and agents."""
        presets = get_crew_presets()
        assert presets["full"].workflow == CrewWorkflow.HIERARCHICAL
        assert presets["sales_team"].agents == [AgentRole.SALES, AgentRole.DATA, AgentRole.GENERAL]

    @pytest.mark.unit
    def test_triggers_and_templates(self):
        """Triggers are lower-cased; templates carry their placeholders."""
        assert "might want to check" in get_delegation_triggers()
        assert "{previous}" in get_crew_template("sequential_query")
        assert get_crew_template("no_responses") == "No responses generated."

    @pytest.mark.unit
    def test_memory_sections_fall_back_to_defaults(self):
        """Unknown keys come from built-in defaults; file values win."""
        with patch("config.memory.get_memory_config", return_value={"decay": {"factor": 0.2}}):
            decay = get_memory_section("decay")
        assert decay == {"days_threshold": 30, "factor": 0.2, "floor": 0.1}

    @pytest.mark.unit
    def test_extraction_families(self):
        """Families compile case-insensitively with their relevance."""
        families = {f.type: f for f in get_extraction_families()}
        assert families[MemoryType.DECISION].relevance == pytest.approx(0.8)
        assert families[MemoryType.PREFERENCE].patterns[0].search("WE PREFER tea")


class TestValidation:
    """Tests for validate_config_schema."""

    @pytest.mark.unit
    def test_bundled_configuration_is_valid(self):
        """The shipped YAML files pass validation."""
        assert validate_config_schema() == []

    @pytest.mark.unit
    def test_reports_problems(self):
        """Missing sections, unknown workflows and bad regexes are reported."""
        with patch("config.validation.get_agents_config", return_value={}), patch(
            "config.validation.get_routing_config",
            return_value={"keyword_routes": [{"role": "wizard", "pattern": "("}]},
        ), patch(
            "config.validation.get_crews_config",
            return_value={"crews": {"odd": {"workflow": "voting", "agents": []}}},
        ), patch("config.validation.get_memory_config", return_value={}):
            errors = validate_config_schema()

        assert "agents.yaml is empty or missing the 'agents' section" in errors
        assert "routing.yaml keyword route has unknown role: wizard" in errors
        assert any("invalid regex" in e for e in errors)
        assert "crews.yaml missing required crew: full" in errors
        assert "crews.yaml crew 'odd' has invalid workflow: voting" in errors
        assert "crews.yaml crew 'odd' has no agents" in errors
        assert "memory.yaml missing 'extraction.families' section" in errors
