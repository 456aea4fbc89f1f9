"""
Unit tests for configuration management.
"""

import math

import pytest
from pydantic import ValidationError

from robocell.core.config import (
    CellConfig,
    CheckSettings,
    ConfigManager,
    JointConfig,
    MechanicalGroupConfig,
    MechanismConfig,
)
from robocell.core.exceptions import ConfigurationError


class TestJointConfig:
    """Tests for JointConfig model."""

    def test_create_minimal(self):
        """Test creating config with only a range."""
        config = JointConfig(range=(-1.0, 1.0))
        assert config.home == 0.0
        assert config.max_speed == pytest.approx(math.pi)

    def test_inverted_range(self):
        """Test a lower bound above the upper bound is rejected."""
        with pytest.raises(ValidationError):
            JointConfig(range=(1.0, -1.0))

    def test_home_outside_range(self):
        """Test a home value outside the range is rejected."""
        with pytest.raises(ValidationError):
            JointConfig(range=(0.0, 1.0), home=2.0)

    def test_non_positive_speed(self):
        """Test max_speed must be positive."""
        with pytest.raises(ValidationError):
            JointConfig(range=(0.0, 1.0), max_speed=0.0)


class TestMechanismConfig:
    """Tests for MechanismConfig model."""

    def test_default_base_frame(self):
        """Test the base frame defaults to world XY."""
        config = MechanismConfig(
            name="track", kind="track", joints=[JointConfig(range=(0, 100))]
        )
        frame = config.base_frame.to_frame()
        assert list(frame.point) == [0.0, 0.0, 0.0]
        assert list(frame.xaxis) == [1.0, 0.0, 0.0]
        assert config.moves_robot is False

    def test_unknown_kind(self):
        """Test an unknown mechanism kind is rejected."""
        with pytest.raises(ValidationError):
            MechanismConfig(name="x", kind="gantry", joints=[])


class TestCellConfig:
    """Tests for CellConfig model."""

    def test_requires_groups(self):
        """Test a cell needs at least one group."""
        with pytest.raises(ValidationError):
            CellConfig(name="empty", groups=[])

    def test_default_settings(self):
        """Test check settings defaults."""
        config = CellConfig(name="cell", groups=[MechanicalGroupConfig(name="g")])
        assert config.settings.linear_step == 1.0
        assert config.settings.angular_step == pytest.approx(math.radians(1.0))
        assert config.settings.jump_factor == 10.0

    def test_jump_factor_above_one(self):
        """Test the jump factor must exceed one."""
        with pytest.raises(ValidationError):
            CheckSettings(jump_factor=1.0)


class TestConfigManager:
    """Tests for ConfigManager."""

    def test_init_with_valid_dir(self, sample_config_dir):
        """Test initialization with valid directory."""
        manager = ConfigManager(sample_config_dir)
        assert manager.config_dir == sample_config_dir

    def test_init_with_invalid_dir(self, temp_dir):
        """Test initialization with a missing directory."""
        with pytest.raises(ConfigurationError):
            ConfigManager(temp_dir / "missing")

    def test_list_cells(self, sample_config_dir):
        """Test listing cell configurations."""
        manager = ConfigManager(sample_config_dir)
        assert manager.list_cells() == ["test_cell"]

    def test_get_cell(self, sample_config_dir):
        """Test loading a cell configuration."""
        manager = ConfigManager(sample_config_dir)
        cell = manager.get_cell("test_cell")

        assert cell.name == "Test Cell"
        assert len(cell.groups) == 1
        assert cell.groups[0].robot.kind == "arm"
        assert cell.groups[0].externals[0].moves_robot is True
        assert cell.groups[0].externals[0].joints[0].home == 100

    def test_get_missing_cell(self, sample_config_dir):
        """Test a missing cell raises with the available names."""
        manager = ConfigManager(sample_config_dir)
        with pytest.raises(ConfigurationError) as exc_info:
            manager.get_cell("nope")
        assert exc_info.value.details["available"] == ["test_cell"]

    def test_invalid_yaml_content(self, sample_config_dir):
        """Test an invalid definition surfaces as ConfigurationError."""
        (sample_config_dir / "cells" / "broken.yaml").write_text(
            "cell:\n  name: broken\n  groups: []\n"
        )
        manager = ConfigManager(sample_config_dir)
        with pytest.raises(ConfigurationError):
            manager.load()

    def test_empty_cells_dir(self, temp_dir):
        """Test a config directory without cells."""
        manager = ConfigManager(temp_dir)
        assert manager.list_cells() == []
