"""
Configuration management for RoboCell.

Handles loading and validation of robot cell definitions and program
check settings from YAML files.
"""

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Optional

import yaml
from compas.geometry import Frame
from pydantic import BaseModel, Field, ValidationError, model_validator

from robocell.core.exceptions import ConfigurationError


class FrameConfig(BaseModel):
    """Frame given by its origin and two axes."""

    point: tuple[float, float, float] = (0.0, 0.0, 0.0)
    xaxis: tuple[float, float, float] = (1.0, 0.0, 0.0)
    yaxis: tuple[float, float, float] = (0.0, 1.0, 0.0)

    def to_frame(self) -> Frame:
        return Frame(self.point, self.xaxis, self.yaxis)


class JointConfig(BaseModel):
    """Joint limits and defaults. Angles in radians, distances in mm."""

    range: tuple[float, float]
    home: float = 0.0
    max_speed: float = Field(default=math.pi, gt=0)

    @model_validator(mode="after")
    def _check_range(self) -> "JointConfig":
        lower, upper = self.range
        if lower > upper:
            raise ValueError(f"range lower bound {lower} exceeds upper bound {upper}")
        if not lower <= self.home <= upper:
            raise ValueError(f"home {self.home} is outside range {self.range}")
        return self


class MechanismConfig(BaseModel):
    """Mechanism definition."""

    name: str
    kind: Literal["arm", "track", "positioner"]
    base_frame: FrameConfig = Field(default_factory=FrameConfig)
    parameters: dict[str, float] = Field(default_factory=dict)
    joints: list[JointConfig]
    moves_robot: bool = False


class MechanicalGroupConfig(BaseModel):
    """Mechanical group definition: an optional robot and its externals."""

    name: str
    robot: Optional[MechanismConfig] = None
    externals: list[MechanismConfig] = Field(default_factory=list)
    frame_coupling: Optional[int] = None


class CheckSettings(BaseModel):
    """
    Program check settings.

    Attributes:
        linear_step: Largest tool translation between linear motion samples (mm)
        angular_step: Largest tool rotation between linear motion samples (rad)
        jump_factor: Multiple of a step above which a change between two
            consecutive samples is reported as a discontinuity
    """

    linear_step: float = Field(default=1.0, gt=0)
    angular_step: float = Field(default=math.radians(1.0), gt=0)
    jump_factor: float = Field(default=10.0, gt=1)


class CellConfig(BaseModel):
    """Robot cell definition."""

    name: str
    groups: list[MechanicalGroupConfig] = Field(min_length=1)
    settings: CheckSettings = Field(default_factory=CheckSettings)


@dataclass
class ConfigManager:
    """
    Central configuration manager for RoboCell.

    Loads and validates robot cell definitions from ``<config_dir>/cells``.

    Example:
        >>> config = ConfigManager(config_dir=Path("config"))
        >>> cell = config.get_cell("track_cell")
    """

    config_dir: Path
    _cells: dict[str, CellConfig] = field(default_factory=dict, init=False)
    _loaded: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        """Initialize configuration manager."""
        self.config_dir = Path(self.config_dir)
        if not self.config_dir.exists():
            raise ConfigurationError(
                f"Configuration directory not found: {self.config_dir}"
            )

    def load(self) -> None:
        """Load all configurations from disk."""
        self._load_cells()
        self._loaded = True

    def _load_cells(self) -> None:
        cells_dir = self.config_dir / "cells"
        if not cells_dir.exists():
            return

        for config_file in sorted(cells_dir.glob("*.yaml")):
            try:
                with open(config_file) as f:
                    data = yaml.safe_load(f)

                if data and "cell" in data:
                    self._cells[config_file.stem] = CellConfig(**data["cell"])
            except (yaml.YAMLError, ValidationError) as e:
                raise ConfigurationError(
                    f"Failed to load cell config: {config_file}",
                    details={"error": str(e)},
                )

    def get_cell(self, name: str) -> CellConfig:
        """
        Get robot cell configuration by name.

        Args:
            name: Cell configuration name (without .yaml extension)

        Returns:
            CellConfig instance

        Raises:
            ConfigurationError: If the cell is not found
        """
        if not self._loaded:
            self.load()

        if name not in self._cells:
            available = list(self._cells.keys())
            raise ConfigurationError(
                f"Cell configuration not found: {name}",
                details={"available": available},
            )
        return self._cells[name]

    def list_cells(self) -> list[str]:
        """List available cell configurations."""
        if not self._loaded:
            self.load()
        return list(self._cells.keys())
