"""
Core module - Shared configuration, exceptions, geometry and logging.
"""

from robocell.core.config import (
    CellConfig,
    CheckSettings,
    ConfigManager,
    JointConfig,
    MechanicalGroupConfig,
    MechanismConfig,
)
from robocell.core.exceptions import (
    ConfigurationError,
    GeometryError,
    MechanismError,
    ProgramError,
    RoboCellError,
    SimulationError,
)
from robocell.core.geometry import MeshGeometry, Posable
from robocell.core.logging import configure_logging, get_logger, program_context

__all__ = [
    # Config
    "CellConfig",
    "CheckSettings",
    "ConfigManager",
    "JointConfig",
    "MechanicalGroupConfig",
    "MechanismConfig",
    # Exceptions
    "RoboCellError",
    "ConfigurationError",
    "GeometryError",
    "MechanismError",
    "ProgramError",
    "SimulationError",
    # Geometry
    "MeshGeometry",
    "Posable",
    # Logging
    "configure_logging",
    "get_logger",
    "program_context",
]
