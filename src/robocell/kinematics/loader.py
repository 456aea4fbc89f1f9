"""
Builds robot cells from configuration.
"""

from robocell.core.config import CellConfig, MechanicalGroupConfig, MechanismConfig
from robocell.core.exceptions import ConfigurationError, MechanismError
from robocell.kinematics.group import MechanicalGroup, RobotCell
from robocell.kinematics.mechanism import Mechanism
from robocell.kinematics.types import Joint, MechanismKind


class RobotCellLoader:
    """
    Turns validated configuration models into immutable robot cells.

    Joint numbers are assigned per group: robot joints first, then the
    external joints in declaration order.
    """

    @classmethod
    def load_from_config(cls, config: CellConfig) -> RobotCell:
        """
        Build a robot cell.

        Raises:
            ConfigurationError: If the definition is not a valid cell
        """
        try:
            groups = [
                cls._group(index, group) for index, group in enumerate(config.groups)
            ]
            return RobotCell(config.name, groups, settings=config.settings)
        except MechanismError as e:
            raise ConfigurationError(
                f"Invalid robot cell '{config.name}': {e.message}",
                details={"mechanism": e.mechanism, **e.details},
            ) from e

    @classmethod
    def _group(cls, index: int, config: MechanicalGroupConfig) -> MechanicalGroup:
        number = 0
        robot = None

        if config.robot is not None:
            robot = cls._mechanism(config.robot, number)
            number += len(robot.joints)

        externals = []
        for external_config in config.externals:
            external = cls._mechanism(external_config, number)
            number += len(external.joints)
            externals.append(external)

        return MechanicalGroup(
            index,
            config.name,
            robot=robot,
            externals=externals,
            frame_coupling=config.frame_coupling,
        )

    @staticmethod
    def _mechanism(config: MechanismConfig, first_number: int) -> Mechanism:
        joints = [
            Joint(
                number=first_number + i,
                range=joint.range,
                home=joint.home,
                max_speed=joint.max_speed,
            )
            for i, joint in enumerate(config.joints)
        ]
        return Mechanism(
            name=config.name,
            kind=MechanismKind(config.kind),
            joints=joints,
            base_frame=config.base_frame.to_frame(),
            parameters=config.parameters,
            moves_robot=config.moves_robot,
        )
