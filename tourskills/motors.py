"""Condition skill that watches the control modes of the base and arms for hardware faults."""

from __future__ import annotations

import enum
import logging
import time
from typing import Any, Callable, Sequence

from tourskills.skill import ConfigurationError, Skill

LOG_COMPONENT = "behavior_tour_robot.skills.motorsNotInFault"
MOTORS_ERROR = "MOTORS_ERROR"
RESEND_INTERVAL = 5.0
ARM_JOINTS = 7
SKILL_GROUP = "BT_SKILLS_PARAMETERS"

_log = logging.getLogger(LOG_COMPONENT)


class ControlMode(enum.Enum):
    """Control mode a joint can report."""

    IDLE = "idle"
    HW_FAULT = "hw_fault"
    VELOCITY = "velocity"
    POSITION = "position"
    POSITION_DIRECT = "position_direct"
    MIXED = "mixed"
    TORQUE = "torque"
    CURRENT = "current"
    PWM = "pwm"
    IMPEDANCE_POS = "impedance_pos"
    IMPEDANCE_VEL = "impedance_vel"
    FORCE_IDLE = "force_idle"
    UNKNOWN = "unknown"
    NOT_CONFIGURED = "not_configured"
    CONFIGURED = "configured"
    CALIB_DONE = "calib_done"
    CALIBRATING = "calibrating"


_UNKNOWN_MODES = frozenset(
    {
        ControlMode.UNKNOWN,
        ControlMode.NOT_CONFIGURED,
        ControlMode.CONFIGURED,
        ControlMode.CALIB_DONE,
        ControlMode.CALIBRATING,
    }
)


def base_in_fault(modes: Sequence[Any]) -> bool:
    """Report whether the two-wheel base is faulty or its wheels disagree about being idle."""
    if len(modes) < 2:
        raise ValueError("the base reports the modes of two wheels")
    first, second = modes[0], modes[1]
    fault = ControlMode.HW_FAULT in (first, second)
    idle = first == ControlMode.IDLE and second == ControlMode.IDLE
    incoherent = (first == ControlMode.IDLE) != (second == ControlMode.IDLE)
    if idle:
        _log.warning("The base is in idle")
    if incoherent:
        _log.warning("The two wheels are in a different mode. Please check.")
    return fault or incoherent


def arm_in_fault(modes: Sequence[Any], label: str) -> bool:
    """Report whether any of the first seven joints of an arm is in hardware fault.

    Idle and unconfigured joints are logged as warnings but do not count as faults.
    ``label`` names the arm, e.g. ``"left"``.
    """
    prefix = f"{label.upper()}_ARM"
    idle_joints: list[int] = []
    unknown_joints: list[int] = []
    for joint, mode in enumerate(modes[:ARM_JOINTS]):
        if mode == ControlMode.HW_FAULT:
            return True
        if mode == ControlMode.IDLE:
            idle_joints.append(joint)
        elif mode in _UNKNOWN_MODES:
            unknown_joints.append(joint)
        elif not isinstance(mode, ControlMode):
            _log.debug(
                "%s - Unsupported control mode: %s Check the joint using yarpmotorgui is deemed necessary",
                prefix,
                mode,
            )

    if unknown_joints:
        _log.warning(
            "%s - Joints in UNKNOWN state for the %s arm:%s",
            prefix,
            label,
            "".join(f" {joint}" for joint in unknown_joints),
        )
    if idle_joints:
        _log.warning(
            "%s - Joints in IDLE state for the %s arm:%s",
            prefix,
            label,
            "".join(f" {joint}" for joint in idle_joints),
        )
    return False


def _board_options(local: str, remote: str) -> dict[str, str]:
    return {"device": "remote_controlboard", "local": local, "remote": remote, "carrier": "tcp"}


class MotorsNotInFault(Skill):
    """Succeeds while neither the base nor the arms are in fault.

    On a fault, ``update`` reports ``MOTORS_ERROR`` to the tour manager, repeats the
    report every five seconds, and returns once the motors have recovered.

    ``base``, ``left_arm`` and ``right_arm`` must provide ``get_control_modes()``;
    ``tour_manager`` must provide ``send_error(code)`` and ``recovered()``.
    """

    log_component = LOG_COMPONENT

    def __init__(
        self,
        name="motorsNotInFault",
        base=None,
        left_arm=None,
        right_arm=None,
        tour_manager=None,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], None] | None = None,
    ):
        super().__init__(name)
        self.period = 0.1
        self.base = base
        self.left_arm = left_arm
        self.right_arm = right_arm
        self.tour_manager = tour_manager
        self.tour_manager_port_name = f"/{name}/TourManager/thrift:c"
        self.clock = clock if clock is not None else time.monotonic
        self.sleep = sleep if sleep is not None else time.sleep
        self.condition = True
        self.robot_name = "cer"
        self.board_options: dict[str, dict[str, str]] = {}

    def configure(self, config) -> None:
        if not config.check(SKILL_GROUP):
            raise ConfigurationError("robot name required")
        self.robot_name = str(config.group(SKILL_GROUP).find("robot", ""))
        robot = self.robot_name
        self.board_options = {
            "base": _board_options(f"/{self.name}base", f"/{robot}/mobile_base"),
            "left_arm": _board_options(f"/{self.name}left", f"/{robot}/left_arm"),
            "right_arm": _board_options(f"/{self.name}right", f"/{robot}/right_arm"),
        }
        for part in ("base", "left_arm", "right_arm"):
            if getattr(self, part) is None:
                raise ConfigurationError(f"Error opening PolyDriver for {part}, check parameters")
        if self.tour_manager is None:
            raise ConfigurationError(
                f"Cannot attach the {self.tour_manager_port_name} port as client"
            )
        super().configure(config)
        self.log.info("Configuration Done!")

    @staticmethod
    def _modes(board, part: str) -> Sequence[Any]:
        if board is None:
            raise ConfigurationError(f"{part} control board is not available")
        return board.get_control_modes()

    def base_in_fault(self) -> bool:
        return base_in_fault(self._modes(self.base, "base"))

    def left_arm_in_fault(self) -> bool:
        return arm_in_fault(self._modes(self.left_arm, "left arm"), "left")

    def right_arm_in_fault(self) -> bool:
        return arm_in_fault(self._modes(self.right_arm, "right arm"), "right")

    def _healthy(self) -> bool:
        return not (self.base_in_fault() or self.left_arm_in_fault() or self.right_arm_in_fault())

    def update(self) -> bool:
        self.condition = self._healthy()
        if self.condition:
            return True

        if self.tour_manager is None:
            raise ConfigurationError("Tour manager client is not attached")
        tour_manager = self.tour_manager
        time_start = self.clock()
        tour_manager.send_error(MOTORS_ERROR)
        while True:
            if self.clock() - time_start >= RESEND_INTERVAL:
                tour_manager.send_error(MOTORS_ERROR)
                time_start = self.clock()
            self.condition = self._healthy()
            if self.condition:
                tour_manager.recovered()
            self.sleep(self.period)
            if self.condition:
                return True

    def start(self) -> bool:
        self.log.debug("Skill status returned %s", self.condition)
        return self.condition

    def stop(self) -> None:
        super().stop()