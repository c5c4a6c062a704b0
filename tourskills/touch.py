"""Condition skill that detects the robot being touched through its arm force/torque sensors."""

from __future__ import annotations

import time
from typing import Any, Callable, Sequence

from tourskills.skill import ConfigurationError, Skill

TOUCHED_ERROR = "TOUCHED_ERROR"
RESEND_INTERVAL = 5.0
SKILL_GROUP = "BT_SKILLS_PARAMETERS"
SENSOR_GROUP = "ANALOGSENSOR_CLIENT"
AXES = 3


def _squared_distance(reading: Sequence[float], baseline: Sequence[float]) -> int:
    if len(reading) < AXES:
        raise ValueError(f"a sensor reading needs at least {AXES} values")
    total = 0
    for value, reference in zip(reading[:AXES], baseline):
        total = int(total + (value - reference) ** 2)
    return total


class RobotNotTouched(Skill):
    """Succeeds while neither arm sensor has moved far from its first reading.

    The first reading of each sensor is taken as the resting value; a later reading
    whose squared distance from it exceeds the threshold counts as a touch. On a touch,
    ``update`` reports ``TOUCHED_ERROR`` to the tour manager, repeats it every five
    seconds, and returns once the robot is no longer touched.

    ``left_sensor`` and ``right_sensor`` must provide ``read()`` returning a sequence
    of numbers; ``tour_manager`` must provide ``send_error(code)`` and ``recovered()``.
    """

    log_component = "behavior_tour_robot.skills.robotNotTouched"

    def __init__(
        self,
        name="robotNotTouched",
        left_sensor=None,
        right_sensor=None,
        tour_manager=None,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], None] | None = None,
    ):
        super().__init__(name)
        self.period = 0.1
        self.threshold = 500
        self.left_sensor = left_sensor
        self.right_sensor = right_sensor
        self.tour_manager = tour_manager
        self.tour_manager_port_name = f"/{name}/TourManager/thrift:c"
        self.clock = clock if clock is not None else time.monotonic
        self.sleep = sleep if sleep is not None else time.sleep
        self.not_touched = True
        self.robot_name = "cer"
        self.sensor_options: dict[str, dict[str, Any]] = {}
        self._baseline_left: list[float] | None = None
        self._baseline_right: list[float] | None = None

    @property
    def calibrated(self) -> bool:
        return self._baseline_left is not None

    def configure(self, config) -> None:
        self.threshold = 500
        if not config.check(SKILL_GROUP):
            raise ConfigurationError("group not found")
        params = config.group(SKILL_GROUP)
        try:
            self.threshold = int(params.find("thresholdRobotNotTouched", 0))
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(
                f"invalid thresholdRobotNotTouched: {params.find('thresholdRobotNotTouched')!r}"
            ) from exc
        self.robot_name = str(params.find("robot", ""))

        device = "analogsensorclient"
        local_suffix = "/analogClient"
        if config.check(SENSOR_GROUP):
            sensor_config = config.group(SENSOR_GROUP)
            if sensor_config.check("device"):
                device = str(sensor_config.find("device"))
            if sensor_config.check("local_suffix"):
                local_suffix = str(sensor_config.find("local_suffix"))

        self.sensor_options = {
            side: {
                "device": device,
                "local": f"/{self.name}/{side}{local_suffix}",
                "remote": f"/{self.robot_name}/{side}_arm/FT:o",
                "carrier": "tcp",
            }
            for side in ("left", "right")
        }

        if self.left_sensor is None or self.right_sensor is None:
            raise ConfigurationError("Error opening PolyDriver check parameters")
        if self.tour_manager is None:
            raise ConfigurationError(
                f"Cannot attach the {self.tour_manager_port_name} port as client"
            )
        super().configure(config)
        self.log.info("Configuration Done!")

    def is_not_touched(self) -> bool:
        """Read both sensors once and report whether both are within the threshold."""
        if self.left_sensor is None or self.right_sensor is None:
            raise ConfigurationError("Force sensors are not available")
        left = list(self.left_sensor.read())
        right = list(self.right_sensor.read())
        if self._baseline_left is None or self._baseline_right is None:
            if len(left) < AXES or len(right) < AXES:
                raise ValueError(f"a sensor reading needs at least {AXES} values")
            self._baseline_left = left[:AXES]
            self._baseline_right = right[:AXES]
        sum_left = _squared_distance(left, self._baseline_left)
        sum_right = _squared_distance(right, self._baseline_right)
        self.log.debug("Left sum: %d", sum_left)
        self.log.debug("Right sum: %d", sum_right)
        return not (sum_left > self.threshold or sum_right > self.threshold)

    def update(self) -> bool:
        self.not_touched = self.is_not_touched()
        if self.not_touched:
            return True

        if self.tour_manager is None:
            raise ConfigurationError("Tour manager client is not attached")
        tour_manager = self.tour_manager
        time_start = self.clock()
        tour_manager.send_error(TOUCHED_ERROR)
        while True:
            if self.clock() - time_start >= RESEND_INTERVAL:
                tour_manager.send_error(TOUCHED_ERROR)
                time_start = self.clock()
            self.not_touched = self.is_not_touched()
            if self.not_touched:
                tour_manager.recovered()
            self.sleep(self.period)
            if self.not_touched:
                return True

    def start(self) -> bool:
        return self.not_touched

    def stop(self) -> None:
        super().stop()