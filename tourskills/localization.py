"""Condition skill that checks localization consistency and detects collisions."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from itertools import pairwise
from typing import Any, Callable

from tourskills.skill import ConfigurationError, Skill

LOCALIZATION_ERROR = "LOCALIZATION_ERROR"
WINDOW = 5
ANGULAR_JUMP = 0.14
LINEAR_JUMP = 0.15
AMCL_ODOM_LINEAR = 0.05
AMCL_ODOM_ANGULAR = 0.3
ODOM_LINEAR_JUMP = 0.3
ODOM_ANGULAR_JUMP = 0.523
COLLISION_WINDOW = 30
COLLISION_FAST_PAIRS = 6
COLLISION_THRESHOLD = 1.5
CMD_FRESHNESS = 0.2
SEVERE_FAULTS = 3
MAX_FAULTS = 10

MARKER_TOPIC = "/consistencyMarker"
COLLISION_TOPIC = "/collisionDetector"
AMCL_FAULT_TOPIC = "/amcl_fault_pub"
ODOM_FAULT_TOPIC = "/odom_fault_pub"
TOTAL_FAULT_TOPIC = "/total_fault_pub"


def _div(numerator: float, denominator: float) -> float:
    """Divide with IEEE semantics instead of raising on a zero denominator."""
    if denominator != 0:
        return numerator / denominator
    if numerator == 0 or math.isnan(numerator):
        return math.nan
    return math.copysign(math.inf, numerator)


@dataclass(frozen=True)
class Quaternion:
    """A rotation quaternion with components ``x``, ``y``, ``z`` and scalar part ``w``."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    w: float = 1.0

    def __mul__(self, other: "Quaternion") -> "Quaternion":
        return Quaternion(
            x=self.w * other.x + self.x * other.w + self.y * other.z - self.z * other.y,
            y=self.w * other.y - self.x * other.z + self.y * other.w + self.z * other.x,
            z=self.w * other.z + self.x * other.y - self.y * other.x + self.z * other.w,
            w=self.w * other.w - self.x * other.x - self.y * other.y - self.z * other.z,
        )

    @property
    def norm(self) -> float:
        return math.sqrt(self.x**2 + self.y**2 + self.z**2 + self.w**2)

    def inverse(self) -> "Quaternion":
        """Return the multiplicative inverse."""
        squared = self.x**2 + self.y**2 + self.z**2 + self.w**2
        if squared == 0:
            raise ValueError("the zero quaternion has no inverse")
        return Quaternion(-self.x / squared, -self.y / squared, -self.z / squared, self.w / squared)

    def normalized(self) -> "Quaternion":
        """Return the unit quaternion with the same direction."""
        norm = self.norm
        if norm == 0:
            raise ValueError("the zero quaternion cannot be normalized")
        return Quaternion(self.x / norm, self.y / norm, self.z / norm, self.w / norm)

    def to_axis_angle(self) -> tuple[float, float, float, float]:
        """Return ``(axis_x, axis_y, axis_z, angle)``."""
        q = self.normalized() if self.w > 1 else self
        w = max(-1.0, min(1.0, q.w))
        angle = 2 * math.acos(w)
        s = math.sqrt(1 - w * w)
        if s < 0.001:
            return (q.x, q.y, q.z, angle)
        return (q.x / s, q.y / s, q.z / s, angle)


@dataclass
class Marker:
    """A cube marker showing the robot pose and the current fault level."""

    id: int
    stamp: float
    position: tuple[float, float, float]
    color: tuple[float, float, float, float]
    frame_id: str = "map"
    ns: str = "mobile_base_body_link"
    type: str = "CUBE"
    action: str = "ADD"
    orientation: tuple[float, float, float, float] = (0.0, 0.0, 0.0, 1.0)
    scale: tuple[float, float, float] = (0.2, 0.2, 0.2)


_GREEN = (0.0, 1.0, 0.0, 0.5)
_RED = (1.0, 0.0, 0.0, 0.5)
_YELLOW = (1.0, 1.0, 0.0, 0.5)


class RobotNotLost(Skill):
    """Succeeds while AMCL and odometry stay consistent enough.

    Feed it with ``on_amcl``, ``on_odometry`` and ``on_cmd_vel``; ``update`` turns the
    fault flags into running fault counts and publishes them. ``tour_manager`` must
    provide ``send_error(code)``; ``publish(topic, message)`` receives markers,
    collision flags and fault counts.
    """

    log_component = "behavior_tour_robot.skills.robotnotlost_condition"

    def __init__(
        self,
        name="robotNotLost",
        tour_manager=None,
        publish: Callable[[str, Any], None] | None = None,
        clock: Callable[[], float] | None = None,
    ):
        super().__init__(name)
        self.period = 0.5
        self.tour_manager = tour_manager
        self.tour_manager_port_name = f"/{name}/TourManager/thrift:c"
        self.publish = publish
        self.clock = clock if clock is not None else time.time
        self.robot_not_lost = True

        self.marker_count = 0
        self.markers: list[Marker] = []

        self.amcl_poses: list[tuple[float, float, float]] = []
        self.amcl_orientations: list[Quaternion] = []
        self.odometry_velocities: list[tuple[float, float, float]] = []
        self.amcl_aligned_odometry_velocities: list[tuple[float, float, float]] = []
        self.cmd_velocities: list[tuple[float, float]] = []

        self.amcl_total_faults = 0
        self.odom_total_faults = 0
        self.amcl_temporal_angular_fault = False
        self.amcl_temporal_linear_fault = False
        self.odom_temporal_fault = False
        self.amcl_odom_linear_fault = False
        self.amcl_odom_angular_fault = False
        self.log.info("Initialization finished!")

    def configure(self, config) -> None:
        if config.check("period"):
            try:
                self.period = int(config.find("period"))
            except (TypeError, ValueError) as exc:
                raise ConfigurationError(f"invalid period: {config.find('period')!r}") from exc
        else:
            self.period = 0.5
        if self.publish is None:
            raise ConfigurationError("Error opening topic (publisher): consistencyMarker")
        if self.tour_manager is None:
            raise ConfigurationError(
                f"Cannot attach the {self.tour_manager_port_name} port as client"
            )
        super().configure(config)
        self.log.info("Configuration done!")

    def _publish(self, topic: str, message: Any) -> None:
        if self.publish is not None:
            self.publish(topic, message)

    def on_amcl(self, stamp: float, x: float, y: float, orientation) -> None:
        """Take a new AMCL pose estimate and refresh the AMCL fault flags."""
        self.amcl_temporal_angular_fault = False
        self.amcl_temporal_linear_fault = False
        self.amcl_odom_linear_fault = False
        self.amcl_odom_angular_fault = False

        if not isinstance(orientation, Quaternion):
            orientation = Quaternion(*orientation)
        self.amcl_orientations.append(orientation)
        self.amcl_poses.append((float(stamp), float(x), float(y)))

        angle_difference = 0.0
        distance_difference = 0.0

        if len(self.amcl_orientations) > WINDOW + 1:
            # Only the oldest pair of the window contributes to the angle estimate.
            newer = self.amcl_orientations[-WINDOW]
            older = self.amcl_orientations[-WINDOW - 1]
            angle_difference = (newer * older).normalized().to_axis_angle()[2] / WINDOW
            if abs(angle_difference) > ANGULAR_JUMP:
                self.amcl_temporal_angular_fault = True

        recent_poses = self.amcl_poses[-(WINDOW + 1):]
        if len(self.amcl_poses) > WINDOW + 1:
            distance_difference = (
                sum(math.hypot(b[1] - a[1], b[2] - a[2]) for a, b in pairwise(recent_poses))
                / WINDOW
            )
            if distance_difference > LINEAR_JUMP:
                self.amcl_temporal_linear_fault = True

        if len(self.odometry_velocities) > 1:
            self.amcl_aligned_odometry_velocities.append(self.odometry_velocities[-1])

        aligned = self.amcl_aligned_odometry_velocities
        if len(aligned) > WINDOW + 1 and len(self.amcl_poses) > WINDOW + 1:
            window = aligned[-WINDOW:]
            linear_speed = sum(v[1] for v in window) / WINDOW
            angular_speed = sum(v[2] for v in window) / WINDOW
            elapsed = sum(b[0] - a[0] for a, b in pairwise(recent_poses)) / WINDOW
            if abs(_div(distance_difference, elapsed) - linear_speed) > AMCL_ODOM_LINEAR:
                self.amcl_odom_linear_fault = True
            if abs(_div(angle_difference, elapsed) - angular_speed) > AMCL_ODOM_ANGULAR:
                self.amcl_odom_angular_fault = True

    def on_odometry(self, stamp: float, linear: float, angular: float) -> None:
        """Take a new odometry velocity, check for jumps and publish the collision flag."""
        self.odom_temporal_fault = False
        self.odometry_velocities.append((float(stamp), float(linear), float(angular)))
        if len(self.odometry_velocities) > 1:
            previous, last = self.odometry_velocities[-2], self.odometry_velocities[-1]
            if (
                abs(last[1] - previous[1]) > ODOM_LINEAR_JUMP
                or abs(last[2] - previous[2]) > ODOM_ANGULAR_JUMP
            ):
                self.odom_temporal_fault = True
        self._publish(COLLISION_TOPIC, self.has_collided())

    def on_cmd_vel(self, linear: float) -> None:
        """Record a commanded linear velocity with the current time."""
        self.cmd_velocities.append((self.clock(), float(linear)))

    def has_collided(self) -> bool:
        """Report a sudden change of acceleration while the robot is commanded to move."""
        if len(self.cmd_velocities) <= 3:
            return False
        third_last, last = self.cmd_velocities[-3], self.cmd_velocities[-1]
        cmd_acceleration = _div(third_last[1] - last[1], third_last[0] - last[0])
        if not (
            cmd_acceleration > -0.1
            and len(self.odometry_velocities) > COLLISION_WINDOW
            and abs(last[0] - self.clock()) < CMD_FRESHNESS
        ):
            return False

        recent = self.odometry_velocities[-(COLLISION_WINDOW + 1):]
        accelerations = [_div(b[1] - a[1], b[0] - a[0]) for a, b in pairwise(recent)]
        slow = sum(accelerations) / COLLISION_WINDOW
        fast = sum(accelerations[:COLLISION_FAST_PAIRS]) / WINDOW
        if abs(slow - fast) > COLLISION_THRESHOLD:
            self.log.debug("%s", abs(slow - fast))
            return True
        return False

    def update(self) -> bool:
        total_faults = 0

        amcl_faults = (
            (self.amcl_temporal_angular_fault, "amcl temporal angular consistency fault"),
            (self.amcl_temporal_linear_fault, "amcl temporal linear consistency fault"),
            (self.amcl_odom_angular_fault, "amcl-odometry angular consistency fault"),
            (self.amcl_odom_linear_fault, "amcl-odometry linear consistency fault"),
        )
        message = next((text for flag, text in amcl_faults if flag), None)
        if message is not None:
            self.amcl_total_faults += 1
            self.log.warning(
                "Low severity - %s\t\t%d consecutive faults", message, self.amcl_total_faults
            )
        else:
            self.amcl_total_faults = max(0, self.amcl_total_faults - 1)

        if self.odom_temporal_fault:
            self.odom_total_faults += 1
            self.log.warning(
                "Low severity - odometry temporal consistency fault\t\t%d consecutive faults",
                self.odom_total_faults,
            )
        else:
            self.odom_total_faults = max(0, self.odom_total_faults - 1)

        if self.amcl_poses:
            if total_faults == 0:
                color = _GREEN
            elif total_faults > 5:
                color = _RED
            else:
                color = _YELLOW
            _, x, y = self.amcl_poses[-1]
            marker = Marker(
                id=self.marker_count,
                stamp=self.clock(),
                position=(x, y, 0.02),
                color=color,
            )
            self.marker_count += 1
            self.markers.append(marker)
            self._publish(MARKER_TOPIC, list(self.markers))

        self._publish(AMCL_FAULT_TOPIC, self.amcl_total_faults)
        self._publish(ODOM_FAULT_TOPIC, self.odom_total_faults)
        self._publish(TOTAL_FAULT_TOPIC, total_faults)

        if self.amcl_total_faults == 0 and self.odom_total_faults == 0:
            self.log.info("No fault")
            self.robot_not_lost = True
            return True

        if self.amcl_total_faults >= SEVERE_FAULTS:
            self.log.error("High severity - AMCL checks failed!")
        if self.odom_total_faults >= SEVERE_FAULTS:
            self.log.error("High severity - Odometry checks failed!")

        total_faults = self.amcl_total_faults + self.odom_total_faults
        if total_faults >= MAX_FAULTS:
            self.robot_not_lost = False
            if self.tour_manager is not None:
                self.tour_manager.send_error(LOCALIZATION_ERROR)
            self.log.error("Fail - Too many errors to continue!")
        else:
            self.robot_not_lost = True
        return True

    def start(self) -> bool:
        return self.robot_not_lost

    def stop(self) -> None:
        self.log.error("Received a stop.")