import math

import pytest

from tourskills.localization import (
    COLLISION_TOPIC,
    LOCALIZATION_ERROR,
    MARKER_TOPIC,
    ODOM_FAULT_TOPIC,
    Quaternion,
    RobotNotLost,
)
from tourskills.skill import Config, ConfigurationError


class FakeTourManager:
    def __init__(self):
        self.errors = []

    def send_error(self, code):
        self.errors.append(code)


class Recorder:
    def __init__(self):
        self.messages = []

    def __call__(self, topic, message):
        self.messages.append((topic, message))

    def on(self, topic):
        return [message for t, message in self.messages if t == topic]


class FakeClock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now


def make_skill(clock=None):
    recorder = Recorder()
    manager = FakeTourManager()
    skill = RobotNotLost("lost", manager, recorder, clock or FakeClock())
    return skill, manager, recorder


def z_rotation(angle):
    return Quaternion(0.0, 0.0, math.sin(angle / 2), math.cos(angle / 2))


def test_quaternion_times_inverse_is_identity():
    q = Quaternion(0.1, -0.4, 0.3, 0.8)
    product = q * q.inverse()
    assert product.x == pytest.approx(0.0, abs=1e-12)
    assert product.y == pytest.approx(0.0, abs=1e-12)
    assert product.z == pytest.approx(0.0, abs=1e-12)
    assert product.w == pytest.approx(1.0)


def test_normalized_has_unit_norm():
    assert Quaternion(1.0, 2.0, 3.0, 4.0).normalized().norm == pytest.approx(1.0)


def test_zero_quaternion_errors():
    with pytest.raises(ValueError):
        Quaternion(0.0, 0.0, 0.0, 0.0).inverse()
    with pytest.raises(ValueError):
        Quaternion(0.0, 0.0, 0.0, 0.0).normalized()


def test_axis_angle_of_z_rotation():
    axis_angle = z_rotation(0.7).to_axis_angle()
    assert axis_angle[0] == pytest.approx(0.0)
    assert axis_angle[1] == pytest.approx(0.0)
    assert axis_angle[2] == pytest.approx(1.0)
    assert axis_angle[3] == pytest.approx(0.7)


def test_axis_angle_of_identity():
    assert Quaternion().to_axis_angle() == pytest.approx((0.0, 0.0, 0.0, 0.0))


def test_configure_reads_integer_period():
    skill, _, _ = make_skill()
    skill.configure(Config(values={"period": 2}))
    assert skill.period == 2


def test_configure_default_period():
    skill, _, _ = make_skill()
    skill.configure(Config())
    assert skill.period == 0.5


def test_configure_requires_tour_manager():
    skill = RobotNotLost("lost", None, Recorder(), FakeClock())
    with pytest.raises(ConfigurationError):
        skill.configure(Config())


def test_odometry_jump_sets_fault_and_publishes_collision_flag():
    skill, _, recorder = make_skill()
    skill.on_odometry(0.0, 0.0, 0.0)
    skill.on_odometry(0.1, 0.5, 0.0)
    assert skill.odom_temporal_fault is True
    assert recorder.on(COLLISION_TOPIC) == [False, False]
    skill.on_odometry(0.2, 0.5, 0.0)
    assert skill.odom_temporal_fault is False


def test_odometry_angular_jump_sets_fault():
    skill, _, _ = make_skill()
    skill.on_odometry(0.0, 0.0, 0.0)
    skill.on_odometry(0.1, 0.0, 1.0)
    assert skill.odom_temporal_fault is True


def test_amcl_linear_jump_sets_fault():
    skill, _, _ = make_skill()
    for k in range(7):
        skill.on_amcl(float(k), float(k), 0.0, Quaternion())
    assert skill.amcl_temporal_linear_fault is True


def test_stationary_amcl_has_no_fault():
    skill, _, _ = make_skill()
    for k in range(10):
        skill.on_amcl(float(k), 1.0, 2.0, (0.0, 0.0, 0.0, 1.0))
    assert skill.amcl_temporal_linear_fault is False
    assert skill.amcl_temporal_angular_fault is False


def test_amcl_rotation_sets_angular_fault():
    skill, _, _ = make_skill()
    for k in range(7):
        skill.on_amcl(float(k), 0.0, 0.0, z_rotation(0.2 * k))
    assert skill.amcl_temporal_angular_fault is True


@pytest.mark.parametrize("odom_speed, expected", [(0.0, True), (0.1, False)])
def test_amcl_odometry_linear_consistency(odom_speed, expected):
    skill, _, _ = make_skill()
    skill.on_odometry(0.0, odom_speed, 0.0)
    skill.on_odometry(0.1, odom_speed, 0.0)
    for k in range(8):
        skill.on_amcl(float(k), 0.1 * k, 0.0, Quaternion())
    assert skill.amcl_temporal_linear_fault is False
    assert skill.amcl_odom_linear_fault is expected


def test_has_collided_false_without_commands():
    skill, _, _ = make_skill()
    for k in range(40):
        skill.on_odometry(0.1 * k, 0.0, 0.0)
    assert skill.has_collided() is False


def _collision_setup(clock):
    skill, _, _ = make_skill(clock)
    for k in range(32):
        skill.on_odometry(0.1 * k, 1.0 if k < 5 else 0.0, 0.0)
    for offset in (0.0, 0.05, 0.1, 0.15):
        clock.now = 100.0 + offset
        skill.on_cmd_vel(0.3)
    return skill


def test_has_collided_detects_sudden_stop():
    clock = FakeClock()
    skill = _collision_setup(clock)
    assert skill.has_collided() is True


def test_has_collided_ignores_stale_commands():
    clock = FakeClock()
    skill = _collision_setup(clock)
    clock.now += 1.0
    assert skill.has_collided() is False


def test_update_counts_odometry_faults_up_and_down():
    skill, _, recorder = make_skill()
    skill.odom_temporal_fault = True
    skill.update()
    skill.update()
    assert skill.odom_total_faults == 2
    assert skill.start() is True
    skill.odom_temporal_fault = False
    skill.update()
    skill.update()
    skill.update()
    assert skill.odom_total_faults == 0
    assert recorder.on(ODOM_FAULT_TOPIC) == [1, 2, 1, 0, 0]


def test_update_publishes_marker_at_last_pose():
    skill, _, recorder = make_skill()
    skill.on_amcl(1.0, 3.0, 4.0, Quaternion())
    skill.update()
    skill.update()
    markers = recorder.on(MARKER_TOPIC)
    assert len(markers) == 2
    last = markers[-1]
    assert [marker.id for marker in last] == [0, 1]
    assert last[-1].position == (3.0, 4.0, 0.02)
    assert last[-1].frame_id == "map"
    assert last[-1].ns == "mobile_base_body_link"


def test_too_many_faults_reports_localization_error():
    skill, manager, _ = make_skill()
    skill.odom_temporal_fault = True
    skill.amcl_temporal_linear_fault = True
    for _ in range(4):
        skill.update()
    assert skill.start() is True
    assert manager.errors == []
    skill.update()
    assert skill.amcl_total_faults + skill.odom_total_faults == 10
    assert skill.start() is False
    assert manager.errors == [LOCALIZATION_ERROR]