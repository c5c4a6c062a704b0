# tourskills

Behavior-tree skills for a tour-guide robot. Each skill is an object that a
behavior tree ticks through `start()`: conditions answer `True` or `False`,
actions carry out a step of the tour. Skills that watch the robot's health
refresh their answer in `update()`, which a run loop calls once per period,
and report problems to a tour manager so the tour can pause and resume.

The package has no runtime dependencies. Robot hardware, the tour manager and
message publishing are passed in as plain Python objects, so the skills can be
driven by any middleware or by simple fakes in tests.

## The skills

| Module | Class | Kind | What `start()` answers |
| --- | --- | --- | --- |
| `tourskills.gotopoi` | `GoToPoIAction` | action | the result of `tour_manager.send_to_poi()` |
| `tourskills.motors` | `MotorsNotInFault` | condition | whether base and arms are free of hardware faults |
| `tourskills.touch` | `RobotNotTouched` | condition | whether the arm force sensors stay within the threshold |
| `tourskills.localization` | `RobotNotLost` | condition | whether localization and odometry are consistent enough |

`MotorsNotInFault` and `RobotNotTouched` block inside `update()` while a fault
lasts: they send `"MOTORS_ERROR"` or `"TOUCHED_ERROR"` through
`tour_manager.send_error(code)`, repeat it every five seconds, and call
`tour_manager.recovered()` once the fault clears. `RobotNotLost` sends
`"LOCALIZATION_ERROR"` when its accumulated fault count reaches ten.

The objects a skill expects:

- `GoToPoIAction(name, tour_manager)`: `tour_manager.send_to_poi()`.
- `MotorsNotInFault(name, base, left_arm, right_arm, tour_manager, clock, sleep)`:
  each board has `get_control_modes()` returning a sequence of `ControlMode`
  values; the base reports two wheels, each arm at least seven joints.
- `RobotNotTouched(name, left_sensor, right_sensor, tour_manager, clock, sleep)`:
  each sensor has `read()` returning at least three numbers. The first reading
  is taken as the resting value.
- `RobotNotLost(name, tour_manager, publish, clock)`: `publish(topic, message)`.

`clock` and `sleep` default to `time.monotonic` and `time.sleep` and can be
replaced for testing. The helper functions `motors.base_in_fault(modes)` and
`motors.arm_in_fault(modes, label)` can also be used on their own.

## Configuration

Skills read their settings from a `Config`, built from command-line style
arguments or from configuration text with named groups:

```python
from tourskills.skill import Config, parse_config_text

config = Config.from_argv(["--name", "motorsNotInFault", "--period", "0.1"])

config = parse_config_text("""
[BT_SKILLS_PARAMETERS]
robot cer                      // robot name used in remote port names
thresholdRobotNotTouched 500
""")
```

In `Config.from_argv`, `--from FILE` loads a file in the same text format
first; the other arguments override its top-level values. Numbers are
converted to `int` or `float`, a key with no value becomes `True`, and a key
with several values becomes a list.

`Config.check(key)` tells whether a value or group of that name is present,
`Config.find(key, default)` returns a value, and `Config.group(name)` returns a
named group (an empty one when missing). `MotorsNotInFault` and
`RobotNotTouched` need the `BT_SKILLS_PARAMETERS` group; `RobotNotTouched` also
reads an optional `ANALOGSENSOR_CLIENT` group (`device`, `local_suffix`);
`RobotNotLost` reads an optional top-level `period`. A skill whose required
settings or objects are missing raises `ConfigurationError` from
`configure()`.

## Running a skill

Every skill derives from `tourskills.skill.Skill`. `Skill.run(config,
stop_event)` configures the skill, then calls `update()` once per period until
`update()` returns `False` or the `threading.Event` is set, and finally calls
`interrupt()` (if stopped by the event) and `close()`. It returns `False` when
configuration fails.

```python
import threading

from tourskills.motors import MotorsNotInFault
from tourskills.skill import parse_config_text

config = parse_config_text("[BT_SKILLS_PARAMETERS]\nrobot cer\n")
stop_event = threading.Event()
skill = MotorsNotInFault("motorsNotInFault", base, left_arm, right_arm, tour_manager)
skill.run(config, stop_event)
```

From another thread the behavior tree calls `skill.start()` to tick the skill
and `skill.stop()` to halt it. `skill.get_status()` returns a `SkillStatus`.

## Localization checks

`RobotNotLost` is fed by the caller's subscriptions:

```python
from tourskills.localization import Quaternion, RobotNotLost

skill = RobotNotLost("robotNotLost", tour_manager, publish)
skill.on_amcl(stamp, x, y, Quaternion(0.0, 0.0, 0.0, 1.0))  # or an (x, y, z, w) tuple
skill.on_odometry(stamp, linear, angular)
skill.on_cmd_vel(linear)
skill.update()
robot_is_fine = skill.start()
```

It compares consecutive pose estimates with each other and with odometry,
flags jumps in odometry velocity, and turns these flags into running fault
counts in `update()`. Through `publish` it sends the list of `Marker` records
to `/consistencyMarker`, the result of `has_collided()` to
`/collisionDetector` on every odometry message, and the fault counts to
`/amcl_fault_pub`, `/odom_fault_pub` and `/total_fault_pub`.
`has_collided()` flags a sudden change in odometry acceleration while a
recent velocity command asks the robot to keep moving.

## What the package does not do

- It has no command-line program; skills are created and run from Python.
- It does not connect to any robot middleware, device driver or tour manager
  itself; the caller supplies those objects and delivers sensor messages.

## Development

The tests use pytest and live in `tests/`:

```
pip install -e .[test]
pytest
```