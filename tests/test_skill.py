import threading

import pytest

from tourskills.skill import (
    Config,
    ConfigurationError,
    Skill,
    SkillStatus,
    parse_config_text,
)


class _Recorder(Skill):
    def __init__(self, name, updates=None, fail=False, stop_event=None):
        super().__init__(name)
        self.period = 0
        self.updates = list(updates or [])
        self.fail = fail
        self.calls = []
        self.stop_event = stop_event

    def configure(self, config):
        if self.fail:
            raise ConfigurationError("cannot open port")
        super().configure(config)
        self.calls.append("configure")

    def update(self):
        self.calls.append("update")
        if self.stop_event is not None and len(self.calls) > 2:
            self.stop_event.set()
        return self.updates.pop(0) if self.updates else True

    def interrupt(self):
        self.calls.append("interrupt")

    def start(self):
        return True


def test_parse_groups_values_and_comments():
    text = """
    name worker   // trailing comment
    # full comment line
    [NAVIGATION2D-CLIENT]
    device navigation2D_nwc_yarp
    period 10
    radius 1.5
    """
    config = parse_config_text(text)
    assert config.find("name") == "worker"
    nav = config.group("NAVIGATION2D-CLIENT")
    assert nav.find("device") == "navigation2D_nwc_yarp"
    assert nav.find("period") == 10
    assert nav.find("radius") == 1.5
    assert config.check("NAVIGATION2D-CLIENT")


def test_parse_multiple_values_and_flags():
    config = parse_config_text('list 1 2 three\nflag\nquoted "a b"\n')
    assert config.find("list") == [1, 2, "three"]
    assert config.find("flag") is True
    assert config.find("quoted") == "a b"


def test_parse_bad_header_raises():
    with pytest.raises(ConfigurationError):
        parse_config_text("[BROKEN\nkey value\n")


def test_find_default_and_missing_group():
    config = Config(values={"a": 1})
    assert config.find("b", "fallback") == "fallback"
    assert config.find("b") is None
    assert not config.group("NOPE").check("a")
    assert not config.check("NOPE")


def test_from_argv_pairs():
    config = Config.from_argv(["--name", "worker", "--period", "2", "--verbose"])
    assert config.find("name") == "worker"
    assert config.find("period") == 2
    assert config.find("verbose") is True


def test_from_argv_rejects_positional():
    with pytest.raises(ConfigurationError):
        Config.from_argv(["stray"])


def test_from_argv_loads_file_and_overrides(tmp_path):
    path = tmp_path / "skill.ini"
    path.write_text("period 3\nname base\n[BT_SKILLS_PARAMETERS]\nrobot cer\n")
    config = Config.from_argv(["--from", str(path), "--name", "override"])
    assert config.find("period") == 3
    assert config.find("name") == "override"
    assert config.group("BT_SKILLS_PARAMETERS").find("robot") == "cer"
    assert not config.check("from")


def test_from_argv_missing_file(tmp_path):
    with pytest.raises(ConfigurationError):
        Config.from_argv(["--from", str(tmp_path / "absent.ini")])


def test_skill_defaults():
    skill = _Recorder("worker")
    assert Skill.get_status(skill) is SkillStatus.IDLE
    assert skill.rpc_port_name == "/worker/BT_rpc/server"
    assert skill.stopped is False
    Skill.stop(skill)
    assert skill.stopped is True


def test_run_fails_when_configure_fails():
    skill = _Recorder("worker", fail=True)
    assert skill.run(Config()) is False
    assert skill.closed is False


def test_run_stops_when_update_returns_false():
    skill = _Recorder("worker", updates=[True, False])
    assert skill.run(Config()) is True
    assert skill.calls == ["configure", "update", "update"]
    assert skill.closed is True


def test_run_interrupts_on_stop_event():
    event = threading.Event()
    skill = _Recorder("worker", stop_event=event)
    assert skill.run(Config(), event) is True
    assert skill.calls[-1] == "interrupt"
    assert skill.closed is True