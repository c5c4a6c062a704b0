"""Shared machinery for behaviour-tree skills: configuration lookup and the run loop."""

from __future__ import annotations

import enum
import logging
import shlex
import sys
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


class SkillStatus(enum.Enum):
    """State a skill reports to the behaviour tree."""

    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    FAILURE = "failure"


class ConfigurationError(RuntimeError):
    """Raised when a skill cannot be configured or its settings are malformed."""


def _convert(token: str) -> Any:
    if any(ch.isdigit() for ch in token):
        for cast in (int, float):
            try:
                return cast(token)
            except ValueError:
                pass
    return token


def _value_of(tokens: list[str]) -> Any:
    if not tokens:
        return True
    if len(tokens) == 1:
        return _convert(tokens[0])
    return [_convert(token) for token in tokens]


@dataclass
class Config:
    """Key/value settings with optional named groups, as read from a file or the command line."""

    values: dict[str, Any] = field(default_factory=dict)
    groups: dict[str, "Config"] = field(default_factory=dict)

    @classmethod
    def from_argv(cls, argv=None) -> "Config":
        """Build settings from ``--key value`` arguments; ``--from FILE`` loads a file first."""
        args = list(sys.argv[1:] if argv is None else argv)
        entries: list[tuple[str, list[str]]] = []
        for token in args:
            if token.startswith("--") and len(token) > 2:
                entries.append((token[2:], []))
            elif not entries:
                raise ConfigurationError(f"unexpected argument {token!r}")
            else:
                entries[-1][1].append(token)
        values = {key: _value_of(tokens) for key, tokens in entries}

        if "from" not in values:
            return cls(values=values)

        path = Path(str(values.pop("from")))
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(f"cannot read configuration file {path}: {exc}") from exc
        base = parse_config_text(text)
        return cls(values={**base.values, **values}, groups=base.groups)

    def check(self, key: str) -> bool:
        """Return whether a value or a group of that name is present."""
        return key in self.values or key in self.groups

    def find(self, key: str, default: Any = None) -> Any:
        """Return the value stored under ``key``, or ``default``."""
        return self.values.get(key, default)

    def group(self, name: str) -> "Config":
        """Return the named group, or an empty one when it is missing."""
        return self.groups.get(name, Config())


def parse_config_text(text: str) -> Config:
    """Parse ini-like text: ``[GROUP]`` headers, ``key value...`` lines, ``//`` and ``#`` comments."""
    root = Config()
    current = root
    for lineno, raw in enumerate(text.splitlines(), 1):
        line = raw.split("//", 1)[0].strip()
        if not line:
            continue
        if line.startswith("["):
            if not line.endswith("]"):
                raise ConfigurationError(f"line {lineno}: unterminated group header")
            name = line[1:-1].strip()
            if not name:
                raise ConfigurationError(f"line {lineno}: empty group name")
            current = root.groups.setdefault(name, Config())
            continue
        try:
            tokens = shlex.split(line, comments=True)
        except ValueError as exc:
            raise ConfigurationError(f"line {lineno}: {exc}") from exc
        if tokens:
            current.values[tokens[0]] = _value_of(tokens[1:])
    return root


class Skill(ABC):
    """A periodic module that also answers behaviour-tree start/stop/status requests."""

    log_component = "behavior_tour_robot.skills"

    def __init__(self, name: str):
        self.name = name
        self.period = 1.0
        self.status = SkillStatus.IDLE
        self.rpc_port_name = f"/{name}/BT_rpc/server"
        self.config: Config | None = None
        self.closed = False
        self._stopped = threading.Event()
        self.log = logging.getLogger(self.log_component)

    @property
    def stopped(self) -> bool:
        """Whether a stop has been requested."""
        return self._stopped.is_set()

    def configure(self, config: Config) -> None:
        """Take the settings; subclasses raise ConfigurationError on failure."""
        self.config = config

    def update(self) -> bool:
        """One periodic step; returning False ends the run loop."""
        return True

    def interrupt(self) -> None:
        """Called when the run loop is asked to finish."""
        self.log.info("Interrupting your module, for port cleanup")

    def close(self) -> None:
        """Release what the skill holds."""
        self.closed = True

    def get_status(self) -> SkillStatus:
        return self.status

    @abstractmethod
    def start(self) -> bool:
        """Evaluate or perform the skill and report success."""

    def stop(self) -> None:
        self._stopped.set()

    def run(self, config: Config, stop_event: threading.Event | None = None) -> bool:
        """Configure, then call update every period until it fails or stop_event is set."""
        stop_event = stop_event if stop_event is not None else threading.Event()
        try:
            self.configure(config)
        except ConfigurationError as exc:
            self.log.error("Error module did not start: %s", exc)
            return False
        try:
            while not stop_event.is_set():
                if not self.update():
                    break
                if stop_event.wait(self.period):
                    break
        finally:
            if stop_event.is_set():
                self.interrupt()
            self.close()
        return True