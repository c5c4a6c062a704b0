"""Action skill that sends the robot to the next point of interest."""

from __future__ import annotations

from tourskills.skill import ConfigurationError, Skill


class GoToPoIAction(Skill):
    """Asks the tour manager to send the robot to its point of interest.

    ``tour_manager`` must provide ``send_to_poi()``.
    """

    log_component = "behavior_tour_robot.skills.gotopoi_action"

    def __init__(self, name="GoToPoI_Act", tour_manager=None):
        super().__init__(name)
        self.period = 100.0
        self.tour_manager = tour_manager
        self.tour_manager_port_name = f"/{name}/TourManager/thrift:c"

    def start(self) -> bool:
        if self.tour_manager is None:
            raise ConfigurationError("Cannot attach the port as a client")
        return bool(self.tour_manager.send_to_poi())

    def stop(self) -> None:
        self._stopped.set()

    def interrupt(self) -> None:
        self._stopped.set()
        super().interrupt()

    def close(self) -> None:
        self._stopped.set()
        super().close()