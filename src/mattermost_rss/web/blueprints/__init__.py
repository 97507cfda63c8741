"""Flask blueprints."""

from mattermost_rss.web.blueprints.actuator import ActuatorBlueprint
from mattermost_rss.web.blueprints.commands import CommandBlueprint
from mattermost_rss.web.blueprints.dispatch import DispatchBlueprint

__all__ = [
    "ActuatorBlueprint",
    "CommandBlueprint",
    "DispatchBlueprint",
]
