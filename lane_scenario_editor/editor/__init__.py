"""Scenario editing modules (entities, picking, interaction, documents)."""

from .codec import FORMAT_VERSION, MalformedDocument, ScenarioCodec
from .collaborators import DynamicObstacle, DynamicObstacleCollaborator, DynamicObstacleEditor
from .obstacles import StaticObstacle
from .registry import Anchor, EntityRegistry, ObstacleEntity
from .scene import EditorStats, SaveResult, ScenarioEditor
from .state_machine import InteractionStateMachine, ToolMode

__all__ = [
    "FORMAT_VERSION",
    "Anchor",
    "DynamicObstacle",
    "DynamicObstacleCollaborator",
    "DynamicObstacleEditor",
    "EditorStats",
    "EntityRegistry",
    "InteractionStateMachine",
    "MalformedDocument",
    "ObstacleEntity",
    "SaveResult",
    "ScenarioCodec",
    "ScenarioEditor",
    "StaticObstacle",
    "ToolMode",
]
