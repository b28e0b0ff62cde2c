"""Control core and DQN training package for the reaching arm."""

from .agent import DQNAgent, PolicyAgent
from .checkpoint import CheckpointManager
from .client import ArmAPIClient
from .config import ArmConfig, load_config
from .plugin import ArmPlugin

__all__ = [
    "DQNAgent",
    "PolicyAgent",
    "CheckpointManager",
    "ArmAPIClient",
    "ArmConfig",
    "load_config",
    "ArmPlugin",
]
