"""
Control-plane collaborators: key retrieval, resource listings and deletes.
"""

from .plane import (
    ACCOUNT_TYPE,
    CONTAINER_TYPE,
    DATABASE_TYPE,
    ControlPlane,
    ResourceEntry,
)
from .arm import ArmControlPlane
from .memory import InMemoryControlPlane
from .factory import create_control_plane

__all__ = [
    "ACCOUNT_TYPE",
    "CONTAINER_TYPE",
    "DATABASE_TYPE",
    "ControlPlane",
    "ResourceEntry",
    "ArmControlPlane",
    "InMemoryControlPlane",
    "create_control_plane",
]
