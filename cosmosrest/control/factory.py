"""
Control Plane Factory

Creates the control-plane collaborator selected in configuration.
"""

import logging
from typing import Optional

import httpx

from .arm import ArmControlPlane
from .memory import InMemoryControlPlane
from .plane import ControlPlane
from ..core.config_manager import ControlPlaneType, CosmosRestConfig

logger = logging.getLogger(__name__)


def create_control_plane(
    config: CosmosRestConfig,
    http_client: Optional[httpx.AsyncClient] = None
) -> Optional[ControlPlane]:
    """
    Factory function for the configured control plane.

    The "memory" plane starts empty: it knows no accounts until the caller
    seeds it with add_account(). It is meant for tests and embedding code,
    not for the command line.

    Args:
        config: Loaded configuration
        http_client: Optional HTTP client shared with the caller

    Returns:
        ControlPlane instance, or None when the control plane is disabled

    Raises:
        ValueError: If the ARM plane is selected without subscription or token
    """
    plane_config = config.control_plane
    plane_type = ControlPlaneType(plane_config.type)

    if plane_type == ControlPlaneType.NONE:
        return None

    if plane_type == ControlPlaneType.MEMORY:
        logger.warning(
            "Using an empty in-memory control plane; key lookups and listings "
            "find nothing until accounts are added with add_account()"
        )
        return InMemoryControlPlane()

    if not config.account.subscription_id:
        raise ValueError("The 'arm' control plane requires account.subscription_id")
    if not plane_config.token:
        raise ValueError("The 'arm' control plane requires control_plane.token (COSMOSREST_ARM_TOKEN)")

    return ArmControlPlane(
        subscription_id=config.account.subscription_id,
        token=plane_config.token,
        endpoint=plane_config.endpoint,
        api_version=plane_config.api_version,
        poll_interval=plane_config.poll_interval,
        operation_timeout=plane_config.operation_timeout,
        http_client=http_client,
    )
