"""Pre-flight checks run before any cluster mutation."""

import logging

from monstack.cluster import ClusterClient

logger = logging.getLogger(__name__)


def check_prerequisites(client: ClusterClient) -> str:
    """Verify the client is configured and the cluster answers.

    Raises ClientUnavailableError or ClusterUnreachableError, both exit status 1.
    Returns the cluster identity line.
    """
    identity = client.cluster_info()
    logger.info(f"Connected to cluster: {identity}")
    return identity
