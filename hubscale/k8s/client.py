"""Kubernetes client wrapper for HubScale."""

import logging
from typing import Optional

from kubernetes import client, config
from kubernetes.client.rest import ApiException

logger = logging.getLogger(__name__)


class K8sClientError(Exception):
    """Raised when Kubernetes client operations fail."""

    pass


class K8sClient:
    """Simple Kubernetes client wrapper."""

    def __init__(self, in_cluster: bool = True):
        """
        Initialize Kubernetes client.

        Args:
            in_cluster: If True, load in-cluster config. If False, load from kubeconfig.
        """
        self.in_cluster = in_cluster
        self._coordination_v1_api: Optional[client.CoordinationV1Api] = None
        self._initialize()

    def _initialize(self) -> None:
        """Initialize Kubernetes configuration and API clients."""
        try:
            if self.in_cluster:
                logger.info("Loading in-cluster Kubernetes configuration")
                config.load_incluster_config()
            else:
                logger.info("Loading Kubernetes configuration from kubeconfig")
                config.load_kube_config()

            self._coordination_v1_api = client.CoordinationV1Api()
            logger.info("Kubernetes client initialized successfully")

        except Exception as e:
            raise K8sClientError(f"Failed to initialize Kubernetes client: {e}") from e

    @property
    def coordination_v1(self) -> client.CoordinationV1Api:
        """Get CoordinationV1Api client."""
        if self._coordination_v1_api is None:
            raise K8sClientError("CoordinationV1Api not initialized")
        return self._coordination_v1_api

    def test_connection(self, namespace: str = "default") -> bool:
        """
        Test connection to Kubernetes API server.

        Args:
            namespace: Namespace the leases live in

        Returns:
            True if connection successful, False otherwise
        """
        try:
            self.coordination_v1.list_namespaced_lease(namespace=namespace, limit=1)
            logger.info("Kubernetes API connection test successful")
            return True
        except ApiException as e:
            logger.error(f"Kubernetes API connection test failed: {e}")
            return False
        except Exception as e:
            logger.error(f"Unexpected error during connection test: {e}")
            return False
