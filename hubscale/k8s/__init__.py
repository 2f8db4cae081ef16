"""Kubernetes integration for HubScale."""

from hubscale.k8s.client import K8sClient, K8sClientError
from hubscale.k8s.lease_store import LeaseInstanceStore

__all__ = ["K8sClient", "K8sClientError", "LeaseInstanceStore"]
