"""Instance store backed by Kubernetes coordination.k8s.io Leases."""

import logging
import math
import os
import socket
from datetime import datetime, timedelta
from typing import Optional

from kubernetes import client
from kubernetes.client.rest import ApiException

from hubscale.controller.instance_store import (
    InstanceRecord,
    InstanceStatus,
    InstanceStore,
    InstanceStoreError,
)
from hubscale.k8s.client import K8sClient
from hubscale.utils.time_utils import get_current_datetime

logger = logging.getLogger(__name__)

ANNOTATION_PREFIX = "hubscale.io"
STATUS_ANNOTATION = f"{ANNOTATION_PREFIX}/status"
TURN_ANNOTATION = f"{ANNOTATION_PREFIX}/turn"
STARTED_ANNOTATION = f"{ANNOTATION_PREFIX}/started-at"
WAKE_ANNOTATION = f"{ANNOTATION_PREFIX}/next-wake-time"


def default_holder_identity() -> str:
    return f"{socket.gethostname()}-{os.getpid()}"


class LeaseInstanceStore(InstanceStore):
    """
    Stores the loop instance as a Lease named after the instance id.

    An instance is active while ``renewTime + leaseDurationSeconds`` lies in
    the future. A turn holds the lease for ``interval + grace``; a waiting
    continuation holds it until its wake time plus grace. If the holder dies
    the lease lapses and the next tick starts a fresh instance. Conflicting
    writers are rejected through ``resourceVersion`` checks.
    """

    def __init__(
        self,
        k8s_client: K8sClient,
        namespace: str,
        interval_seconds: int,
        grace_seconds: int = 300,
        holder: Optional[str] = None,
    ):
        """
        Initialize the lease store.

        Args:
            k8s_client: Kubernetes client
            namespace: Namespace holding the Lease objects
            interval_seconds: Loop interval, bounds how long a turn may hold the lease
            grace_seconds: Extra time before an unrenewed lease lapses
            holder: Holder identity written to the lease (defaults to host-pid)
        """
        self.k8s_client = k8s_client
        self.namespace = namespace
        self.interval_seconds = interval_seconds
        self.grace_seconds = grace_seconds
        self.holder = holder or default_holder_identity()

    @property
    def api(self) -> client.CoordinationV1Api:
        return self.k8s_client.coordination_v1

    def get_status(self, instance_id: str, now: datetime) -> Optional[InstanceRecord]:
        lease = self._read(instance_id)
        if lease is None or self._is_expired(lease, now):
            return None
        return self._to_record(instance_id, lease)

    def try_start(self, instance_id: str, now: datetime) -> Optional[InstanceRecord]:
        body = self._build_lease(
            instance_id,
            status=InstanceStatus.RUNNING,
            turn=1,
            started_at=now,
            renew_time=now,
            duration_seconds=self.interval_seconds + self.grace_seconds,
        )
        body.spec.acquire_time = now

        try:
            created = self.api.create_namespaced_lease(namespace=self.namespace, body=body)
            logger.debug(f"Created lease {self.namespace}/{instance_id}")
            return self._to_record(instance_id, created)
        except ApiException as e:
            if e.status != 409:
                raise InstanceStoreError(
                    f"Failed to create lease {self.namespace}/{instance_id}: {e}"
                ) from e
        except Exception as e:
            raise InstanceStoreError(
                f"Unexpected error creating lease {self.namespace}/{instance_id}: {e}"
            ) from e

        # The lease exists; take it over only if it lapsed.
        existing = self._read(instance_id)
        if existing is None or not self._is_expired(existing, now):
            return None

        body.metadata.resource_version = existing.metadata.resource_version
        try:
            replaced = self.api.replace_namespaced_lease(
                name=instance_id, namespace=self.namespace, body=body
            )
        except ApiException as e:
            if e.status == 409:
                return None
            raise InstanceStoreError(
                f"Failed to take over lease {self.namespace}/{instance_id}: {e}"
            ) from e
        except Exception as e:
            raise InstanceStoreError(
                f"Unexpected error taking over lease {self.namespace}/{instance_id}: {e}"
            ) from e

        logger.info(
            f"Took over lapsed lease {self.namespace}/{instance_id} "
            f"from {existing.spec.holder_identity}"
        )
        return self._to_record(instance_id, replaced)

    def continue_as_new(
        self, record: InstanceRecord, next_wake_time: datetime
    ) -> InstanceRecord:
        now = get_current_datetime("UTC")
        wait = max(0.0, (next_wake_time - now).total_seconds())
        return self._update(
            record.instance_id,
            status=InstanceStatus.WAITING,
            turn=record.turn + 1,
            started_at=record.started_at,
            renew_time=now,
            duration_seconds=math.ceil(wait) + self.grace_seconds,
            next_wake_time=next_wake_time,
        )

    def resume(self, record: InstanceRecord, now: datetime) -> InstanceRecord:
        return self._update(
            record.instance_id,
            status=InstanceStatus.RUNNING,
            turn=record.turn,
            started_at=now,
            renew_time=now,
            duration_seconds=self.interval_seconds + self.grace_seconds,
        )

    def release(self, instance_id: str) -> None:
        lease = self._read(instance_id)
        if lease is None:
            return
        if lease.spec.holder_identity != self.holder:
            logger.debug(f"Lease {self.namespace}/{instance_id} not held by us, keeping it")
            return
        try:
            self.api.delete_namespaced_lease(name=instance_id, namespace=self.namespace)
        except ApiException as e:
            if e.status == 404:
                return
            raise InstanceStoreError(
                f"Failed to delete lease {self.namespace}/{instance_id}: {e}"
            ) from e
        except Exception as e:
            raise InstanceStoreError(
                f"Unexpected error deleting lease {self.namespace}/{instance_id}: {e}"
            ) from e

    def _update(
        self,
        instance_id: str,
        status: InstanceStatus,
        turn: int,
        started_at: datetime,
        renew_time: datetime,
        duration_seconds: int,
        next_wake_time: Optional[datetime] = None,
    ) -> InstanceRecord:
        existing = self._read(instance_id)
        if existing is None:
            raise InstanceStoreError(f"Lease {self.namespace}/{instance_id} no longer exists")
        if existing.spec.holder_identity != self.holder:
            raise InstanceStoreError(
                f"Lease {self.namespace}/{instance_id} is held by "
                f"{existing.spec.holder_identity}, not {self.holder}"
            )

        body = self._build_lease(
            instance_id,
            status=status,
            turn=turn,
            started_at=started_at,
            renew_time=renew_time,
            duration_seconds=duration_seconds,
            next_wake_time=next_wake_time,
        )
        body.spec.acquire_time = existing.spec.acquire_time
        body.metadata.resource_version = existing.metadata.resource_version

        try:
            replaced = self.api.replace_namespaced_lease(
                name=instance_id, namespace=self.namespace, body=body
            )
        except ApiException as e:
            raise InstanceStoreError(
                f"Failed to update lease {self.namespace}/{instance_id}: {e}"
            ) from e
        except Exception as e:
            raise InstanceStoreError(
                f"Unexpected error updating lease {self.namespace}/{instance_id}: {e}"
            ) from e
        return self._to_record(instance_id, replaced)

    def _read(self, instance_id: str) -> Optional[client.V1Lease]:
        try:
            return self.api.read_namespaced_lease(name=instance_id, namespace=self.namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise InstanceStoreError(
                f"Failed to read lease {self.namespace}/{instance_id}: {e}"
            ) from e
        except Exception as e:
            raise InstanceStoreError(
                f"Unexpected error reading lease {self.namespace}/{instance_id}: {e}"
            ) from e

    def _build_lease(
        self,
        instance_id: str,
        status: InstanceStatus,
        turn: int,
        started_at: datetime,
        renew_time: datetime,
        duration_seconds: int,
        next_wake_time: Optional[datetime] = None,
    ) -> client.V1Lease:
        annotations = {
            STATUS_ANNOTATION: status.value,
            TURN_ANNOTATION: str(turn),
            STARTED_ANNOTATION: started_at.isoformat(),
        }
        if next_wake_time is not None:
            annotations[WAKE_ANNOTATION] = next_wake_time.isoformat()

        return client.V1Lease(
            metadata=client.V1ObjectMeta(
                name=instance_id,
                namespace=self.namespace,
                annotations=annotations,
                labels={"app.kubernetes.io/managed-by": "hubscale"},
            ),
            spec=client.V1LeaseSpec(
                holder_identity=self.holder,
                lease_duration_seconds=int(duration_seconds),
                renew_time=renew_time,
            ),
        )

    @staticmethod
    def _is_expired(lease: client.V1Lease, now: datetime) -> bool:
        spec = lease.spec
        if spec is None or spec.renew_time is None or spec.lease_duration_seconds is None:
            return True
        return spec.renew_time + timedelta(seconds=spec.lease_duration_seconds) <= now

    @staticmethod
    def _to_record(instance_id: str, lease: client.V1Lease) -> InstanceRecord:
        annotations = lease.metadata.annotations or {}
        wake = annotations.get(WAKE_ANNOTATION)
        started = annotations.get(STARTED_ANNOTATION)
        return InstanceRecord(
            instance_id=instance_id,
            status=InstanceStatus(annotations.get(STATUS_ANNOTATION, InstanceStatus.RUNNING.value)),
            started_at=datetime.fromisoformat(started) if started else lease.spec.renew_time,
            turn=int(annotations.get(TURN_ANNOTATION, "1")),
            next_wake_time=datetime.fromisoformat(wake) if wake else None,
            holder=lease.spec.holder_identity,
        )
