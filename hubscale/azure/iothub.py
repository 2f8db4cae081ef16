"""Azure IoT Hub metrics and provisioning provider."""

import copy
import logging

from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.mgmt.iothub import IotHubClient

from hubscale.config.models import TargetResource
from hubscale.controller.types import QuotaMetric, ResourceDescription

logger = logging.getLogger(__name__)


class IotHubProviderError(Exception):
    """Raised when an IoT Hub management call fails."""

    pass


class IotHubProvider:
    """Reads and updates an IoT Hub's SKU through the management API."""

    def __init__(self, client: IotHubClient):
        """
        Initialize IotHubProvider.

        Args:
            client: Azure IoT Hub management client
        """
        self.client = client

    def get_description(self, target: TargetResource) -> ResourceDescription:
        """
        Get the hub's current SKU name and unit count.

        Raises:
            IotHubProviderError: If the hub cannot be read
        """
        try:
            hub = self.client.iot_hub_resource.get(
                resource_group_name=target.resource_group,
                resource_name=target.hub_name,
            )
        except ResourceNotFoundError as e:
            raise IotHubProviderError(
                f"IoT Hub {target.resource_group}/{target.hub_name} not found"
            ) from e
        except AzureError as e:
            raise IotHubProviderError(
                f"Failed to get IoT Hub {target.resource_group}/{target.hub_name}: {e}"
            ) from e

        if hub.sku is None or hub.sku.capacity is None:
            raise IotHubProviderError(f"IoT Hub {target.hub_name} has no SKU information")

        logger.debug(
            f"IoT Hub {target.hub_name}: SKU tier {hub.sku.tier}, "
            f"name {hub.sku.name}, capacity {hub.sku.capacity}"
        )
        return ResourceDescription(
            tier_name=str(hub.sku.name),
            capacity_units=int(hub.sku.capacity),
            raw=hub,
        )

    def get_quota_metrics(self, target: TargetResource) -> list[QuotaMetric]:
        """
        Get the hub's quota metrics.

        Raises:
            IotHubProviderError: If the metrics cannot be read
        """
        try:
            pages = self.client.iot_hub_resource.get_quota_metrics(
                resource_group_name=target.resource_group,
                resource_name=target.hub_name,
            )
            metrics = [
                QuotaMetric(
                    name=info.name,
                    current_value=float(info.current_value),
                    max_value=float(info.max_value) if info.max_value is not None else None,
                )
                for info in pages
                if info.name is not None and info.current_value is not None
            ]
        except AzureError as e:
            raise IotHubProviderError(
                f"Failed to get quota metrics for IoT Hub {target.hub_name}: {e}"
            ) from e

        logger.debug(f"IoT Hub {target.hub_name} reported {len(metrics)} quota metric(s)")
        return metrics

    def update(
        self, target: TargetResource, description: ResourceDescription
    ) -> ResourceDescription:
        """
        Submit a new SKU name and unit count and wait for the update to finish.

        Args:
            target: The hub to update
            description: Desired description; its ``raw`` payload must be the
                IotHubDescription returned by :meth:`get_description`

        Raises:
            IotHubProviderError: If the update fails
        """
        if description.raw is None or getattr(description.raw, "sku", None) is None:
            raise IotHubProviderError(
                "Update requires the hub description returned by get_description"
            )

        # The fetched description stays as it was read.
        hub = copy.deepcopy(description.raw)
        hub.sku.name = description.tier_name
        hub.sku.capacity = description.capacity_units

        try:
            poller = self.client.iot_hub_resource.begin_create_or_update(
                resource_group_name=target.resource_group,
                resource_name=target.hub_name,
                iot_hub_description=hub,
                if_match=getattr(hub, "etag", None),
            )
            updated = poller.result()
        except AzureError as e:
            raise IotHubProviderError(
                f"Failed to update IoT Hub {target.hub_name} to "
                f"{description.tier_name}-{description.capacity_units}: {e}"
            ) from e

        logger.debug(f"IoT Hub {target.hub_name} update completed")
        sku = getattr(updated, "sku", None)
        if sku is None or sku.name is None or sku.capacity is None:
            logger.warning(
                f"IoT Hub {target.hub_name} update returned no SKU, assuming {description}"
            )
            return ResourceDescription(
                tier_name=description.tier_name,
                capacity_units=description.capacity_units,
                raw=updated if updated is not None else hub,
            )
        return ResourceDescription(
            tier_name=str(sku.name),
            capacity_units=int(sku.capacity),
            raw=updated,
        )
