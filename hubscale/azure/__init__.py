"""Azure IoT Hub integration for HubScale."""

from hubscale.azure.client import IotHubClientError, IotHubClientFactory
from hubscale.azure.iothub import IotHubProvider, IotHubProviderError

__all__ = [
    "IotHubClientError",
    "IotHubClientFactory",
    "IotHubProvider",
    "IotHubProviderError",
]
