"""Azure management client acquisition for HubScale."""

import logging
from typing import Optional

from azure.core.credentials import TokenCredential
from azure.identity import DefaultAzureCredential
from azure.mgmt.iothub import IotHubClient

from hubscale.azure.iothub import IotHubProvider

logger = logging.getLogger(__name__)


class IotHubClientError(Exception):
    """Raised when an IoT Hub management client cannot be created."""

    pass


class IotHubClientFactory:
    """Creates an IotHubProvider for each scaling cycle."""

    def __init__(
        self,
        subscription_id: str,
        credential: Optional[TokenCredential] = None,
    ):
        """
        Initialize the factory.

        Args:
            subscription_id: Azure subscription holding the hub
            credential: Credential to use (defaults to DefaultAzureCredential)
        """
        self.subscription_id = subscription_id
        self._credential = credential

    @property
    def credential(self) -> TokenCredential:
        if self._credential is None:
            logger.info("Creating DefaultAzureCredential")
            self._credential = DefaultAzureCredential()
        return self._credential

    def __call__(self) -> IotHubProvider:
        """
        Create a provider bound to a fresh management client.

        Raises:
            IotHubClientError: If the credential or client cannot be created
        """
        try:
            client = IotHubClient(self.credential, self.subscription_id)
        except Exception as e:
            raise IotHubClientError(f"Failed to create IoT Hub client: {e}") from e

        logger.debug(f"Created IoT Hub client for subscription {self.subscription_id}")
        return IotHubProvider(client)
