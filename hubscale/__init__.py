"""HubScale - single-instance scale-up loop for Azure IoT Hub."""

__version__ = "0.1.0"
