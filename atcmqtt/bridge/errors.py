"""Exceptions raised by the bridge service."""


class BridgeError(Exception):
    """Base class for failures that stop the bridge."""


class AdapterUnavailableError(BridgeError):
    """The Bluetooth adapter could not be acquired."""
