"""host — Device host bridge and the counter action's event handlers."""
from .bridge import DeviceHost, HostBridge
from .counter import CounterAction

__all__ = ["CounterAction", "DeviceHost", "HostBridge"]
