"""BLE tremor sensor client."""

__version__ = "0.1.0"
