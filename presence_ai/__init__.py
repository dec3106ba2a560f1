"""Face-verified, geofenced campus presence authorization."""

__version__ = "1.0.0"
