"""Building blocks for runtime adapters between a model-mesh controller and model servers."""

__version__ = "0.1.0"