"""Read-only web viewer for ML-Metadata stores with provenance graphs."""

__version__ = "0.1.0"
