"""HTTP interface for the VideoLibrary catalog."""

__version__ = "0.1.0"
