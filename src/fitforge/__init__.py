"""FitForge: skin-weight transfer from rigged bodies to try-on garments."""

__version__ = "0.1.0"
