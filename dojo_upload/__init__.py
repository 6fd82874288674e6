"""DefectDojo CI helpers: scan upload and ngrok tunnel launcher."""

__version__ = "0.1.0"
