"""HTTP API for the image engine."""
