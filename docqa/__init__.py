"""docqa: question answering over a single loaded document."""

__version__ = "0.1.0"
