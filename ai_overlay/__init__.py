"""On-screen status badge for an AI assistant, controlled over the session bus."""

__version__ = "0.1.0"
