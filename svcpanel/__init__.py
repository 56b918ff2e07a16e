"""Web panel for starting, stopping and observing allowlisted systemd user services."""

__version__ = "0.1.0"
