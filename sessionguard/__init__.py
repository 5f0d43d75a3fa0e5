"""Trading-session operation guards and ephemeral wallet fund recovery."""

__version__ = "0.1.0"
