"""Failed-call detection and service-ticket orchestration for chat support."""

__version__ = "0.1.0"
