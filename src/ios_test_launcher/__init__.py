"""Launch, attach to, and stop iOS apps under test."""

__version__ = "0.20.0"

# Oldest embedded server this client can drive
MIN_SERVER_VERSION = "0.19.0"
