"""Studio booking and availability engine for the Punch-In marketplace."""

__version__ = "0.1.0"
