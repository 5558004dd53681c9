"""Core utilities: timing, wire format, logging and errors."""
