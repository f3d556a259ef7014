"""User-program support for a teaching kernel: page bitmaps, NOFF address spaces and system-call dispatch."""

__version__ = "0.1.0"