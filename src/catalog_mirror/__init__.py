"""Client-side mirror of a remote content/theme catalog.

Keeps a local view consistent with a backend that runs slow
synchronization jobs and accepts mutations that may fail.
"""

__version__ = "0.3.0"
