"""habitsync - Offline delta synchronization for a habit-tracking backend."""

__version__ = "0.1.0"
