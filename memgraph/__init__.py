"""Knowledge graph with file or event-sourced storage, snapshots, queries and inference."""

__version__ = "1.3.0"