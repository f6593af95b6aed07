"""voxreply - turn reply composition for voice assistants."""

__version__ = "0.1.0"
