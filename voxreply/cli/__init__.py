"""CLI module for voxreply."""
