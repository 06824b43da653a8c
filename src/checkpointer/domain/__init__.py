"""Domain layer for Checkpointer."""
