"""Per-stage sample statistics."""
