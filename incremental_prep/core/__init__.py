"""Cross-cutting infrastructure: errors, constants, configuration and cancellation."""
