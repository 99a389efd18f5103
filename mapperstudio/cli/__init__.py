"""Terminal review surface."""
