"""HTTP boundary for the listing service."""
