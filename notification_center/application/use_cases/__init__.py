"""Use cases orchestrating notification delivery."""
