"""Application layer of the notification client."""
