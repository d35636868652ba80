"""Domain layer of the notification client."""
