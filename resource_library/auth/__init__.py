"""Session authentication and route guards."""
