"""Settings, logging and address resolution."""
