"""Service layer for persistence, integrations, and turn handling."""
