"""RelayChat: conversational automation over third-party integrations."""
