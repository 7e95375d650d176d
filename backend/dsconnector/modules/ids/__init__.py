"""IDS message exchange with peer connectors."""
