"""IDS dataspace connector."""
