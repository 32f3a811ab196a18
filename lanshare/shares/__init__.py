"""Single-file shares: upload path and Retrieval Gateway."""
