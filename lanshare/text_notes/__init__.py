"""Text notes: editable notes shared by id, no expiry."""
