"""Expiry Reaper: periodic sweep of expired shares."""
