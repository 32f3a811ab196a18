"""Shared helpers: identifiers, error taxonomy, locking, health routes."""
