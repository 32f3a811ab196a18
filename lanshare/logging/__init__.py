"""Structured share event logging."""
