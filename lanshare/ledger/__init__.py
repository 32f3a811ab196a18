"""Metadata Ledger: JSON records kept apart from the raw bytes."""

from lanshare.ledger.repository import (  # noqa: F401
    FileSystemMetadataLedger,
    InMemoryMetadataLedger,
    MetadataLedger,
)
