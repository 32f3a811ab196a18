"""Artifact Store: raw upload bytes keyed by share id."""

from lanshare.artifact_store.store import (  # noqa: F401
    ArtifactStore,
    FileSystemArtifactStore,
    InMemoryArtifactStore,
)
