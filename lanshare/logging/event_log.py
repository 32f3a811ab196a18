"""Lightweight share event helper reused across services."""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

event_logger = logging.getLogger("lanshare.events")


class EventLogEntry(BaseModel):
    event_id: str = Field(default_factory=lambda: str(uuid4()))
    event_type: str
    asset_type: str
    asset_id: str
    parent_id: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Dict[str, Any] = Field(default_factory=dict)


EventLogger = Callable[[EventLogEntry], None]


def default_event_logger(entry: EventLogEntry) -> None:
    """Emit the entry as one JSON line on the ``lanshare.events`` logger."""
    event_logger.info(json.dumps(entry.model_dump(mode="json"), sort_keys=True))
