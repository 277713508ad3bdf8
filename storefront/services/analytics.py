"""
Analytics emitter

Events cross the boundary as (category, action, properties_json, value).
Tracking is fire-and-forget: a failing emitter is logged and never breaks
the checkout flow.
"""

import json
from abc import ABC, abstractmethod
import logging
import re
import time
from collections import deque
from typing import Any, Deque, Dict, List, Optional

from storefront.core.config import settings
from storefront.schemas.analytics import AnalyticsEvent, EventProperties

logger = logging.getLogger(__name__)

SENSITIVE_KEY_PATTERN = re.compile(
    r"password|token|secret|key|auth|session|credit|card|cvv|ssn|social|phone|email|address",
    re.I,
)

MAX_STRING_LENGTH = 500
MAX_LIST_LENGTH = 10
MAX_NESTED_LENGTH = 200


class AnalyticsEmitter(ABC):
    """Analytics sink; subclasses deliver events in track()"""

    @abstractmethod
    def track(
        self,
        category: str,
        action: str,
        properties_json: str,
        value: Optional[float] = None
    ) -> None:
        raise NotImplementedError

    def emit(
        self,
        category: str,
        action: str,
        properties: EventProperties,
        value: Optional[float] = None
    ) -> None:
        """Serialize typed properties and track without raising"""
        try:
            self.track(category, action, properties.model_dump_json(), value)
        except Exception as e:
            logger.error(f"Failed to track analytics event {category}/{action}: {e}")


def sanitize_properties(properties: Dict[str, Any]) -> Dict[str, Any]:
    """Drop sensitive keys, normalize key names and bound value sizes"""
    sanitized: Dict[str, Any] = {}

    for key, value in properties.items():
        if SENSITIVE_KEY_PATTERN.search(key):
            continue

        clean_key = re.sub(r"[^a-z0-9_]", "_", str(key).lower())

        if isinstance(value, str):
            sanitized[clean_key] = value[:MAX_STRING_LENGTH]
        elif isinstance(value, (bool, int, float)):
            sanitized[clean_key] = value
        elif isinstance(value, list):
            sanitized[clean_key] = value[:MAX_LIST_LENGTH]
        elif isinstance(value, dict):
            sanitized[clean_key] = json.dumps(value, default=str)[:MAX_NESTED_LENGTH]

    return sanitized


class InMemoryAnalyticsEmitter(AnalyticsEmitter):
    """Keeps a bounded queue of recent sanitized events"""

    def __init__(self, max_events: Optional[int] = None):
        self.queue: Deque[AnalyticsEvent] = deque(
            maxlen=max_events or settings.ANALYTICS_QUEUE_SIZE
        )

    def track(
        self,
        category: str,
        action: str,
        properties_json: str,
        value: Optional[float] = None
    ) -> None:
        properties = json.loads(properties_json) if properties_json else {}
        if not isinstance(properties, dict):
            raise ValueError("Properties must be a JSON object")

        event = AnalyticsEvent(
            category=category.strip().lower() or "unknown",
            action=action.strip().lower() or "unknown",
            properties=sanitize_properties(properties),
            value=value,
            timestamp=time.time(),
        )
        self.queue.append(event)
        logger.debug(f"Analytics event tracked: {event.category}/{event.action}")

    def events(self, action: Optional[str] = None) -> List[AnalyticsEvent]:
        return [event for event in self.queue if action is None or event.action == action]

    def clear(self) -> None:
        self.queue.clear()
