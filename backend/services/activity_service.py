import logging
import threading
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Deque, Dict, List, Optional

from fastapi import Request

DEFAULT_MAX_ENTRIES = 1000

AI_CHAT_REQUEST = "AI_CHAT_REQUEST"
AI_CHAT_RESPONSE = "AI_CHAT_RESPONSE"
AI_CHAT_FALLBACK = "AI_CHAT_FALLBACK"


@dataclass
class UserIdentity:
    """The already-authenticated user a request is made on behalf of"""
    user_id: str
    email: str
    name: str


@dataclass
class ActivityEntry:
    id: str
    user_id: str
    user_email: str
    user_name: str
    action: str
    details: Dict[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert entry to dictionary for API responses"""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_email": self.user_email,
            "user_name": self.user_name,
            "action": self.action,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
        }


class ActivityLog:
    """Bounded in-memory activity log.

    Appends are serialised with a lock so concurrent requests cannot corrupt
    the buffer. Once ``max_entries`` is reached the oldest entries are dropped.
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._entries: Deque[ActivityEntry] = deque(maxlen=max_entries)
        self._lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    def log_activity(self, user_id: str, user_email: str, user_name: str,
                     action: str, details: Dict[str, Any],
                     request: Optional[Request] = None) -> ActivityEntry:
        """Record one user action"""
        entry = ActivityEntry(
            id=f"log-{uuid.uuid4().hex[:12]}",
            user_id=user_id,
            user_email=user_email,
            user_name=user_name,
            action=action,
            details=dict(details),
            ip_address=self._get_client_ip(request),
            user_agent=request.headers.get("user-agent") if request is not None else None,
        )

        with self._lock:
            self._entries.append(entry)

        self.logger.info("[ACTIVITY] %s - %s: %s", user_email, action, details)
        return entry

    def log_user_activity(self, user: Optional[UserIdentity], action: str,
                          details: Dict[str, Any],
                          request: Optional[Request] = None) -> Optional[ActivityEntry]:
        """Record an action for a known user; anonymous requests are not logged"""
        if user is None:
            return None
        return self.log_activity(user.user_id, user.email, user.name, action, details, request)

    @staticmethod
    def _get_client_ip(request: Optional[Request]) -> Optional[str]:
        if request is None:
            return None

        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
        return request.headers.get("x-real-ip") or request.headers.get("cf-connecting-ip")

    def _snapshot(self) -> List[ActivityEntry]:
        with self._lock:
            return list(self._entries)

    @staticmethod
    def _newest_first(entries: List[ActivityEntry]) -> List[ActivityEntry]:
        # Entries with equal timestamps keep reverse insertion order
        return sorted(reversed(entries), key=lambda e: e.timestamp, reverse=True)

    def get_all_logs(self) -> List[ActivityEntry]:
        return self._newest_first(self._snapshot())

    def get_user_logs(self, user_id: str) -> List[ActivityEntry]:
        return self._newest_first([e for e in self._snapshot() if e.user_id == user_id])

    def get_logs_by_action(self, action: str) -> List[ActivityEntry]:
        return self._newest_first([e for e in self._snapshot() if e.action == action])

    def get_recent_logs(self, hours: float = 24) -> List[ActivityEntry]:
        cutoff = datetime.now(timezone.utc) - timedelta(hours=hours)
        return self._newest_first([e for e in self._snapshot() if e.timestamp > cutoff])

    def clear_logs(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
