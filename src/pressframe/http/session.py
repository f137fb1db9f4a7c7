"""
Session storage.

Handlers never touch a global session. SessionMiddleware loads a Session
for the request's cookie, attaches it as `request.session`, and saves it
once the response comes back.

    request.session.put("admin_authenticated", True)
    request.session.get("admin_last_activity")
    request.session.regenerate()
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import secrets
import threading
import time


def new_session_id() -> str:
    return secrets.token_hex(20)


class SessionStore(ABC):
    """The operations a handler may perform on its session."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        pass

    @abstractmethod
    def put(self, key: str, value: Any) -> None:
        pass

    @abstractmethod
    def forget(self, *keys: str) -> None:
        pass

    @abstractmethod
    def has(self, key: str) -> bool:
        pass

    @abstractmethod
    def all(self) -> Dict[str, Any]:
        pass

    @abstractmethod
    def flush(self) -> None:
        pass

    @abstractmethod
    def regenerate(self) -> str:
        """Issue a new session id, keeping the data. Returns the new id."""


@dataclass
class Session(SessionStore):
    """Dict-backed session. `previous_id` is set after regenerate()."""

    id: str = field(default_factory=new_session_id)
    data: Dict[str, Any] = field(default_factory=dict)
    previous_id: Optional[str] = None
    modified: bool = False

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def put(self, key: str, value: Any) -> None:
        self.data[key] = value
        self.modified = True

    def forget(self, *keys: str) -> None:
        for key in keys:
            if key in self.data:
                del self.data[key]
                self.modified = True

    def has(self, key: str) -> bool:
        return self.data.get(key) is not None

    def all(self) -> Dict[str, Any]:
        return dict(self.data)

    def flush(self) -> None:
        self.data.clear()
        self.modified = True

    def regenerate(self) -> str:
        self.previous_id = self.previous_id or self.id
        self.id = new_session_id()
        self.modified = True
        return self.id


class MemorySessionBackend:
    """
    Process-local session storage keyed by session id.

    Sessions idle longer than `lifetime` seconds are dropped on load.
    """

    def __init__(self, lifetime: int = 7200):
        self.lifetime = lifetime
        self._sessions: Dict[str, tuple[float, Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def load(self, session_id: Optional[str]) -> Session:
        with self._lock:
            if session_id and session_id in self._sessions:
                touched, data = self._sessions[session_id]
                if time.time() - touched <= self.lifetime:
                    return Session(id=session_id, data=dict(data))
                del self._sessions[session_id]
        return Session()

    def save(self, session: Session) -> None:
        with self._lock:
            if session.previous_id:
                self._sessions.pop(session.previous_id, None)
            self._sessions[session.id] = (time.time(), dict(session.data))
        session.previous_id = None
        session.modified = False

    def destroy(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._sessions)
