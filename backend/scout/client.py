"""
Client-side session handling for the scout API.

``IdleSession`` keeps the browser-style session bookkeeping (token, user,
login time, last activity) in any mutable mapping, with times stored as
epoch milliseconds. It is advisory only: the server's token expiry is
authoritative.
"""
import enum
import json
import math
import time
from dataclasses import dataclass
from typing import Callable, MutableMapping, Optional

import requests

TOKEN_KEY = 'authToken'
USER_KEY = 'user'
LOGIN_TIME_KEY = 'loginTime'
LAST_ACTIVITY_KEY = 'lastActivity'
SESSION_KEYS = (TOKEN_KEY, USER_KEY, LAST_ACTIVITY_KEY, LOGIN_TIME_KEY)

MINUTE_MS = 60 * 1000
IDLE_TIMEOUT_MS = 30 * MINUTE_MS
WARNING_WINDOW_MS = 5 * MINUTE_MS
ABSOLUTE_TIMEOUT_MS = 2 * 60 * MINUTE_MS


def now_ms() -> int:
    return int(time.time() * 1000)


class SessionStatus(enum.Enum):
    ACTIVE = 'active'
    WARNING = 'warning'
    EXPIRED = 'expired'


@dataclass(frozen=True)
class SessionCheck:
    status: SessionStatus
    minutes_left: Optional[int] = None


class SessionExpired(Exception):
    """Raised by ScoutClient once the server rejects the stored token."""

    def __init__(self, status_code=None):
        super().__init__(f'Session expired (HTTP {status_code})' if status_code else 'Session expired')
        self.status_code = status_code


class IdleSession:
    def __init__(
        self,
        storage: MutableMapping[str, str],
        clock: Callable[[], int] = now_ms,
        idle_timeout: int = IDLE_TIMEOUT_MS,
        warning_window: int = WARNING_WINDOW_MS,
        absolute_timeout: int = ABSOLUTE_TIMEOUT_MS,
        on_expire: Optional[Callable[[], None]] = None,
    ):
        self.storage = storage
        self.clock = clock
        self.idle_timeout = idle_timeout
        self.warning_window = warning_window
        self.absolute_timeout = absolute_timeout
        self.on_expire = on_expire

    def _read_ms(self, key, default):
        raw = self.storage.get(key)
        if raw in (None, ''):
            return default
        try:
            return int(raw)
        except (TypeError, ValueError):
            return default

    @property
    def token(self):
        return self.storage.get(TOKEN_KEY) or None

    @property
    def user(self):
        raw = self.storage.get(USER_KEY)
        return json.loads(raw) if raw else None

    def start(self, token, user=None):
        now = self.clock()
        self.storage[TOKEN_KEY] = token
        if user is not None:
            self.storage[USER_KEY] = json.dumps(user, ensure_ascii=False)
        self.storage[LOGIN_TIME_KEY] = str(now)
        self.storage[LAST_ACTIVITY_KEY] = str(now)

    def touch(self):
        """Record activity without clearing anything else."""
        now = self.clock()
        if LOGIN_TIME_KEY not in self.storage:
            self.storage[LOGIN_TIME_KEY] = str(now)
        self.storage[LAST_ACTIVITY_KEY] = str(now)

    def extend(self):
        """User chose to stay signed in; resets the idle timer only."""
        self.touch()

    def time_remaining(self) -> int:
        last_activity = self._read_ms(LAST_ACTIVITY_KEY, 0)
        return max(0, self.idle_timeout - (self.clock() - last_activity))

    def absolute_remaining(self) -> int:
        login_time = self._read_ms(LOGIN_TIME_KEY, self.clock())
        return max(0, self.absolute_timeout - (self.clock() - login_time))

    def check(self) -> SessionCheck:
        """Evaluate the session once; expires it when a limit has passed.

        The absolute limit wins over activity: extending never pushes a
        session past it.
        """
        if not self.token:
            return SessionCheck(SessionStatus.EXPIRED)

        now = self.clock()
        login_time = self._read_ms(LOGIN_TIME_KEY, now)
        if now - login_time >= self.absolute_timeout:
            self.expire()
            return SessionCheck(SessionStatus.EXPIRED)

        elapsed = now - self._read_ms(LAST_ACTIVITY_KEY, 0)
        remaining = self.idle_timeout - elapsed
        if elapsed >= self.idle_timeout:
            self.expire()
            return SessionCheck(SessionStatus.EXPIRED)
        if 0 < remaining <= self.warning_window:
            return SessionCheck(SessionStatus.WARNING, math.ceil(remaining / MINUTE_MS))
        return SessionCheck(SessionStatus.ACTIVE)

    def expire(self):
        for key in SESSION_KEYS:
            self.storage.pop(key, None)
        if self.on_expire is not None:
            self.on_expire()


class ScoutClient(requests.Session):
    """requests.Session bound to the scout API and an IdleSession."""

    def __init__(self, base_url, session_state: IdleSession):
        super().__init__()
        self.base_url = base_url.rstrip('/')
        self.session_state = session_state

    def _url(self, path):
        if path.startswith(('http://', 'https://')):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(self, method, url, *args, **kwargs):
        headers = dict(kwargs.pop('headers', None) or {})
        token = self.session_state.token
        if token:
            headers['Authorization'] = f'Bearer {token}'
            # Every API call counts as activity
            self.session_state.touch()

        response = super().request(method, self._url(url), *args, headers=headers, **kwargs)
        if token and response.status_code in (401, 403):
            self.session_state.expire()
            raise SessionExpired(response.status_code)
        return response

    def login(self, username, password):
        response = super().request(
            'POST', self._url('/api/auth/login'), json={'username': username, 'password': password}
        )
        response.raise_for_status()
        data = response.json()
        self.session_state.start(data['token'], data.get('user'))
        return data

    def logout(self):
        self.session_state.expire()
