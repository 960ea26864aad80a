"""
PhoneCam
Copyright (C) 2024 thiccaxe

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU Affero General Public License as published
by the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU Affero General Public License for more details.

You should have received a copy of the GNU Affero General Public License
along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""

import asyncio
import dataclasses
import logging
import random
from typing import Optional, Tuple

PRIMARY = "primary"
SECONDARY = "secondary"

CODE_MIN = 100_000
CODE_MAX = 999_999


class SessionError(Exception):
    message = "Session error."

    def __init__(self, code: Optional[str] = None):
        super().__init__(self.message)
        self.code = code


class SessionNotFound(SessionError):
    message = "Session not found. Check the code and try again."


class SessionOccupied(SessionError):
    message = "Session already has a mobile device connected."


class PrimaryGone(SessionError):
    message = "Laptop disconnected. Ask them to create a new session."


@dataclasses.dataclass
class Session:
    code: str
    primary: Optional[object] = None
    secondary: Optional[object] = None

    def role_of(self, connection) -> Optional[str]:
        if connection is None:
            return None
        if self.primary is connection:
            return PRIMARY
        if self.secondary is connection:
            return SECONDARY
        return None

    def peer_of(self, connection) -> Optional[object]:
        role = self.role_of(connection)
        if role == PRIMARY:
            return self.secondary
        if role == SECONDARY:
            return self.primary
        return None

    def is_empty(self) -> bool:
        return self.primary is None and self.secondary is None


class SessionStore:
    """
    Live sessions keyed by code, plus a connection -> code index.

    Every method is synchronous so each mutation runs to completion on the
    event loop before any other connection is serviced.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, grace_period: float = 5.0,
                 rng: Optional[random.Random] = None):
        self._loop = loop
        self._grace_period = grace_period
        self._rng = rng or random.Random()
        self._sessions: dict[str, Session] = dict()
        self._codes: dict[object, str] = dict()

    def __len__(self):
        return len(self._sessions)

    def __contains__(self, code):
        return code in self._sessions

    def get(self, code: str) -> Optional[Session]:
        return self._sessions.get(code)

    def session_of(self, connection) -> Optional[Session]:
        code = self._codes.get(connection)
        if code is None:
            return None
        return self._sessions.get(code)

    def peer_of(self, connection) -> Optional[object]:
        session = self.session_of(connection)
        if session is None:
            return None
        return session.peer_of(connection)

    def generate_code(self) -> str:
        while True:
            code = "{0:06}".format(self._rng.randint(CODE_MIN, CODE_MAX))
            if code not in self._sessions:
                return code
            logging.debug(f"Session code {code} collided with a live session, retrying")

    def create_session(self, connection) -> Session:
        self._ensure_unassigned(connection)
        session = Session(code=self.generate_code(), primary=connection)
        self._sessions[session.code] = session
        self._codes[connection] = session.code
        logging.info(f"Session {session.code} created")
        return session

    def join_session(self, code: Optional[str], connection) -> Session:
        self._ensure_unassigned(connection)
        session = self._sessions.get(code) if code is not None else None
        if session is None:
            raise SessionNotFound(code)
        if session.secondary is not None:
            raise SessionOccupied(code)
        if session.primary is None:
            raise PrimaryGone(code)

        session.secondary = connection
        self._codes[connection] = code
        logging.info(f"Session {code} joined")
        return session

    def release(self, connection) -> Optional[Tuple[Session, str]]:
        """
        Clear the slot held by ``connection``.

        Returns the session and the vacated role, or None if the connection
        held no slot. An emptied session is reclaimed after the grace period
        unless a slot has been filled again by then.
        """
        code = self._codes.pop(connection, None)
        if code is None:
            return None
        session = self._sessions.get(code)
        role = session.role_of(connection) if session is not None else None
        if role is None:
            logging.warning(f"Connection indexed under session {code} but holds no slot there")
            return None

        setattr(session, role, None)
        logging.info(f"Session {code}: {role} left")

        if session.is_empty():
            logging.debug(f"Session {code} is empty, reclaiming in {self._grace_period}s")
            self._loop.call_later(self._grace_period, self._reclaim, code)
        return session, role

    def _reclaim(self, code: str):
        session = self._sessions.get(code)
        if session is None or not session.is_empty():
            return
        del self._sessions[code]
        logging.info(f"Session {code} reclaimed")

    def _ensure_unassigned(self, connection):
        if connection in self._codes:
            raise ValueError(f"Connection already holds a slot in session {self._codes[connection]}")
