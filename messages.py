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

import json
import logging
from typing import Optional

from voluptuous import Schema, Required, ALLOW_EXTRA
import voluptuous.error

# client -> broker
CREATE_SESSION = "create-session"
JOIN_SESSION = "join-session"
OFFER = "offer"
ANSWER = "answer"
ICE_CANDIDATE = "ice-candidate"
PING = "ping"

# broker -> client
SESSION_CREATED = "session-created"
SESSION_JOINED = "session-joined"
PEER_JOINED = "peer-joined"
PEER_DISCONNECTED = "peer-disconnected"
PONG = "pong"
ERROR = "error"

SIGNAL_TYPES = (OFFER, ANSWER, ICE_CANDIDATE)

ENVELOPE_SCHEMA = Schema({
    Required("type"): str,
}, extra=ALLOW_EXTRA)


def code_validator(value) -> str:
    # bool is an int subclass but never a valid code
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise voluptuous.error.Invalid("Session code must be a string or an integer.")
    return str(value)


JOIN_CODE_SCHEMA = Schema(code_validator)


def parse_message(message: str) -> Optional[dict]:
    """Decode a text frame into a packet dict, or None if it is not a valid envelope."""
    try:
        # payloads are opaque, so integers are kept as text and never hit the digit limit
        packet = json.loads(message, parse_int=str)
    except (ValueError, RecursionError):
        logging.debug("Dropping non-JSON frame")
        return None

    try:
        return ENVELOPE_SCHEMA(packet)
    except voluptuous.error.Invalid:
        logging.debug("Dropping frame without a message type")
        return None


def join_code(packet: dict) -> Optional[str]:
    try:
        return JOIN_CODE_SCHEMA(packet.get("code"))
    except voluptuous.error.Invalid:
        return None


def session_created(code: str) -> dict:
    return {"type": SESSION_CREATED, "code": code}


def session_joined(code: str) -> dict:
    return {"type": SESSION_JOINED, "code": code}


def peer_joined() -> dict:
    return {"type": PEER_JOINED}


def peer_disconnected(role: str) -> dict:
    return {"type": PEER_DISCONNECTED, "role": role}


def pong() -> dict:
    return {"type": PONG}


def error(message: str) -> dict:
    return {"type": ERROR, "message": message}
