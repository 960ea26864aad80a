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
from typing import Union

import websockets
from websockets.protocol import State as WebsocketState

import messages
from server_data import ServerData
from session_store import PRIMARY, SessionError


class SessionBroker:
    """
    Reacts to connection events from the signaling server.

    Store mutations happen synchronously before the first await of each
    handler, so two handlers never interleave inside a create, join or release.
    """

    def __init__(self, data: ServerData):
        self._data = data
        self._handlers = {
            messages.CREATE_SESSION: self._on_create_session,
            messages.JOIN_SESSION: self._on_join_session,
            messages.OFFER: self._on_signal,
            messages.ANSWER: self._on_signal,
            messages.ICE_CANDIDATE: self._on_signal,
            messages.PING: self._on_ping,
        }

    async def connection_opened(self, websocket):
        self._data.connected_clients.add(websocket)
        logging.debug(f"Client {websocket.remote_address} connected ({len(self._data.connected_clients)} total)")

    async def connection_closed(self, websocket):
        self._data.connected_clients.discard(websocket)
        await self._leave_session(websocket)
        logging.debug(f"Client {websocket.remote_address} disconnected ({len(self._data.connected_clients)} total)")

    async def handle_message(self, websocket, message: str):
        packet = messages.parse_message(message)
        if packet is None:
            return

        handler = self._handlers.get(packet["type"])
        if handler is None:
            logging.debug(f"Dropping unknown message type {packet['type']!r}")
            return
        await handler(websocket, packet, message)

    async def send(self, websocket, packet: Union[dict, str]):
        if websocket is None or websocket.state is not WebsocketState.OPEN:
            logging.debug("Wanted to send data to a connection that is not open")
            return
        if isinstance(packet, dict):
            packet = json.dumps(packet)
        try:
            await websocket.send(packet)
        except websockets.exceptions.ConnectionClosed:
            logging.debug(f"Connection to {websocket.remote_address} closed while sending")

    async def _on_create_session(self, websocket, packet: dict, message: str):
        await self._leave_session(websocket)
        session = self._data.sessions.create_session(websocket)
        await self.send(websocket, messages.session_created(session.code))

    async def _on_join_session(self, websocket, packet: dict, message: str):
        await self._leave_session(websocket)
        code = messages.join_code(packet)
        try:
            session = self._data.sessions.join_session(code, websocket)
        except SessionError as e:
            logging.info(f"Rejected join for session {code}: {e.message}")
            await self.send(websocket, messages.error(e.message))
            return

        await self.send(websocket, messages.session_joined(session.code))
        await self.send(session.primary, messages.peer_joined())

    async def _on_signal(self, websocket, packet: dict, message: str):
        session = self._data.sessions.session_of(websocket)
        if session is None:
            logging.debug(f"Dropping {packet['type']} from a client without a session")
            return
        peer = session.peer_of(websocket)
        if peer is None:
            return
        await self.send(peer, message)

    async def _on_ping(self, websocket, packet: dict, message: str):
        await self.send(websocket, messages.pong())

    async def _leave_session(self, websocket):
        released = self._data.sessions.release(websocket)
        if released is None:
            return
        session, role = released
        peer = session.secondary if role == PRIMARY else session.primary
        if peer is not None:
            await self.send(peer, messages.peer_disconnected(role))
