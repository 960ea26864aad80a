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
import logging
from http import HTTPStatus
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit

import aiofiles
import websockets
from websockets.asyncio.server import ServerConnection, serve
from websockets.datastructures import Headers
from websockets.http11 import Request, Response

from config import create_ssl_context
from server_data import ServerData
from session_broker import SessionBroker

INDEX_PATHS = ("/", "/index.html")


class SignalingServer:

    def __init__(self, config, data: ServerData, broker: SessionBroker):
        self._config = config
        self._data = data
        self._broker = broker
        self._index_path = Path(self._config["server"]["index"])
        self._ssl_context = create_ssl_context(self._config)
        self._websocket_server = None
        self._server = None

    @property
    def scheme(self) -> str:
        return "https" if self._ssl_context is not None else "http"

    @property
    def port(self) -> Optional[int]:
        if self._server is None:
            return None
        return self._server.sockets[0].getsockname()[1]

    async def handler(self, websocket: ServerConnection):
        await self._broker.connection_opened(websocket)
        shutdown_wait_task = asyncio.create_task(self._data.shutdown_event.wait())
        try:
            while True:
                receive_task = asyncio.create_task(websocket.recv())
                done, pending = await asyncio.wait(
                    [receive_task, shutdown_wait_task],
                    return_when=asyncio.FIRST_COMPLETED
                )

                # shutdown case
                if shutdown_wait_task in done:
                    if receive_task.done():
                        # retrieve it so a closed connection is not reported as unhandled
                        receive_task.exception()
                    else:
                        receive_task.cancel()
                    await websocket.close(1001, "Server shutting down")
                    break

                message = receive_task.result()
                if isinstance(message, str):
                    await self._broker.handle_message(websocket, message)
                else:
                    logging.debug(f"Ignoring binary frame from {websocket.remote_address}")
        except websockets.exceptions.ConnectionClosedOK:
            logging.debug(f"Websocket connection closed")
        except websockets.exceptions.ConnectionClosedError as e:
            logging.debug(f"Websocket connection closed with error: {e}")
        finally:
            shutdown_wait_task.cancel()
            await self._broker.connection_closed(websocket)

    async def process_request(self, connection: ServerConnection, request: Request) -> Optional[Response]:
        if request.headers.get("Upgrade", "").lower() == "websocket":
            return None  # continue with the handshake

        # strip the query string, e.g. /?join=123456
        path = urlsplit(request.path).path
        if path not in INDEX_PATHS:
            return connection.respond(HTTPStatus.NOT_FOUND, "Not found")

        try:
            async with aiofiles.open(self._index_path, 'rb') as index_file:
                body = await index_file.read()
        except OSError as e:
            logging.warning(f"Could not read {self._index_path}: {e}")
            return connection.respond(HTTPStatus.NOT_FOUND, "Not found")

        headers = Headers([
            ("Content-Type", "text/html; charset=utf-8"),
            ("Content-Length", str(len(body))),
            ("Connection", "close"),
        ])
        return Response(HTTPStatus.OK.value, HTTPStatus.OK.phrase, headers, body)

    async def __aenter__(self):
        server_config = self._config["server"]
        self._websocket_server = serve(
            self.handler,
            server_config["host"] or None,
            server_config["port"],
            process_request=self.process_request,
            ssl=self._ssl_context,
            max_size=server_config["max_message_size"],
            ping_interval=server_config["ping_interval"] or None,
        )
        logging.debug(f"Starting signaling server")
        self._server = await self._websocket_server.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._websocket_server is not None:
            logging.debug(f"Stopping signaling server")
            self._data.shutdown_event.set()
            await self._websocket_server.__aexit__(exc_type, exc_val, exc_tb)
            self._websocket_server = None
            self._server = None
