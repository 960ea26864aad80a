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
import os

from config import Config, ConfigurationLoadError
from logger import setup_logging
from server_data import ServerData
from session_broker import SessionBroker
from signaling_server import SignalingServer


class PhoneCam:

    def __init__(self, config, loop: asyncio.AbstractEventLoop):
        self._config = config
        self._loop = loop
        self._data = ServerData(self._loop, grace_period=self._config["sessions"]["grace_period"])
        self._broker = SessionBroker(self._data)
        self._signaling_server = SignalingServer(self._config, self._data, self._broker)

    async def begin(self):
        logging.info("Starting PhoneCam signaling server")
        async with self._signaling_server:
            try:
                logging.info(f"PhoneCam server running at "
                             f"{self._signaling_server.scheme}://localhost:{self._signaling_server.port}")
                logging.info("Ctrl^C to quit")
                await self._data.shutdown_event.wait()
            except asyncio.CancelledError:
                logging.info("Cancelled ...")
            finally:
                logging.info(f"Stopping Server ({len(self._data.sessions)} live sessions) ...")


async def main():
    logging.info("Starting PhoneCam ...")

    config = Config(os.environ.get("PHONECAM_CONFIG", "./config.toml"))
    loop = asyncio.get_running_loop()

    try:
        await config.initialize()

        phonecam = PhoneCam(config.config, loop)
        await phonecam.begin()
    except ConfigurationLoadError:
        logging.error("Could not load configuration. Exiting")
        return


def run():
    setup_logging()
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logging.info("Stopped.")


if __name__ == "__main__":
    run()
