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
import random
from typing import Optional

from session_store import SessionStore


class ServerData:

    def __init__(self, loop: asyncio.AbstractEventLoop, grace_period: float = 5.0,
                 rng: Optional[random.Random] = None):
        self.connected_clients: set = set()
        self.sessions = SessionStore(loop, grace_period=grace_period, rng=rng)

        self.shutdown_event = asyncio.Event()
