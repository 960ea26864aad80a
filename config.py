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

import logging
import os
import ssl
from pathlib import Path

from voluptuous import Schema, Required, Optional, All, Coerce, Range, Length
import voluptuous.error
import aiofiles
import tomlkit
import tomlkit.exceptions


class ConfigurationLoadError(Exception): pass


class Config:
    config: dict

    def __init__(self, config_location: Path, environ=None):
        self.config_location = Path(config_location)
        self._environ = os.environ if environ is None else environ

        self.config_schema = Schema({
            Optional('server', default={}): {
                Optional('host', default=''): str,
                Optional('port', default=3000): All(int, Range(min=0, max=65535)),
                Optional('index', default='index.html'): All(str, Length(min=1)),
                Optional('max_message_size', default=1024 * 1024): All(int, Range(min=1024)),
                Optional('ping_interval', default=20.0): All(Coerce(float), Range(min=0)),
                Optional('tls'): {
                    Required('cert_file'): All(str, Length(min=1)),
                    Required('key_file'): All(str, Length(min=1)),
                },
            },
            Optional('sessions', default={}): {
                Optional('grace_period', default=5.0): All(Coerce(float), Range(min=0)),
            },
        })

    async def initialize(self):
        document = {}
        try:
            async with aiofiles.open(self.config_location, 'r') as config_file:
                file_data = await config_file.read()
                document = tomlkit.parse(file_data).unwrap()
                logging.debug("Loaded Configuration without toml format error")
        except FileNotFoundError:
            logging.warning(
                f"Could not find {self.config_location}, using defaults. "
                f"Copy from .example/config.toml to {self.config_location} to customize")
        except IOError as e:
            logging.exception(e)
            logging.warning(f"Could not open file {self.config_location}")
            raise ConfigurationLoadError() from e
        except tomlkit.exceptions.ParseError as e:
            logging.exception(e)
            logging.warning(f"Configuration in {self.config_location} is invalid")
            raise ConfigurationLoadError() from e

        try:
            logging.debug("Validating against Schema.")
            self.config = self.config_schema(document)
            logging.debug("Validated against Schema.")
        except voluptuous.error.MultipleInvalid as e:
            logging.exception(e)
            logging.warning(f"Configuration in {self.config_location} does not match expected format")
            logging.warning(f"Issue configuration item: {e.path}")
            raise ConfigurationLoadError() from e

        self._apply_environment()
        logging.info("Configuration loaded.")

    def _apply_environment(self):
        port = self._environ.get("PORT")
        if port is None:
            return
        try:
            self.config['server']['port'] = Schema(All(Coerce(int), Range(min=0, max=65535)))(port)
        except voluptuous.error.Invalid as e:
            logging.warning(f"Invalid PORT={port!r} in the environment")
            raise ConfigurationLoadError() from e
        logging.debug(f"Port overridden from the environment: {self.config['server']['port']}")


def create_ssl_context(config):
    tls = config['server'].get('tls')
    if tls is None:
        return None
    try:
        ssl_context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        ssl_context.load_cert_chain(tls['cert_file'], tls['key_file'])
    except FileNotFoundError as e:
        logging.error(f"Certificate or key file not found (cert: '{tls['cert_file']}', key: '{tls['key_file']}')")
        raise ConfigurationLoadError() from e
    except ssl.SSLError as e:
        logging.exception(e)
        logging.error("Could not load the TLS certificate chain")
        raise ConfigurationLoadError() from e
    logging.debug("TLS context created")
    return ssl_context
