import os
import logging
from rich.console import Console
from rich.logging import RichHandler
from rich.traceback import install

# frames from these libs are collapsed in tracebacks
import tomlkit, voluptuous, websockets

console = Console()


def setup_logging(level=None):
    level = level or os.environ.get("LOGLEVEL", "INFO")
    logging_handler = RichHandler(
        level=level,
        console=console,
        rich_tracebacks=True,
        tracebacks_suppress=[tomlkit, voluptuous, websockets],
        markup=False,
    )

    logging.basicConfig(
        level="NOTSET", format="%(message)s", datefmt="[%X]", handlers=[logging_handler]
    )

    # websockets logs every plain HTTP request for the page as a rejected handshake
    logging.getLogger("websockets").setLevel(os.environ.get("WEBSOCKETS_LOGLEVEL", "WARNING"))

    install(console=console, suppress=[websockets])
