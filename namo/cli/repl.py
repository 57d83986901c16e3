"""REPL launcher — builds the session from config and runs it.

Startup happens in a fixed order: settings, logging, banner, connection,
engine, session. Any failure along the way (or out of the session loop
itself) is printed and turns into exit status 1.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import structlog
from rich.text import Text

from namo.cli.formatters import get_console, print_banner, print_connection

logger = structlog.get_logger(__name__)


def run_repl(profile: Optional[str] = None, endpoint: Optional[str] = None) -> int:
    """Launch the interactive shell and return the process exit status."""
    from namo.config import NamoConfig
    from namo.connection import resolve_connection
    from namo.engine import load_engine
    from namo.main import NamoSession, configure_logging

    console = get_console()
    try:
        config = NamoConfig()
        configure_logging(config.log_level)
        if config.banner:
            print_banner(console)

        connection = resolve_connection(profile=profile, endpoint=endpoint)
        print_connection(console, connection)

        engine = load_engine(config.engine, connection)
        session = NamoSession(engine, config=config, console=console)
        return asyncio.run(session.run())
    except KeyboardInterrupt:
        return 0
    except Exception as e:
        configure_logging()
        logger.debug("repl.fatal", error=str(e), exc_info=True)
        get_console(stderr=True).print(Text(f"Error: {e}", style="red"), soft_wrap=True)
        return 1
