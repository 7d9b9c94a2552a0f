"""
cube-shell - Main Entry Point

This module provides the CLI interface and wires up all components of the
interactive shell: configuration, logging, session and cache, the remote
client, the command dispatcher and the prompt_toolkit REPL.
"""

import argparse
import logging
import sys

from .builtins import BuiltinTable
from .cache import ListingCache
from .completer import Completer
from .config import AppConfig, load_config
from .cube_client import CubeClient
from .dispatcher import Dispatcher, ExternalCommand
from .interceptor import PluginInterceptor
from .logger import setup_logging
from .resolver import PathResolver, resolve_path
from .session import Session, get_context_path, load_context, save_context
from .status import CommandStatus

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="cube-shell",
        description="cube-shell - Interactive shell for a remote research filesystem",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  cube-shell --url http://localhost:8000/api/v1/ --user chris --password chris1234
  cube-shell --config cube-shell.ini
  cube-shell -c "ls -l ~/uploads"
        """,
    )
    parser.add_argument("--config", help="Path to configuration file")
    parser.add_argument("--url", help="API base URL")
    parser.add_argument("--user", help="Username")
    parser.add_argument("--password", help="Password")
    parser.add_argument("--physical", action="store_true", help="Start in physical path mode")
    parser.add_argument("-c", "--command", help="Run one command line and exit")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


class Shell:
    """All long-lived shell components, constructed once per process."""

    def __init__(self, config: AppConfig, connector=CubeClient.login):
        self.config = config
        self.cache = ListingCache(enabled=config.cache.enabled)
        self.session = Session(self.cache, physical_mode=config.session.physical_mode)
        self.resolver = PathResolver(self.session)
        self.completer = Completer(self.session, self.resolver, config.cache.plugin_ttl_seconds)
        self.builtins = BuiltinTable(self.session, self.resolver, config, connector=connector)
        self.dispatcher = Dispatcher(
            PluginInterceptor(self.session),
            self.builtins,
            ExternalCommand(config.shell.external_command),
        )

    def restore(self) -> None:
        """
        Connect using configured credentials, or else reuse the saved
        context. A missing or failed login leaves the shell disconnected.
        """
        cube = self.config.cube
        context_path = get_context_path(self.config.session.context_file)
        cwd = None

        if cube.url and cube.username and cube.password:
            # connect lands in the home directory
            if self.builtins.do_connect([]) is CommandStatus.HANDLED:
                self.session.set_cwd(
                    resolve_path(self.config.session.start_dir, self.session.cwd, self.session.user)
                )
            return

        context = load_context(context_path)
        if context is not None:
            client = CubeClient(
                context["url"],
                context["token"],
                context.get("username", ""),
                self.config.connection,
            )
            self.session.connect(client)
            cwd = context.get("cwd")
            logger.info("Restored session for %s at %s", client.username, client.url)

        start = cwd or resolve_path(self.config.session.start_dir, "/", self.session.user)
        self.session.set_cwd(start)

    def save(self) -> None:
        client = self.session.connection
        if client is None:
            return
        save_context(
            {"url": client.url, "username": client.username, "token": client.token, "cwd": self.session.cwd},
            get_context_path(self.config.session.context_file),
        )


def main(argv=None):
    args = parse_args(argv)

    try:
        config = load_config(
            config_path=args.config,
            url=args.url,
            username=args.user,
            password=args.password,
            physical_mode=args.physical,
            debug=args.verbose,
        )
    except ValueError as e:
        print(f"[ERROR] Configuration error: {e}")
        return 1
    except FileNotFoundError as e:
        print(f"[ERROR] {e}")
        return 1

    setup_logging(config.logging)
    from . import __version__

    logger.info("Starting cube-shell v%s", __version__)

    shell = Shell(config)
    try:
        shell.restore()
        if args.command is not None:
            status = shell.dispatcher.dispatch(args.command)
            return 0 if status is CommandStatus.HANDLED else 1

        from .repl import Repl

        Repl(
            shell.session,
            shell.dispatcher,
            shell.completer,
            history_file=config.shell.history_file,
        ).run()
        return 0
    except Exception as e:
        logger.exception("Fatal error: %s", e)
        print(f"[ERROR] Fatal error: {e}")
        return 1
    finally:
        try:
            shell.save()
        except OSError as e:
            logger.warning("Could not save context: %s", e)
        shell.session.disconnect()


if __name__ == "__main__":
    sys.exit(main())
