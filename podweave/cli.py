"""
Command-line interface for Podweave.

This module provides the command-line interface for Podweave, handling
argument parsing, input validation, and running either the stream server or
a terminal consumer of it.

Key Functions:
- build_parser: Create and configure the argument parser
- TerminalPrinter: Render view-state updates to a terminal
- tail: Consume one aggregated stream until it closes
- main: Main entry point for the CLI application

Example:
    ```bash
    # Run the stream server against the current kubecontext
    podweave serve --port 8080

    # Follow every pod labelled app=web in prod
    podweave tail --selector app=web --namespace prod
    ```
"""

import argparse
import asyncio
import os
import sys
from typing import Dict, Optional, TextIO

from .server import run_server
from .stream import AggregatedLogStream
from .logsetup import setup_logging
from .models import ConnectionState, ServerConfig, ViewState
from .validation import (
    int_from_env, validate_capacity, validate_host, validate_namespace, validate_port,
    validate_selector, validate_server_url, validate_tail_lines
)
from .exceptions import ConfigurationError, InvalidSelectorError
from .constants import (
    DEFAULT_BUFFER_CAPACITY, DEFAULT_HOST, DEFAULT_LOG_LEVEL, DEFAULT_NAMESPACE,
    DEFAULT_PORT, DEFAULT_SERVER_URL, DEFAULT_TAIL_LINES, DEFAULT_UVICORN_LOG_LEVEL
)

ANSI_COLORS: Dict[str, str] = {
    'blue': '\033[94m',
    'purple': '\033[35m',
    'pink': '\033[95m',
    'cyan': '\033[96m',
    'emerald': '\033[92m',
    'amber': '\033[93m',
    'rose': '\033[91m',
    'indigo': '\033[34m',
    'teal': '\033[36m',
    'orange': '\033[33m',
}
ANSI_RED = '\033[31m'
ANSI_DIM = '\033[2m'
ANSI_RESET = '\033[0m'


def build_parser() -> argparse.ArgumentParser:
    """
    Build and configure the command-line argument parser.

    Environment Variables:
        PODWEAVE_HOST: Default host to bind to (default: localhost)
        PODWEAVE_PORT: Default port to bind to (default: 8080)
        PODWEAVE_TAIL_LINES: Default history lines per pod (default: 50)
        PODWEAVE_SERVER: Default server URL for tail (default: http://localhost:8080)
        PODWEAVE_BUFFER_CAPACITY: Default display capacity for tail (default: 1000)
    """
    env_host = os.getenv('PODWEAVE_HOST', DEFAULT_HOST)
    env_port = int_from_env('PODWEAVE_PORT', DEFAULT_PORT)
    env_tail = int_from_env('PODWEAVE_TAIL_LINES', DEFAULT_TAIL_LINES)
    env_capacity = int_from_env('PODWEAVE_BUFFER_CAPACITY', DEFAULT_BUFFER_CAPACITY)
    env_server = os.getenv('PODWEAVE_SERVER', DEFAULT_SERVER_URL)

    p = argparse.ArgumentParser("podweave", description="Aggregated real-time Kubernetes logs by label selector")
    p.add_argument("command", choices=['serve', 'tail'], help="Subcommand to run: 'serve' the stream API or 'tail' a selector")
    p.add_argument("--namespace", default=DEFAULT_NAMESPACE, help="Namespace (serve: default for clients; tail: namespace to stream)")
    p.add_argument("--log-level", default=None, help=f"Log level (env: PODWEAVE_LOG_LEVEL, default: {DEFAULT_LOG_LEVEL})")

    serve = p.add_argument_group("serve options")
    serve.add_argument("--kubeconfig", default=None, help="Path to kubeconfig (defaults to kube rules)")
    serve.add_argument("--context", default=None, help="Kubecontext override")
    serve.add_argument("--host", default=env_host, help="Host to bind (env: PODWEAVE_HOST)")
    serve.add_argument("--port", type=int, default=env_port, help="Port for HTTP server (env: PODWEAVE_PORT)")
    serve.add_argument("--tail-lines", type=int, default=env_tail, help="History lines per pod when a stream starts (env: PODWEAVE_TAIL_LINES)")

    tail_group = p.add_argument_group("tail options")
    tail_group.add_argument("--selector", "-l", default=None, help="Label selector of the pods to stream (e.g. app=web)")
    tail_group.add_argument("--server", default=env_server, help="Podweave server URL (env: PODWEAVE_SERVER)")
    tail_group.add_argument("--capacity", type=int, default=env_capacity, help="Lines kept in the display buffer (env: PODWEAVE_BUFFER_CAPACITY)")
    tail_group.add_argument("--no-color", action="store_true", help="Do not color pod prefixes")
    return p


class TerminalPrinter:
    """
    View-state listener that writes a live stream to a terminal.

    Log lines go to ``out`` (only lines not printed yet, tracked by their
    receipt sequence); connection changes, the roster and errors go to
    ``err``. Lines are prefixed with their pod name when more than one pod
    contributes, in the pod's color when ``color`` is on.
    """

    def __init__(self, out: TextIO, err: TextIO, color: bool = True):
        self.out = out
        self.err = err
        self.color = color
        self.last_sequence = 0
        self._state: Optional[ConnectionState] = None
        self._roster = None
        self._error: Optional[str] = None

    def _paint(self, text: str, code: str) -> str:
        if not self.color or not code:
            return text
        return f"{code}{text}{ANSI_RESET}"

    def __call__(self, view: ViewState) -> None:
        if view.connection_state is not self._state:
            self._state = view.connection_state
            if self._state is ConnectionState.CONNECTING:
                self.last_sequence = 0
            print(self._paint(f"[podweave] {self._state.value}", ANSI_DIM), file=self.err)

        if view.roster != self._roster:
            self._roster = view.roster
            if view.roster.pods:
                n = len(view.roster.pods)
                print(f"[podweave] streaming from {n} pod{'s' if n != 1 else ''}: {', '.join(view.roster.pods)}", file=self.err)

        if view.last_error != self._error:
            self._error = view.last_error
            if view.last_error:
                print(self._paint(view.last_error, ANSI_RED), file=self.err)

        multi = len(view.roster.pods) > 1
        for line in view.displayed_entries:
            if line.sequence <= self.last_sequence:
                continue
            self.last_sequence = line.sequence
            if multi:
                prefix = self._paint(f"[{line.pod}]", ANSI_COLORS.get(line.color, ''))
                print(f"{prefix} {line.message}", file=self.out)
            else:
                print(line.message, file=self.out)
        self.out.flush()


async def tail(
    server: str,
    selector: str,
    namespace: str,
    capacity: int = DEFAULT_BUFFER_CAPACITY,
    printer: Optional[TerminalPrinter] = None,
    **stream_kwargs
) -> int:
    """
    Stream one selector until the connection closes.

    Returns:
        int: 0 when the stream closed cleanly, 1 on a connection failure or
            a server-reported error
    """
    finished = asyncio.Event()
    stream = AggregatedLogStream(server, capacity=capacity, **stream_kwargs)
    stream.subscribe(printer or TerminalPrinter(sys.stdout, sys.stderr))
    stream.subscribe(lambda view: finished.set() if view.connection_state.is_terminal else None)
    stream.connect(selector, namespace)
    try:
        await finished.wait()
    finally:
        stream.dispose()
    view = stream.view
    if view.connection_state is ConnectionState.ERRORED or view.last_error:
        return 1
    return 0


def main() -> None:
    """
    Main entry point for the Podweave CLI application.

    Raises:
        SystemExit: On configuration errors (exit code 2), server errors or a
            failed tail (exit code 1)
    """
    parser = build_parser()
    args = parser.parse_args()
    setup_logging(args.log_level)

    try:
        namespace = validate_namespace(args.namespace)
        if args.command == 'serve':
            config = ServerConfig(
                host=validate_host(args.host),
                port=validate_port(args.port),
                namespace=namespace,
                tail_lines=validate_tail_lines(args.tail_lines),
                kubeconfig=args.kubeconfig,
                context=args.context,
                log_level=args.log_level or os.getenv('PODWEAVE_LOG_LEVEL', DEFAULT_LOG_LEVEL),
                uvicorn_log_level=os.getenv('PODWEAVE_UVICORN_LEVEL', DEFAULT_UVICORN_LOG_LEVEL),
            )
        else:
            if not args.selector:
                parser.error("tail requires --selector")
            selector = validate_selector(args.selector)
            server = validate_server_url(args.server)
            capacity = validate_capacity(args.capacity)
    except (InvalidSelectorError, ConfigurationError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    if args.command == 'serve':
        try:
            asyncio.run(run_server(config))
        except KeyboardInterrupt:
            print("\nShutting down...", file=sys.stderr)
        except Exception as e:
            print(f"Server error: {e}", file=sys.stderr)
            sys.exit(1)
        return

    printer = TerminalPrinter(sys.stdout, sys.stderr, color=not args.no_color and sys.stdout.isatty())
    try:
        code = asyncio.run(tail(server, selector, namespace, capacity, printer))
    except KeyboardInterrupt:
        code = 0
    sys.exit(code)

if __name__ == "__main__":  # pragma: no cover
    main()
