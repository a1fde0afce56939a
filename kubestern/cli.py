"""
Command-line interface for Kubestern.

This module provides the command-line interface for the Kubestern application,
handling argument parsing, configuration resolution, client startup and
graceful shutdown.

Key Functions:
- build_parser: Create and configure the argument parser
- cli_values: Extract the options explicitly given on the command line
- run: Start the reconciliation loop with a resolved configuration
- main: Main entry point for the CLI application

Only options actually passed on the command line override the config file:
every option uses a suppressed default so absent options never shadow file
values.

Example:
    ```bash
    # Follow every running pod of the current namespace
    kubestern

    # Follow api pods in two namespaces with timestamps, refreshing every 5s
    kubestern --pod-search '^api-' -n prod -n staging --timestamps --loop-pause 5
    ```
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from . import __version__
from .constants import (
    COLOR_MODES, DEFAULT_LOG_LEVEL, EXIT_CONFIG_ERROR, EXIT_FAILURE, EXIT_OK, LOG_LEVEL_ENV
)
from .exceptions import ConfigError, DiscoveryError, KubernetesConnectionError, WriteError
from .kube import KubeInstanceSource, KubeLogSource, load_kube, resolve_namespaces
from .output import OutputWriter
from .reconciler import Reconciler
from .settings import Settings, config_file_path, generate_config_file, load_config_file, resolve_settings

log = logging.getLogger('kubestern')


def build_parser() -> argparse.ArgumentParser:
    """
    Build and configure the command-line argument parser.

    Every option defaults to ``argparse.SUPPRESS`` so that the parsed
    namespace only contains what the user typed; defaults live in
    ``settings.DEFAULTS`` and the config file.

    Returns:
        argparse.ArgumentParser: Configured argument parser with all options
    """
    p = argparse.ArgumentParser(
        "kubestern", argument_default=argparse.SUPPRESS,
        description="Tail the logs of every pod matching a regex, one color per pod",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("-p", "--pod-search", dest="pod_search", metavar="REGEX",
                   help="Regex to match pod names (default: .+)")
    p.add_argument("-k", "--kubeconfig", metavar="FILE", help="Path to kubeconfig (defaults to kube rules)")
    p.add_argument("--context", help="Kubecontext override")
    p.add_argument("-n", "--namespace", dest="namespaces", action="append", metavar="NAMESPACE",
                   help="Namespace to watch, repeatable (default: namespace of the current context)")

    logs = p.add_argument_group("log reads")
    logs.add_argument("--previous", action="store_true", help="Show logs of the previous terminated container")
    logs.add_argument("--since-seconds", dest="since_seconds", type=int, metavar="SECONDS",
                      help="Only show lines newer than this many seconds")
    logs.add_argument("--tail-lines", dest="tail_lines", type=int, metavar="COUNT",
                      help="Number of backlog lines to show per pod (negative: whole log)")
    logs.add_argument("--timestamps", action="store_true", help="Show the timestamp of every line")

    discovery = p.add_argument_group("discovery")
    discovery.add_argument("--no-refresh", dest="refresh", action="store_false",
                           help="Only discover pods once at startup")
    discovery.add_argument("--loop-pause", dest="loop_pause", type=float, metavar="SECONDS",
                           help="Seconds between two pod discoveries (default: 2)")

    colors = p.add_argument_group("colors")
    colors.add_argument("--hue-interval", dest="hue_intervals", action="append", metavar="START-END",
                        help="Hue interval colors are picked from, repeatable (default: 0-359)")
    colors.add_argument("--color-cycle-len", dest="color_cycle_len", type=int, metavar="NUM",
                        help="Number of colors to generate (0: number of pods first found)")
    colors.add_argument("--color-saturation", dest="color_saturation", type=int, metavar="SAT",
                        help="Color saturation, 0-100 (default: 100)")
    colors.add_argument("--color-lightness", dest="color_lightness", type=int, metavar="LIGHT",
                        help="Color lightness, 0-100 (default: 50)")
    colors.add_argument("--default-color", dest="default_color", metavar="H,S,L",
                        help="Color of informational and error messages (default: 0,0,100)")
    colors.add_argument("--color", dest="color_mode", choices=COLOR_MODES,
                        help="When to print colors (default: auto)")

    filters = p.add_argument_group("filters")
    filters.add_argument("-i", "--include", metavar="REGEX", help="Only show lines matching this regex")
    filters.add_argument("-e", "--exclude", metavar="REGEX", help="Hide lines matching this regex")
    filters.add_argument("--replace", metavar="REGEX", help="Regex replaced in every shown line")
    filters.add_argument("--replace-value", dest="replace_value", metavar="TEMPLATE",
                         help="Replacement for --replace, may use \\1 back-references (default: empty)")

    p.add_argument("-v", "--verbose", action="store_true", help="Print pod start/stop messages")
    p.add_argument("--config", metavar="FILE", help="Config file path (env: KUBESTERN_CONFIG)")
    p.add_argument("--generate-config-file", dest="generate_config_file", action="store_true",
                   help="Write a config file with default values and exit")
    return p


_CLI_ONLY = ("config", "generate_config_file")


def cli_values(args: argparse.Namespace) -> Dict[str, Any]:
    """Options explicitly given on the command line, keyed by setting name."""
    return {k: v for k, v in vars(args).items() if k not in _CLI_ONLY}


def setup_logging(verbose: bool) -> None:
    """Configure diagnostics on stderr (level via KUBESTERN_LOG_LEVEL env)."""
    default_level = "INFO" if verbose else DEFAULT_LOG_LEVEL
    logging.basicConfig(
        level=getattr(logging, os.getenv(LOG_LEVEL_ENV, default_level).upper(), logging.WARNING),
        format='[%(asctime)s] %(levelname)s %(message)s',
        stream=sys.stderr,
    )


def _install_signal_handlers(reconciler: Reconciler) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, reconciler.request_stop)
        except (NotImplementedError, RuntimeError):
            # Windows: KeyboardInterrupt is handled in main()
            pass


async def run(settings: Settings, writer: OutputWriter) -> None:
    """
    Connect to the cluster and run the reconciliation loop until stopped.

    Raises:
        KubernetesConnectionError: If the client configuration can't be loaded
        DiscoveryError: If the first pod discovery fails
        WriteError: If the output sink fails
    """
    kube = await load_kube(settings.kubeconfig, settings.context)
    namespaces = resolve_namespaces(settings.namespaces, kube)
    log.info(f"[startup] watching namespaces {', '.join(namespaces)} for pods matching '{settings.pod_search.pattern}'")

    reconciler = Reconciler(settings, KubeInstanceSource(kube.core), KubeLogSource(kube.core), writer, namespaces)
    writer.on_failure = reconciler.on_write_failure
    _install_signal_handlers(reconciler)
    await reconciler.run()


def main(argv: Optional[Sequence[str]] = None) -> None:
    """
    Main entry point for the Kubestern CLI application.

    The function performs the following steps:
    1. Parse command-line arguments
    2. Generate the config file and exit, when asked to
    3. Merge defaults, config file and command-line values
    4. Start the reconciliation loop
    5. Handle shutdown gracefully

    Raises:
        SystemExit: On configuration errors (exit code 2) or runtime errors (exit code 1)
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    path = Path(args.config).expanduser() if getattr(args, "config", None) else config_file_path()

    try:
        if getattr(args, "generate_config_file", False):
            generate_config_file(path)
            print(f"Config file written to {path}", file=sys.stderr)
            sys.exit(EXIT_OK)
        settings = resolve_settings(load_config_file(path), cli_values(args))
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(EXIT_CONFIG_ERROR)

    setup_logging(settings.verbose)
    writer = OutputWriter(color_mode=settings.color_mode, default_color=settings.default_color)

    try:
        asyncio.run(run(settings, writer))
    except KeyboardInterrupt:
        print("\nShutting down...", file=sys.stderr)
    except (KubernetesConnectionError, DiscoveryError, WriteError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(EXIT_FAILURE)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(EXIT_CONFIG_ERROR)


if __name__ == "__main__":  # pragma: no cover
    main()
