#!/usr/bin/env python3
"""Main CLI entry point for console-bridge using Typer.

This module wires the layered configuration into a running ConsoleBridge:
it builds the output sinks, picks a formatter style, and either monitors
local pages in a headless browser or waits for the browser extension.
"""

import asyncio
import logging
import sys
from enum import IntEnum
from pathlib import Path
from typing import Annotated, List, Optional

import typer

from .. import __version__
from ..bridge import ConsoleBridge
from ..capture.browser_factory import BrowserConfig, BrowserFactory
from ..capture.normalizer import EventNormalizer
from ..capture.serializer import ValueSerializer
from ..formatting.decorators import JsonLinesFormatter, LevelBadgeDecorator
from ..formatting.formatter import Formatter, LogFormatter
from ..formatting.registry import FormatterRegistry
from ..output.sinks import FileSink, MultiplexSink, TerminalSink
from ..utils.url import SourceUrlError, parse_urls
from .config import (
    BridgeConfiguration,
    load_configuration,
    print_configuration,
    validate_configuration,
)


class ExitCode(IntEnum):
    """CLI exit codes."""
    SUCCESS = 0
    CONFIG_ERROR = 2
    RUNTIME_ERROR = 3


# Create the main Typer app
app = typer.Typer(
    name="console-bridge",
    help="Console Bridge - stream browser console output to your terminal",
    add_completion=False,
    rich_markup_mode="rich"
)


def version_callback(value: bool):
    """Show version information."""
    if value:
        typer.echo(f"Console Bridge CLI v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version and exit")
    ] = None,
):
    """
    Console Bridge - stream browser console output to your terminal.

    Monitors locally served pages in a headless browser, or receives console
    events from the Console Bridge browser extension, and prints every
    console call with groups, counters, timers and tables preserved.
    """
    pass


@app.command(name="version")
def show_version():
    """Show version information."""
    typer.echo(f"Console Bridge CLI v{__version__}")


@app.command()
def start(
    # Input configuration
    urls: Annotated[
        Optional[List[str]],
        typer.Argument(help="Local URLs to monitor, e.g. localhost:3000")
    ] = None,

    levels: Annotated[
        Optional[str],
        typer.Option("--levels", "-l", help="Comma separated console methods to show (default: all)")
    ] = None,

    config: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to YAML or JSON configuration file")
    ] = None,

    # Display configuration
    no_timestamp: Annotated[
        bool,
        typer.Option("--no-timestamp", help="Hide timestamps")
    ] = False,

    no_source: Annotated[
        bool,
        typer.Option("--no-source", help="Hide the source prefix")
    ] = False,

    location: Annotated[
        bool,
        typer.Option("--location", help="Show the call location of each message")
    ] = False,

    timestamp_format: Annotated[
        Optional[str],
        typer.Option("--timestamp-format", help="Timestamp format: time or iso")
    ] = None,

    no_color: Annotated[
        bool,
        typer.Option("--no-color", help="Disable ANSI colors")
    ] = False,

    badges: Annotated[
        bool,
        typer.Option("--badges", help="Prefix lines with a level badge")
    ] = False,

    json_output: Annotated[
        bool,
        typer.Option("--json", help="Emit one JSON object per console call")
    ] = False,

    shared_formatter: Annotated[
        bool,
        typer.Option("--shared-formatter", help="Share group/count/timer state across all sources")
    ] = False,

    # Browser configuration
    headful: Annotated[
        bool,
        typer.Option("--headful", help="Show the browser window")
    ] = False,

    engine: Annotated[
        Optional[str],
        typer.Option("--engine", help="Browser engine: chromium, firefox or webkit")
    ] = None,

    max_instances: Annotated[
        Optional[int],
        typer.Option("--max-instances", help="Maximum number of monitored pages")
    ] = None,

    # Output configuration
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Also append output to this file (colors stripped)")
    ] = None,

    quiet: Annotated[
        bool,
        typer.Option("--quiet", "-q", help="Do not print to the terminal (requires --output)")
    ] = False,

    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Verbose diagnostics on stderr")
    ] = False,

    print_config: Annotated[
        bool,
        typer.Option("--print-config", help="Print effective configuration and exit")
    ] = False,

    # Extension mode
    extension_mode: Annotated[
        bool,
        typer.Option("--extension-mode", help="Receive console events from the browser extension")
    ] = False,

    host: Annotated[
        Optional[str],
        typer.Option("--host", help="Interface for the extension WebSocket server")
    ] = None,

    port: Annotated[
        Optional[int],
        typer.Option("--port", "-p", help="Port for the extension WebSocket server")
    ] = None,
):
    """
    Start streaming console output.

    Examples:

        console-bridge start localhost:3000

        console-bridge start localhost:3000 localhost:8080 --levels error,warning

        console-bridge start --extension-mode
    """

    # Build CLI overrides dictionary - only include values that were explicitly provided
    cli_overrides = {}

    # Capture configuration
    capture_config = {}
    if urls:
        try:
            capture_config["urls"] = parse_urls(" ".join(urls))
        except SourceUrlError as e:
            typer.echo(f"❌ Configuration error: {e}", err=True)
            raise typer.Exit(code=ExitCode.CONFIG_ERROR.value)
    if levels:
        capture_config["levels"] = [level.strip() for level in levels.split(",") if level.strip()]
    if engine:
        capture_config["engine"] = engine.lower()
    if headful:
        capture_config["headless"] = False
    if max_instances is not None:
        capture_config["max_instances"] = max_instances
    if capture_config:
        cli_overrides["capture"] = capture_config

    # Formatter configuration
    formatter_config = {}
    if no_timestamp:
        formatter_config["show_timestamp"] = False
    if no_source:
        formatter_config["show_source"] = False
    if location:
        formatter_config["show_location"] = True
    if timestamp_format:
        formatter_config["timestamp_format"] = timestamp_format
    if no_color:
        formatter_config["colors"] = False
    if json_output:
        formatter_config["style"] = "json"
    elif badges:
        formatter_config["style"] = "badges"
    if shared_formatter:
        formatter_config["shared"] = True
    if formatter_config:
        cli_overrides["formatter"] = formatter_config

    # Output configuration
    output_config = {}
    if output:
        output_config["output_file"] = output
    if quiet:
        output_config["quiet"] = True
    if verbose:
        output_config["verbose"] = True
    if output_config:
        cli_overrides["output"] = output_config

    # Server configuration
    server_config = {}
    if extension_mode:
        server_config["extension_mode"] = True
    if host:
        server_config["host"] = host
    if port is not None:
        server_config["port"] = port
    if server_config:
        cli_overrides["server"] = server_config

    # Load configuration with precedence
    try:
        full_config = load_configuration(
            config_file=config,
            cli_overrides=cli_overrides,
            search_paths=[Path.cwd()]
        )
    except Exception as e:
        typer.echo(f"❌ Configuration error: {e}", err=True)
        raise typer.Exit(code=ExitCode.CONFIG_ERROR.value)

    # Print configuration if requested
    if print_config:
        typer.echo("# Effective Configuration")
        typer.echo("# Loaded from: " + " -> ".join(full_config.loaded_from))
        typer.echo(print_configuration(full_config, "yaml"))
        raise typer.Exit()

    validation_errors = validate_configuration(full_config)
    if validation_errors:
        for error in validation_errors:
            typer.echo(f"❌ Configuration error: {error}", err=True)
        raise typer.Exit(code=ExitCode.CONFIG_ERROR.value)

    configure_logging(full_config.output.verbose)

    try:
        bridge = build_bridge(full_config)
    except OSError as e:
        typer.echo(f"❌ Cannot open output: {e}", err=True)
        raise typer.Exit(code=ExitCode.CONFIG_ERROR.value)

    try:
        exit_code = asyncio.run(run_bridge(bridge, full_config))
    except KeyboardInterrupt:
        typer.echo("👋 Stopped", err=True)
        exit_code = ExitCode.SUCCESS
    except Exception as e:
        typer.echo(f"❌ Runtime error: {e}", err=True)
        if full_config.output.verbose:
            import traceback
            traceback.print_exc()
        exit_code = ExitCode.RUNTIME_ERROR
    finally:
        bridge.sink.close()

    if exit_code is not ExitCode.SUCCESS:
        raise typer.Exit(code=exit_code.value)


def configure_logging(verbose: bool) -> None:
    """Send diagnostics to stderr, keeping stdout for console lines."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def build_formatter(config: BridgeConfiguration) -> Formatter:
    """Create the formatter selected by the formatter section."""
    options = config.formatter

    if options.style == "json":
        return JsonLinesFormatter()

    if options.shared:
        formatter: Formatter = LogFormatter(options)
    else:
        formatter = FormatterRegistry(lambda: LogFormatter(options))

    if options.style == "badges":
        formatter = LevelBadgeDecorator(formatter, colors=options.colors)
    return formatter


def build_bridge(config: BridgeConfiguration) -> ConsoleBridge:
    """Assemble sinks, formatter, normalizer and browser into a bridge."""
    sink = MultiplexSink()
    if not config.output.quiet:
        sink.add(TerminalSink(color=None if config.formatter.colors else False))
    if config.output.output_file:
        sink.add(FileSink(config.output.output_file))

    normalizer = EventNormalizer(
        serializer=ValueSerializer(config.serializer),
        levels=config.capture.levels,
    )

    browser_factory = BrowserFactory(BrowserConfig(
        engine=config.capture.engine,
        headless=config.capture.headless,
    ))

    return ConsoleBridge(
        sink=sink,
        formatter=build_formatter(config),
        normalizer=normalizer,
        browser_factory=browser_factory,
        max_instances=config.capture.max_instances,
        navigation_timeout=config.capture.navigation_timeout_ms,
        capture_page_errors=config.capture.capture_page_errors,
        capture_network_failures=config.capture.capture_network_failures,
    )


async def run_bridge(bridge: ConsoleBridge, config: BridgeConfiguration) -> ExitCode:
    """Start the configured capture path and stream until interrupted."""
    try:
        if config.server.extension_mode:
            await bridge.serve_extension(config.server.host, config.server.port)
            typer.echo(
                f"🔌 Waiting for the extension on ws://{config.server.host}:{config.server.port}",
                err=True
            )
        else:
            sources = await bridge.start(config.capture.urls)
            if not sources:
                typer.echo("❌ None of the URLs could be monitored", err=True)
                return ExitCode.RUNTIME_ERROR
            for source in sources:
                typer.echo(f"👀 Monitoring {source}", err=True)

        typer.echo("Press Ctrl+C to stop", err=True)
        await asyncio.Event().wait()
        return ExitCode.SUCCESS
    finally:
        await bridge.stop()


def cli_main():
    """Entry point for console script."""
    app()


if __name__ == "__main__":
    cli_main()
