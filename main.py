#!/usr/bin/env python3
"""PIR Display - Entry point.

Switches a display on and off from a PIR motion sensor, with optional
always-on / always-off switches, relay or xrandr power control, and
presence reporting over MQTT.

Usage:
    python3 main.py                       # pir.yaml in the current directory
    python3 main.py --config /etc/pir.yaml
    python3 main.py --simulate            # fake motion every 20 s, no PIR needed
    python3 main.py --web --port 8080     # also serve the HTTP/SSE host API
    python3 main.py --wait-config         # configuration comes from the host API
    python3 main.py --log-level DEBUG     # Verbose logging

SIGTERM or Ctrl-C stops the loop; timers are cancelled and GPIO lines
released before exit.
"""

__version__ = "1.0.0"

import argparse
import logging
import signal
import sys
import threading

from config import DEFAULT_CONFIG_FILE, ConfigError, load_config, parse_config
from core import EventBus, MainLoop, PirController


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="PIR Display - motion-driven display power control",
    )
    parser.add_argument(
        "--config", default=DEFAULT_CONFIG_FILE,
        help=f"Path to YAML config (default: {DEFAULT_CONFIG_FILE})",
    )
    parser.add_argument(
        "--simulate", action="store_true",
        help="Inject simulated motion instead of reading the PIR sensor",
    )
    parser.add_argument(
        "--web", action="store_true",
        help="Serve the HTTP/SSE host API",
    )
    parser.add_argument(
        "--wait-config", action="store_true",
        help="Skip the config file and wait for POST /api/config (implies --web)",
    )
    parser.add_argument("--host", default="0.0.0.0", help="Bind address for --web")
    parser.add_argument("--port", type=int, default=8080, help="Port for --web")
    parser.add_argument(
        "--log-level", default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set the logging verbosity (default: INFO)",
    )
    parser.add_argument(
        "--version", action="version",
        version=f"PIR Display {__version__}",
    )
    return parser.parse_args(argv)


def setup_logging(level_name: str) -> None:
    """Configure root logger with a consistent format."""
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-7s  %(name)s  %(message)s",
        datefmt="%H:%M:%S",
    )


def start_web(controller, loop, bus, host, port):
    """Run the Flask host API on a daemon thread."""
    from web_app import create_app
    app = create_app(controller, loop, bus)
    thread = threading.Thread(
        target=app.run,
        kwargs={"host": host, "port": port, "threaded": True, "debug": False,
                "use_reloader": False},
        daemon=True,
        name="web",
    )
    thread.start()
    return thread


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.log_level)

    logger = logging.getLogger(__name__)
    logger.info("PIR Display v%s starting", __version__)

    config = None
    if args.wait_config:
        args.web = True
    else:
        try:
            config = parse_config(load_config(args.config))
        except ConfigError as exc:
            logger.error("Invalid configuration: %s", exc)
            sys.exit(1)

    loop = MainLoop()
    bus = EventBus()
    controller = PirController(loop, bus, force_simulator=args.simulate)

    def on_sigterm(_signum, _frame):
        logger.info("Received SIGTERM, shutting down")
        loop.stop()

    signal.signal(signal.SIGTERM, on_sigterm)

    try:
        if config is not None:
            controller.configure(config)
        else:
            logger.info("Waiting for configuration on POST /api/config")
        if args.web:
            start_web(controller, loop, bus, args.host, args.port)
            logger.info("Host API at http://%s:%d", args.host, args.port)
        loop.run()
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        controller.shutdown()
        logger.info("Shutdown complete")


if __name__ == "__main__":
    main()
