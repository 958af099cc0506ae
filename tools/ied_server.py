#!/usr/bin/env python3
# tools/ied_server.py
"""
IEC 61850 IED server with generic control handlers and a stdin bridge.

Serves the device model from config/model.yml (created on first run),
installs check/operate handlers on every controllable data object and
applies "PATH=VALUE" lines read from stdin to the model.

stdout carries only the diagnostic line protocol; logs go to stderr.

Usage:
  python tools/ied_server.py
  python tools/ied_server.py 10102
  python tools/ied_server.py --config-dir /etc/iedbridge --log-dir logs
  echo "Device/LLN0.Mod.stVal=true" | python tools/ied_server.py

Exit codes:
  0  normal shutdown (SIGINT/SIGTERM)
  1  model, server or registration failure
  2  the server could not listen on its port
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import yaml  # noqa: E402

from config.config_loader import ConfigLoader  # noqa: E402
from iedbridge.control.registry import RegistrationError  # noqa: E402
from iedbridge.diagnostics import DiagnosticChannel  # noqa: E402
from iedbridge.model.loader import load_model  # noqa: E402
from iedbridge.runtime import RuntimeContext  # noqa: E402
from iedbridge.security.logging_system import (  # noqa: E402
    configure_logging,
    get_logger,
)

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_CREATE_FAILED = 1
EXIT_START_FAILED = 2


def create_parser():
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        description="IEC 61850 IED server with stdin control bridge",
        epilog="""
Bridge input (stdin), one command per line:
  Device/LLN0.Mod.stVal=true     set a boolean status value
  Device/MMXU1.TotW.mag=12.5     set a float value
  Device/XCBR1.Pos=2             short form for Device/XCBR1.Pos.stVal
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "port",
        nargs="?",
        type=int,
        default=None,
        help="TCP port to listen on (default: server.port from config, 8102)",
    )
    parser.add_argument(
        "--config-dir",
        default="config",
        help="Directory containing server.yml and model.yml (default: config)",
    )
    parser.add_argument(
        "--model",
        default=None,
        help="Model file to serve instead of the configured model_file",
    )
    parser.add_argument(
        "--log-dir",
        default=None,
        help="Directory for JSON log files (default: logging.log_dir from config)",
    )
    return parser


def load_runtime(
    args, stdin=None, diagnostics: DiagnosticChannel | None = None
) -> RuntimeContext:
    """
    Load configuration and model and create the runtime.

    Raises:
        ValueError: Invalid configuration or model document
        OSError: Model or configuration file could not be read
        yaml.YAMLError: Malformed YAML
    """
    loader = ConfigLoader(config_dir=args.config_dir)
    config = loader.load_all()

    log_dir = args.log_dir or config["logging"]["log_dir"]
    configure_logging(log_dir=log_dir, enable_json=config["logging"]["json"])

    if args.model:
        model_path = Path(args.model)
    else:
        model_path = loader.ensure_model(config)

    model = load_model(model_path, ied_name=config["server"]["ied_name"])
    logger.info(f"Loaded model {model.name!r} from {model_path}")

    return RuntimeContext.from_config(
        model,
        config,
        port=args.port,
        source=sys.stdin if stdin is None else stdin,
        diagnostics=diagnostics,
    )


async def main(argv=None, stdin=None, diagnostics=None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        runtime = load_runtime(args, stdin=stdin, diagnostics=diagnostics)
    except (ValueError, OSError, yaml.YAMLError) as e:
        logger.error(f"Cannot create server: {e}")
        print("Failed to create IEC 61850 server", file=sys.stderr)
        return EXIT_CREATE_FAILED

    try:
        runtime.initialise()
    except RegistrationError as e:
        logger.error(str(e))
        print(f"Failed to register control handlers: {e}", file=sys.stderr)
        return EXIT_CREATE_FAILED

    if not await runtime.start():
        print(
            f"Failed to start IEC 61850 server on port {runtime.server.port}",
            file=sys.stderr,
        )
        runtime.registry.release()
        return EXIT_START_FAILED

    try:
        runtime.install_signal_handlers()
        logger.info("Server running. Press Ctrl+C to stop.")
        await runtime.wait_for_shutdown()
    finally:
        await runtime.stop()

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
