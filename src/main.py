"""
Main application for Object Counter.

Serves the REST API used by the camera/UI client, or exports one session
to stdout.

Usage:
    python src/main.py --config config/config.yaml
    python src/main.py --config config/config.yaml --export SESSION_ID --format csv

Arguments:
    --config: Path to configuration file
    --host / --port: Override web.host / web.port
    --export: Print a session export instead of serving
    --format: Export format (csv or json)
"""

import argparse
import logging
import sys

import uvicorn

from models.config import Config
from models.errors import NotFoundError, PersistenceError
from ops.config import load_config, validate_config
from ops.logging import setup_logging
from runtime.context import build_context
from web.app import create_app


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Object Counter')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--host', type=str, default=None,
                        help='Bind address (overrides web.host)')
    parser.add_argument('--port', type=int, default=None,
                        help='Port (overrides web.port)')
    parser.add_argument('--export', type=str, default=None, metavar='SESSION_ID',
                        help='Print a session export and exit')
    parser.add_argument('--format', choices=('csv', 'json'), default='csv',
                        help='Export format')
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Main application function."""
    args = parse_args(argv)

    try:
        raw_config = load_config(args.config)
    except Exception as e:
        logging.error(f"Failed to load configuration: {e}")
        return 1

    is_valid, error_msg = validate_config(raw_config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        return 1

    config = Config.from_dict(raw_config)
    setup_logging(config.log_path, config.log_level)

    try:
        ctx = build_context(config)
    except PersistenceError as e:
        logging.error(f"Could not open storage: {e}")
        return 1

    try:
        if args.export:
            try:
                if args.format == 'json':
                    output = ctx.exporter.export_json(args.export)
                else:
                    output = ctx.exporter.export_csv(args.export)
            except NotFoundError as e:
                logging.error(str(e))
                return 1
            sys.stdout.write(output)
            return 0

        host = args.host or config.web.host
        port = args.port or config.web.port
        logging.info(f"Starting Object Counter API on {host}:{port}")
        uvicorn.run(
            create_app(ctx),
            host=host,
            port=port,
            log_level=config.log_level.lower(),
        )
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
    finally:
        ctx.close()
        logging.info("Object Counter stopped")

    return 0


if __name__ == "__main__":
    sys.exit(main())
