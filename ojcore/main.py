"""
Main entry point for ojcore.

This module provides the command-line interface that starts the judge API
server.
"""

import argparse
import sys

from .server.server import run_api
from .utils.config_manager import get_config
from .utils.logger_config import get_logger, setup_logging_from_config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='ojcore - online judge submission and ranklist server')

    parser.add_argument('-c', '--config', default='config/ojcore_config.json',
                        help='Path to server configuration file')
    parser.add_argument('--host', help='Host to bind the API server')
    parser.add_argument('--port', type=int, help='Port to bind the API server')
    parser.add_argument('--debug', action='store_true', help='Enable debug mode')

    parser.add_argument('--log-level',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        help='Override log level')
    parser.add_argument('--log-dir', help='Override log directory')

    parser.add_argument('--engine-endpoint', help='Override execution engine endpoint')
    parser.add_argument('--db-path', help='Override database path')
    parser.add_argument('-f', '--flush-data', action='store_true',
                        help='Drop persisted users, contests and jobs before starting')
    return parser


def main(argv=None):
    """Main entry point for the ojcore CLI"""
    args = build_parser().parse_args(argv)

    config = get_config(args.config)

    if args.host:
        config.set("server.host", args.host)
    if args.port:
        config.set("server.port", args.port)
    if args.log_level:
        config.set("logging.level", args.log_level)
    if args.log_dir:
        config.set("logging.directory", args.log_dir)
    if args.engine_endpoint:
        config.set("execution_engine.endpoint", args.engine_endpoint)
    if args.db_path:
        config.set("database.path", args.db_path)
    if args.debug:
        config.set("logging.level", "DEBUG")

    log_file = setup_logging_from_config(config)
    logger = get_logger("main")

    host = config.get("server.host")
    port = config.get("server.port")
    logger.info(f"Starting ojcore API server on {host}:{port}")
    logger.info(f"Configuration loaded from: {config.config_path}")
    if log_file:
        logger.info(f"Writing logs to {log_file}")

    try:
        run_api(host=host, port=port, debug=args.debug, config=config, flush=args.flush_data)
    except KeyboardInterrupt:
        logger.info("Shutting down ojcore API server...")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Error starting API server: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
