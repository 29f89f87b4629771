#!/usr/bin/env python3
"""
LIGHT NODE SUPERVISOR ENTRY POINT
=================================

Purpose:
- Build the chain specification (genesis + one boot node)
- Start ONE supervised light-client session
- Print every JSON-RPC response to stdout
- Poll system_health and reconnect when the node reports itself stalled

STRICT RULES:
- SINGLE ConnectionSupervisor instance
- Configuration errors abort startup (exit 1)
- Transient connectivity errors never abort (retried / skipped)

PRODUCTION HARDENING:
- Graceful shutdown on SIGINT/SIGTERM
- Fail-fast on startup errors
- Fatal pump errors exit non-zero (systemd restarts the unit)
"""

import sys
import os
import signal
import logging
import argparse
from pathlib import Path
from typing import Optional

import light_node
from light_node.core.config import Config, ConfigValidationError
from light_node.core.chain_spec import build_chain_spec
from light_node.logging.logger_config import setup_application_logging, get_component_logger
from light_node.monitoring.metrics import start_metrics_server
from light_node.output.sink import ConsoleSink
from light_node.session.stdio_engine import StdioSessionEngine
from light_node.supervisor.supervisor import ConnectionSupervisor
from light_node.utils.utils import log_exception

# ---------------------------------------------------------------------
# GLOBALS (FOR SIGNAL HANDLING)
# ---------------------------------------------------------------------
supervisor_instance: Optional[ConnectionSupervisor] = None
logger: Optional[logging.Logger] = None


# ---------------------------------------------------------------------
# GRACEFUL SHUTDOWN HANDLER (SYSTEMD SAFE)
# ---------------------------------------------------------------------
def signal_handler(signum, frame):
    if logger:
        logger.warning(f"🛑 Received shutdown signal: {signum}")

    # Loops observe the stop event; run_forever() returns and main cleans up
    if supervisor_instance:
        supervisor_instance.stop()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="light node bin test")
    parser.add_argument("-g", "--genesis", default=None, help="genesis path")
    parser.add_argument("-b", "--bootnode", default=None, help="bootnode for sync")
    parser.add_argument(
        "--env",
        type=str,
        default=None,
        help="Path to .env file (e.g. config_env/light_node.env)",
    )
    parser.add_argument(
        "--session-command",
        default=None,
        help="Light client command; {spec} is replaced by the chain spec path",
    )
    parser.add_argument("--poll-interval", type=float, default=None, help="seconds between system_health polls")
    parser.add_argument("--reconnect-delay", type=float, default=None, help="seconds between open retries")
    parser.add_argument("--metrics-port", type=int, default=None, help="Prometheus exporter port (0=off)")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ERROR, CRITICAL")
    parser.add_argument("--log-dir", default=None, help="directory for rotating log files")
    parser.add_argument("--version", action="version", version=f"%(prog)s {light_node.__version__}")
    return parser


def load_config(args: argparse.Namespace) -> Config:
    env_path = None
    if args.env:
        env_path = Path(args.env)
        if not env_path.is_absolute():
            env_path = Path.cwd() / env_path

    return Config(
        env_path=env_path,
        GENESIS_PATH=args.genesis,
        BOOT_NODE=args.bootnode,
        SESSION_COMMAND=args.session_command,
        POLL_INTERVAL=args.poll_interval,
        RECONNECT_DELAY=args.reconnect_delay,
        METRICS_PORT=args.metrics_port,
        LOG_LEVEL=args.log_level,
        LOG_DIR=args.log_dir,
    )


# ---------------------------------------------------------------------
# MAIN
# ---------------------------------------------------------------------
def main(argv=None) -> int:
    global supervisor_instance, logger

    args = build_parser().parse_args(argv)

    # -------------------------------------------------
    # CONFIG (FAIL FAST, logging not set up yet)
    # -------------------------------------------------
    try:
        config = load_config(args)
        chain_spec = build_chain_spec(config.genesis_path, config.boot_node)
    except (ConfigValidationError, FileNotFoundError) as exc:
        print(f"CONFIGURATION ERROR: {exc}", file=sys.stderr)
        return 1

    # -------------------------------------------------
    # LOGGING SETUP
    # -------------------------------------------------
    setup_application_logging(log_dir=config.log_dir, level=config.log_level)
    logger = get_component_logger('supervisor')

    logger.info("=" * 70)
    logger.info("🚀 STARTING LIGHT NODE SUPERVISOR v%s", light_node.__version__)
    logger.info("=" * 70)
    logger.info(f"PID: {os.getpid()}")
    logger.info(f"Python: {sys.version}")
    logger.info("genesis from %s", config.genesis_path)
    logger.info("boot_nodes from %s", config.boot_node)
    logger.info("Configuration: %s", config.get_config_summary())

    engine = StdioSessionEngine(
        config.get_session_argv(),
        startup_grace=config.session_startup_grace,
    )

    try:
        start_metrics_server(config.metrics_port)

        supervisor_instance = ConnectionSupervisor(
            engine,
            chain_spec,
            sinks=[ConsoleSink()],
            **config.get_supervisor_config(),
        )

        # -------------------------------------------------
        # SIGNAL HANDLERS (MUST BE IN MAIN THREAD)
        # -------------------------------------------------
        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)
        logger.info("Signal handlers installed")

        # Blocks: health poll loop runs in this thread
        supervisor_instance.run_forever()
        return 0

    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
        if supervisor_instance:
            supervisor_instance.shutdown()
        return 0

    except Exception as exc:
        log_exception("light_node.main", exc)
        logger.critical(f"FATAL ERROR: {exc}", exc_info=True)
        return 1

    finally:
        engine.close_all()
        logger.info("🏁 Light node supervisor stopped")


# ---------------------------------------------------------------------
# ENTRY POINT
# ---------------------------------------------------------------------
if __name__ == "__main__":
    sys.exit(main())
