# telemetry_relay/cli.py
"""
Small CLI helper: parse args and build the effective config.
"""
from argparse import ArgumentParser, ArgumentTypeError, Namespace
from typing import List, Optional
import os

from config.config import Config, load_config


def existing_file(p: str) -> str:
    if not os.path.exists(p):
        raise ArgumentTypeError(f"Config file not found: {p}")
    return p


def port_number(p: str) -> int:
    try:
        value = int(p)
    except ValueError:
        raise ArgumentTypeError(f"Invalid port: {p}")
    if not 0 < value < 65536:
        raise ArgumentTypeError(f"Port out of range: {p}")
    return value


def build_parser() -> ArgumentParser:
    p = ArgumentParser(prog="telemetry-relay", description="Real-time telemetry relay for Mission Control dashboards")
    p.add_argument(
        "--config",
        "-c",
        type=existing_file,
        default=None,
        help="Path to .env file (optional). Values in it override the process environment",
    )
    p.add_argument("--host", default=None, help="Address to bind (default from HOST, else 0.0.0.0)")
    p.add_argument("--port", "-p", type=port_number, default=None, help="Port to listen on (default from PORT, else 8080)")
    p.add_argument(
        "--log-level",
        default=None,
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    p.add_argument(
        "--dashboard",
        default=None,
        help="Path to the dashboard HTML document served at /",
    )
    return p


def parse_args(args: Optional[List[str]] = None) -> Namespace:
    return build_parser().parse_args(args=args)


def build_config(ns: Namespace) -> Config:
    """Config from env (and --config file), with explicit CLI flags taking precedence."""
    cfg = load_config(ns.config)
    if ns.host:
        cfg.HOST = ns.host
    if ns.port:
        cfg.PORT = ns.port
    if ns.log_level:
        cfg.LOG_LEVEL = ns.log_level.upper()
    if ns.dashboard:
        cfg.DASHBOARD_HTML = ns.dashboard
    return cfg
