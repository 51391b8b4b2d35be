"""
Main runner for telemetry-relay.

- builds config from env / .env / CLI flags
- configures logging
- serves the ingest endpoint and observer push channel with uvicorn
"""

import logging
import sys
from typing import List, Optional

import uvicorn

from telemetry_relay.api import create_app
from telemetry_relay.cli import build_config, parse_args
from telemetry_relay.logging_setup import setup_logging

log = logging.getLogger("telemetry_relay.main")


def main(argv: Optional[List[str]] = None):
    ns = parse_args(argv)
    cfg = build_config(ns)
    setup_logging("telemetry_relay", level=cfg.LOG_LEVEL, log_dir=cfg.LOG_DIR)

    app = create_app(settings=cfg)
    log.info("Listening on %s:%d", cfg.HOST, cfg.PORT)
    try:
        uvicorn.run(app, host=cfg.HOST, port=cfg.PORT, log_level=cfg.LOG_LEVEL.lower())
    except KeyboardInterrupt:
        log.info("KeyboardInterrupt - exiting")
    except Exception:
        log.exception("Unexpected error in main")
        sys.exit(1)


if __name__ == "__main__":
    main()
