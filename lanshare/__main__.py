"""Run the LAN Share server: ``python -m lanshare``."""
from __future__ import annotations

import argparse
import logging

import uvicorn

from lanshare.app import create_app
from lanshare.config.runtime_config import load_settings


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Share files and notes over the local network")
    parser.add_argument("--host", help="Interface to bind (HOST, default 0.0.0.0)")
    parser.add_argument("--port", type=int, help="Port to listen on (PORT, default 3000)")
    parser.add_argument("--data-dir", help="Storage root (SHARE_DATA_DIR)")
    parser.add_argument("--retention-hours", type=float, help="Share lifetime (SHARE_RETENTION_HOURS)")
    parser.add_argument("--log-level", help="Log level (LOG_LEVEL, default INFO)")
    args = parser.parse_args(argv)

    settings = load_settings(
        host=args.host,
        port=args.port,
        data_dir=args.data_dir,
        retention_hours=args.retention_hours,
        log_level=args.log_level.upper() if args.log_level else None,
    )
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger(__name__).info(f"LAN Share on http://{settings.host}:{settings.port} (data: {settings.data_dir})")
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
