#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Goalpost dev/prod launcher.

  python3 run.py --env development
  python3 run.py --env production --host 0.0.0.0 --port 8000 --no-debug
  python3 -m flask --app "goalpost:create_app()" goals seed-demo
"""

from __future__ import annotations

import argparse
import logging
import os
import socket

from dotenv import load_dotenv

ENV_ALIASES = {"dev": "development", "prod": "production", "test": "testing"}


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Run the Goalpost Flask app.")
    p.add_argument("--env", choices=["development", "testing", "production", "dev", "prod", "test"], default=None)
    p.add_argument("--config", help="Explicit dotted config path (e.g. goalpost.config.ProductionConfig)")
    p.add_argument("--host", default=os.getenv("HOST", "127.0.0.1"))
    p.add_argument("--port", type=int, default=int(os.getenv("PORT", "5000")))
    p.add_argument("--debug", action=argparse.BooleanOptionalAction, default=None, help="Force debug on/off (default: on in development).")
    p.add_argument("--no-reload", action="store_true", help="Disable the Werkzeug reloader.")
    p.add_argument("--force", dest="force_run", action="store_true", help="Start even if the port looks busy.")
    return p.parse_args()


def _port_in_use(host: str, port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.settimeout(0.25)
        return s.connect_ex(("127.0.0.1" if host in {"0.0.0.0", ""} else host, port)) == 0


def main() -> None:
    load_dotenv(override=False)
    args = parse_args()

    env = ENV_ALIASES.get(args.env or "", args.env) or (os.getenv("APP_ENV") or os.getenv("ENV") or "development")
    os.environ["APP_ENV"] = env
    os.environ["ENV"] = env

    debug = args.debug if args.debug is not None else env == "development"
    use_reloader = debug and not args.no_reload

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    is_reloader_main = (not use_reloader) or (os.environ.get("WERKZEUG_RUN_MAIN") == "true")
    if is_reloader_main and not args.force_run and _port_in_use(args.host, args.port):
        logging.error("Port %s already in use (host=%s). Stop the other process or use --force.", args.port, args.host)
        raise SystemExit(2)

    from goalpost import create_app
    from goalpost.extensions import socketio

    flask_app = create_app(args.config)
    if is_reloader_main:
        logging.info("🚀 Goalpost %s on http://%s:%s (debug=%s)", env, args.host, args.port, debug)
        logging.info("Socket.IO async mode: %s", socketio.async_mode)

    socketio.run(
        flask_app,
        host=args.host,
        port=args.port,
        debug=debug,
        use_reloader=use_reloader,
        allow_unsafe_werkzeug=debug,
    )


if __name__ == "__main__":
    main()
