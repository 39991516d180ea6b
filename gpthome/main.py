"""Entry point: configure logging, wire up the services and serve HTTP."""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
import threading
from datetime import datetime, timezone
from pathlib import Path
from socketserver import ThreadingMixIn
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

from flask import Flask, render_template, request

from gpthome.api import create_api
from gpthome.config import Config, load
from gpthome.conversation import ConversationManager
from gpthome.devices import DeviceManager
from gpthome.homeassistant import HomeAssistantClient
from gpthome.llm import LLMService

logger = logging.getLogger("gpthome")
_access_logger = logging.getLogger("gpthome.access")

SHUTDOWN_TIMEOUT_SECONDS = 10.0

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


class _JSONFormatter(logging.Formatter):
    """One JSON object per line with level, msg and time keys."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "level": record.levelname.lower(),
            "msg": record.getMessage(),
            "time": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
        }
        if record.exc_info:
            entry["error"] = self.formatException(record.exc_info)
        return json.dumps(entry)


class _JSONHandler(logging.StreamHandler):
    """Stream handler installed by :func:`setup_logging`."""


def setup_logging(level: str) -> None:
    """Send JSON log lines to stderr at the named level; unknown names mean info."""
    root = logging.getLogger()
    for handler in [h for h in root.handlers if isinstance(h, _JSONHandler)]:
        root.removeHandler(handler)
    handler = _JSONHandler(sys.stderr)
    handler.setFormatter(_JSONFormatter())
    root.addHandler(handler)
    root.setLevel(_LEVELS.get(level, logging.INFO))


def build_app(
    config: Config,
    device_manager: DeviceManager,
    llm_service: LLMService,
    conversation_manager: ConversationManager,
) -> Flask:
    """Create the web application with the API, static files and the index page."""
    web_root = Path.cwd() / "web"
    app = Flask(
        __name__,
        static_folder=str(web_root / "static"),
        static_url_path="/static",
        template_folder=str(web_root / "templates"),
    )
    app.config["SERVER_MODE"] = config.server.mode
    app.register_blueprint(create_api(device_manager, llm_service, conversation_manager))

    @app.get("/")
    def index():
        return render_template("index.html", title="GPT-Home")

    @app.after_request
    def log_request(response):
        _access_logger.info("%s %s %d", request.method, request.path, response.status_code)
        return response

    return app


class _ThreadingServer(ThreadingMixIn, WSGIServer):
    daemon_threads = True


def _handler_class(timeout: float) -> type[WSGIRequestHandler]:
    class _Handler(WSGIRequestHandler):
        def log_message(self, format: str, *args: object) -> None:
            pass

    _Handler.timeout = timeout
    return _Handler


def main(argv: list[str] | None = None) -> int:
    """Run the server until SIGINT or SIGTERM; return the exit status."""
    parser = argparse.ArgumentParser(
        prog="gpt-home", description="Chat assistant for a Home Assistant installation."
    )
    parser.parse_args(argv)

    config = load()
    setup_logging(config.log_level)
    logger.info("Starting GPT-Home...")

    ha_client = HomeAssistantClient(config.home_assistant.url, config.home_assistant.token)
    try:
        device_manager = DeviceManager(ha_client)
        llm_service = LLMService(config.llm.model_path, config.llm.model_type)
        conversation_manager = ConversationManager()
        llm_service.load_model()

        app = build_app(config, device_manager, llm_service, conversation_manager)
        timeout = max(
            config.server.read_timeout.total_seconds(),
            config.server.write_timeout.total_seconds(),
        )
        try:
            server = make_server(
                "",
                config.server.port,
                app,
                server_class=_ThreadingServer,
                handler_class=_handler_class(timeout),
            )
        except OSError as exc:
            logger.error("Server failed to start: %s", exc)
            return 1

        stop = threading.Event()

        def request_stop(signum, frame) -> None:
            stop.set()

        previous = {
            sig: signal.signal(sig, request_stop) for sig in (signal.SIGINT, signal.SIGTERM)
        }
        worker = threading.Thread(target=server.serve_forever, name="http-server", daemon=True)
        try:
            logger.info("Server starting on port %d", config.server.port)
            worker.start()
            stop.wait()
            logger.info("Shutting down server...")
            server.shutdown()
            worker.join(SHUTDOWN_TIMEOUT_SECONDS)
            if worker.is_alive():
                logger.error("Server forced to shutdown: timed out")
                return 1
        finally:
            server.server_close()
            for sig, handler in previous.items():
                signal.signal(sig, handler)

        logger.info("Server exited")
        return 0
    finally:
        ha_client.close()


if __name__ == "__main__":
    sys.exit(main())