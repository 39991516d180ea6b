import json
import logging
import socket

import pytest

from gpthome.config import load
from gpthome.conversation import ConversationManager
from gpthome.devices import DeviceManager
from gpthome.homeassistant import EntityNotFoundError, HomeAssistantError
from gpthome.llm import LLMService
from gpthome.main import build_app, main, setup_logging
from gpthome.models import Device, DeviceType


class FakeBackend:
    def __init__(self, devices=(), connected=True):
        self.devices = {d.id: d for d in devices}
        self.connected = connected
        self.calls = []

    def get_entities(self):
        return list(self.devices.values())

    def get_entity(self, entity_id):
        try:
            return self.devices[entity_id]
        except KeyError:
            raise EntityNotFoundError(entity_id) from None

    def call_service(self, domain, service, entity_id, service_data):
        self.calls.append((domain, service, entity_id, service_data))

    def _check_connection(self):
        if not self.connected:
            raise HomeAssistantError("connection error")

    test_connection = _check_connection


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    templates = tmp_path / "web" / "templates"
    templates.mkdir(parents=True)
    (templates / "index.html").write_text("<title>{{ title }}</title>")
    static = tmp_path / "web" / "static"
    static.mkdir(parents=True)
    (static / "app.js").write_text("console.log('hi');")
    return tmp_path


def make_app(backend=None, loaded=True):
    backend = backend or FakeBackend(
        [Device(id="light.living_room", name="Living Room Light", type=DeviceType.LIGHT)]
    )
    llm = LLMService("/path/to/model.bin", "tinyllama")
    if loaded:
        llm.load_model()
    conversations = ConversationManager()
    app = build_app(load(), DeviceManager(backend), llm, conversations)
    return app, conversations


def _logged_messages(capsys):
    messages = []
    for line in capsys.readouterr().err.splitlines():
        line = line.strip()
        if line.startswith("{"):
            messages.append(json.loads(line)["msg"])
    return messages


@pytest.mark.parametrize(
    "name, expected",
    [
        ("debug", logging.DEBUG),
        ("info", logging.INFO),
        ("warn", logging.WARNING),
        ("error", logging.ERROR),
        ("bogus", logging.INFO),
    ],
)
def test_setup_logging_levels(name, expected, capsys):
    setup_logging(name)
    logger = logging.getLogger("gpthome.check")
    logger.log(expected, "at-level")
    logger.log(expected - 5, "below-level")
    messages = _logged_messages(capsys)
    assert "at-level" in messages
    assert "below-level" not in messages


def test_setup_logging_emits_json(capsys):
    setup_logging("info")
    logging.getLogger("gpthome.check").info("Starting GPT-Home...")
    lines = capsys.readouterr().err.strip().splitlines()
    record = json.loads(lines[-1])
    assert record["msg"] == "Starting GPT-Home..."
    assert record["level"] == "info"
    assert "time" in record


def test_setup_logging_does_not_stack_handlers(capsys):
    setup_logging("info")
    setup_logging("debug")
    logging.getLogger("gpthome.check").debug("once")
    lines = [ln for ln in capsys.readouterr().err.splitlines() if '"once"' in ln]
    assert len(lines) == 1


def test_index_renders_title(workdir):
    app, _ = make_app()
    response = app.test_client().get("/")
    assert response.status_code == 200
    assert b"<title>GPT-Home</title>" in response.data


def test_static_files_served(workdir):
    app, _ = make_app()
    response = app.test_client().get("/static/app.js")
    assert response.status_code == 200
    assert response.data == b"console.log('hi');"


def test_health_route(workdir):
    app, _ = make_app(backend=FakeBackend(connected=False), loaded=True)
    body = app.test_client().get("/api/v1/health").get_json()
    assert body["status"] == "healthy"
    assert body["services"]["llm"]["status"] == "healthy"
    assert body["services"]["home_assistant"]["status"] == "error"


def test_chat_route_creates_conversation(workdir):
    app, conversations = make_app()
    response = app.test_client().post("/api/v1/chat", json={"message": "turn on the lights"})
    assert response.status_code == 200
    body = response.get_json()
    assert body["response"] == "I'll turn on the lights for you."
    assert body["actions_performed"] == [{"action": "turn_on"}]
    (conv,) = conversations.get_all_conversations()
    assert str(conv.id) == body["conversation_id"]
    assert len(conv.messages) == 2


def test_devices_route_lists_backend_devices(workdir):
    app, _ = make_app()
    body = app.test_client().get("/api/v1/devices").get_json()
    assert [d["id"] for d in body["devices"]] == ["light.living_room"]


def test_server_mode_recorded(workdir, monkeypatch):
    monkeypatch.setenv("SERVER_MODE", "release")
    app, _ = make_app()
    assert app.config["SERVER_MODE"] == "release"


def test_main_fails_when_port_taken(workdir, monkeypatch):
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
        blocker.bind(("", 0))
        blocker.listen()
        port = blocker.getsockname()[1]
        monkeypatch.setenv("SERVER_PORT", str(port))
        assert main([]) == 1


def test_main_help_exits_cleanly(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--help"])
    assert excinfo.value.code == 0
    assert "gpt-home" in capsys.readouterr().out