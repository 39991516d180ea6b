from concurrent.futures import ThreadPoolExecutor

import pytest

from gpthome.llm import LLMService, ModelNotLoadedError
from gpthome.models import Context


@pytest.fixture
def service():
    svc = LLMService("/path/to/model.bin", "tinyllama")
    svc.load_model()
    return svc


@pytest.fixture
def context():
    return Context()


def test_new_service():
    svc = LLMService("/path/to/model.bin", "tinyllama")
    assert svc.model_path == "/path/to/model.bin"
    assert svc.model_type == "tinyllama"
    assert svc.is_loaded() is False
    info = svc.get_model_info()
    assert info.name == "tinyllama-chat"
    assert info.type == "tinyllama"
    assert info.version == "1.0.0"
    assert info.loaded is False


def test_load_model():
    svc = LLMService("/path/to/model.bin", "tinyllama")
    assert svc.is_loaded() is False
    svc.load_model()
    assert svc.is_loaded() is True
    info = svc.get_model_info()
    assert info.loaded is True
    assert info.name == "tinyllama-chat"
    assert info.type == "tinyllama"


def test_get_model_info():
    svc = LLMService("/custom/model/phi2.bin", "phi2")
    info = svc.get_model_info()
    assert info.name == "phi2-chat"
    assert info.type == "phi2"
    assert info.version == "1.0.0"
    assert info.loaded is False
    svc.load_model()
    assert svc.get_model_info().loaded is True


def test_model_info_is_a_snapshot():
    svc = LLMService("/path/to/model.bin", "tinyllama")
    info = svc.get_model_info()
    info.loaded = True
    assert svc.get_model_info().loaded is False


def test_model_info_to_dict():
    svc = LLMService("/path/to/model.bin", "tinyllama")
    assert svc.get_model_info().to_dict() == {
        "name": "tinyllama-chat",
        "type": "tinyllama",
        "version": "1.0.0",
        "loaded": False,
    }


def test_process_message_without_loaded_model(context):
    svc = LLMService("/path/to/model.bin", "tinyllama")
    with pytest.raises(ModelNotLoadedError, match="model not loaded"):
        svc.process_message("turn on the lights", context)


@pytest.mark.parametrize(
    "message, expected_action, expected_in_response",
    [
        ("turn on the lights", "turn_on", "turn on the lights"),
        ("turn off the lights", "turn_off", "turn off the lights"),
        ("dim the lights", "set_brightness", "dim the lights"),
    ],
)
def test_light_commands(service, context, message, expected_action, expected_in_response):
    response, actions = service.process_message(message, context)
    assert expected_in_response in response
    assert len(actions) == 1
    assert actions[0].action == expected_action
    if expected_action == "set_brightness":
        assert actions[0].parameters["brightness"] == 128


@pytest.mark.parametrize(
    "message, expected_action",
    [
        ("set the temperature to 24 degrees", "set_temperature"),
        ("set the thermostat", "set_temperature"),
        ("what's the temperature?", None),
    ],
)
def test_temperature_commands(service, context, message, expected_action):
    response, actions = service.process_message(message, context)
    assert response
    if expected_action is None:
        assert actions == []
    else:
        assert len(actions) == 1
        assert actions[0].action == expected_action
        assert actions[0].parameters["temperature"] == 22


@pytest.mark.parametrize(
    "message",
    ["what's the status?", "show me device status", "what devices are available?"],
)
def test_status_queries(service, context, message):
    response, actions = service.process_message(message, context)
    assert response
    assert actions == []
    assert "smart home" in response


def test_default_response(service, context):
    response, actions = service.process_message("make me a sandwich", context)
    assert actions == []
    assert "smart home" in response
    assert "not sure" in response


@pytest.mark.parametrize(
    "message, expected_action",
    [
        ("TURN ON THE LIGHT", "turn_on"),
        ("  turn on the lights  ", "turn_on"),
        ("Turn Off The Lights", "turn_off"),
        ("DIM THE LIGHT", "set_brightness"),
    ],
)
def test_command_variations(service, context, message, expected_action):
    response, actions = service.process_message(message, context)
    assert response
    assert len(actions) == 1
    assert actions[0].action == expected_action


def test_unload_model():
    svc = LLMService("/path/to/model.bin", "tinyllama")
    svc.load_model()
    assert svc.is_loaded() is True
    svc.unload_model()
    assert svc.is_loaded() is False
    assert svc.get_model_info().loaded is False


def test_unloaded_model_rejects_messages(service, context):
    service.unload_model()
    with pytest.raises(ModelNotLoadedError):
        service.process_message("turn on the lights", context)


def test_concurrent_processing(service, context):
    messages = [
        "turn on the lights",
        "turn off the lights",
        "dim the lights",
        "set temperature to 22",
        "what's the status?",
    ]
    with ThreadPoolExecutor(max_workers=5) as pool:
        results = list(pool.map(lambda m: service.process_message(m, context), messages))
    assert len(results) == 5
    assert all(response for response, _ in results)
    assert [len(actions) for _, actions in results] == [1, 1, 1, 1, 0]


@pytest.mark.parametrize(
    "model_path, model_type",
    [
        ("/models/tinyllama.bin", "tinyllama"),
        ("/models/phi2.bin", "phi2"),
        ("/custom/path/model.bin", "custom"),
    ],
)
def test_service_configuration(model_path, model_type):
    svc = LLMService(model_path, model_type)
    assert svc.model_path == model_path
    assert svc.model_type == model_type
    info = svc.get_model_info()
    assert info.name == model_type + "-chat"
    assert info.type == model_type