# gpthome

gpthome is a small HTTP service for chatting with your smart home. It
understands simple requests such as "turn on the lights" or "set the
temperature", and it reads and controls devices through the Home Assistant
REST API.

## Installation

```
pip install .
```

To install the test tools as well:

```
pip install ".[test]"
```

## Configuration

Settings come from environment variables. A `.env` file in the working
directory is read if one is present. Any variable that is not set, or that
holds a value that cannot be parsed, keeps its default.

| Variable               | Default                                  |
|------------------------|------------------------------------------|
| `SERVER_PORT`          | `8080`                                   |
| `SERVER_HOST`          | `0.0.0.0`                                |
| `SERVER_MODE`          | `debug` (`release` turns off debug mode) |
| `SERVER_READ_TIMEOUT`  | `10` (seconds)                           |
| `SERVER_WRITE_TIMEOUT` | `10` (seconds)                           |
| `HA_URL`               | `http://homeassistant.local:8123`        |
| `HA_TOKEN`             | empty                                    |
| `HA_TIMEOUT`           | `30`                                     |
| `LLM_MODEL_PATH`       | `./models/tinyllama-1.1b-chat-q4_0.bin`  |
| `LLM_MODEL_TYPE`       | `tinyllama`                              |
| `LLM_MAX_TOKENS`       | `512`                                    |
| `LLM_TEMPERATURE`      | `0.7`                                    |
| `LLM_TOP_P`            | `0.9`                                    |
| `LLM_TOP_K`            | `40`                                     |
| `LLM_CONTEXT_LENGTH`   | `2048`                                   |
| `STORAGE_TYPE`         | `memory`                                 |
| `STORAGE_PATH`         | `./data`                                 |
| `STORAGE_IN_MEMORY`    | `true`                                   |
| `LOG_LEVEL`            | `info` (`debug`, `info`, `warn`, `error`) |

An example `.env`:

```
HA_URL=http://localhost:8123
HA_TOKEN=token
SERVER_PORT=8080
LOG_LEVEL=debug
```

## Running

```
gpthome
```

The server stops cleanly on SIGINT or SIGTERM.

## HTTP API

All API routes are under `/api/v1`:

| Method   | Path                       | Purpose                                       |
|----------|----------------------------|-----------------------------------------------|
| `POST`   | `/chat`                    | Send a message; returns the reply and actions |
| `GET`    | `/devices`                 | List all known devices                        |
| `GET`    | `/devices/<id>`            | Get one device                                |
| `POST`   | `/devices/<id>/action`     | Run an action on a device                     |
| `GET`    | `/conversations/<id>`      | Get a conversation                            |
| `DELETE` | `/conversations/<id>`      | Delete a conversation                         |
| `GET`    | `/health`                  | Service health and uptime                     |

To chat, send:

```
{"message": "turn on the lights"}
```

Pass the `conversation_id` from the reply to continue the same conversation.

To control a device, send a JSON action to `/devices/light.living_room/action`:

```
{"action": "set_brightness", "parameters": {"brightness": 128}}
```

Supported actions by device type:

- light: `turn_on`, `turn_off`, `toggle`, `set_brightness`, `set_color`
- switch: `turn_on`, `turn_off`, `toggle`
- climate: `set_temperature`, `set_hvac_mode`
- cover: `open`, `close`, `stop`, `set_position`
- fan: `turn_on`, `turn_off`, `toggle`, `set_speed`
- media player: `play`, `pause`, `stop`, `volume_set`

## Using it as a library

```python
from gpthome.homeassistant import HomeAssistantClient
from gpthome.devices import DeviceManager
from gpthome.llm import LLMService
from gpthome.conversation import ConversationManager
from gpthome.api import create_api

client = HomeAssistantClient("http://localhost:8123", "token")
devices = DeviceManager(client)
llm = LLMService("./models/model.bin", "tinyllama")
llm.load_model()
app = create_api(devices, llm, ConversationManager())
```

## Tests

```
pytest
```