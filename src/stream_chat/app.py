import json
import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import FileResponse

from .client import OpenAICompatibleBackend
from .config import Settings
from .errors import BusyError
from .plugins.ui_plugin import UILogHandler, UIPlugin
from .session import ChatSession

load_dotenv()

app = FastAPI()
app.state.settings = Settings.from_env()
app.state.backend = None

# Get the templates directory (in the same package)
TEMPLATES_DIR = Path(__file__).parent / "templates"

package_logger = logging.getLogger("stream_chat")


def get_backend():
    """Return the shared backend, creating it from the settings on first use."""
    if app.state.backend is None:
        app.state.backend = OpenAICompatibleBackend.from_settings(app.state.settings)
    return app.state.backend


def create_session(ui_plugin: UIPlugin) -> ChatSession:
    settings = app.state.settings
    return ChatSession(
        get_backend(),
        presenter=ui_plugin,
        model=settings.model,
        fade=settings.fade,
        stream=settings.stream,
    )


async def process_websocket_message(message_data: dict, session: ChatSession):
    """Route one client message. Returns a new submission task, if one was started."""
    message_type = message_data.get("type")
    if message_type == "submit":
        content = message_data.get("content", "").strip()
        if not content:
            return None
        try:
            # Rejected here so the running task is not replaced.
            await session.check_idle()
        except BusyError:
            return None
        return session.start_submission(content)
    elif message_type == "cancel":
        await session.cancel()
    else:
        logging.getLogger(__name__).warning(
            f"SYSTEM: Unknown message type: {message_type!r}"
        )
    return None


async def handle_websocket_session(websocket: WebSocket):
    """Helper function to handle a websocket session."""
    ui_plugin = UIPlugin()
    await ui_plugin.set_websocket(websocket)
    session = create_session(ui_plugin)

    log_handler = None
    if app.state.settings.forward_logs:
        log_handler = UILogHandler(ui_plugin, session_id=session.session_id)
        package_logger.addHandler(log_handler)

    await ui_plugin.send_transcript(session.transcript)

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message_data = json.loads(data)
            except json.JSONDecodeError:
                logging.getLogger(__name__).warning("SYSTEM: Ignoring malformed message")
                continue
            await process_websocket_message(message_data, session)
    except WebSocketDisconnect:
        logging.getLogger(__name__).info("SYSTEM: Client disconnected")
    except Exception as e:
        logging.getLogger(__name__).error(f"ERROR: WebSocket error: {e}")
    finally:
        ui_plugin.websocket = None
        await session.cancel()
        if log_handler is not None:
            package_logger.removeHandler(log_handler)


@app.get("/")
async def get():
    return FileResponse(str(TEMPLATES_DIR / "index.html"))


@app.get("/api/config")
async def get_config():
    settings = app.state.settings
    return {"model": settings.model, "fade": settings.fade}


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await websocket.accept()
    await handle_websocket_session(websocket)
