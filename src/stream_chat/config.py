import os
from typing import NamedTuple

from .chunker import DEFAULT_FADE


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes")


class Settings(NamedTuple):
    """Runtime settings, read from the environment (and a .env file)."""

    ollama_host: str = "http://localhost:11434"
    model: str = "llama3.1"
    api_key: str = "ollama"
    timeout: float = 60.0
    fade: float = DEFAULT_FADE
    stream: bool = True
    forward_logs: bool = False
    open_browser: bool = True

    @property
    def base_url(self) -> str:
        """OpenAI-compatible endpoint exposed by the Ollama server."""
        host = self.ollama_host.rstrip("/")
        if "://" not in host:
            host = f"http://{host}"
        return host + "/v1"

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            ollama_host=os.getenv("OLLAMA_HOST", defaults.ollama_host),
            model=os.getenv("STREAM_CHAT_MODEL", defaults.model),
            api_key=os.getenv("OLLAMA_API_KEY", defaults.api_key),
            timeout=float(os.getenv("STREAM_CHAT_TIMEOUT", defaults.timeout)),
            fade=float(os.getenv("STREAM_CHAT_FADE", defaults.fade)),
            stream=not _env_flag("STREAM_CHAT_NO_STREAM"),
            forward_logs=_env_flag("STREAM_CHAT_FORWARD_LOGS"),
            open_browser=not _env_flag("STREAM_CHAT_NO_BROWSER"),
        )
