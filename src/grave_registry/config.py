import os
from dataclasses import dataclass
from typing import Dict, Optional

from dotenv import dotenv_values

from .logging import get_logger
from .paths import default_db_path, expand_abs

log = get_logger("config")

DEFAULT_TRANSCRIBE_MODEL = "gpt-4o-mini"
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_PROBE_URL = "https://www.google.com/generate_204"


def _find_upwards(start_dir: str, filename: str) -> Optional[str]:
    """Return first matching file found when walking up from start_dir.

    Running the CLI from a subdirectory still picks up the project's `.env`.
    """
    d = os.path.abspath(start_dir or ".")
    while True:
        candidate = os.path.join(d, filename)
        if os.path.isfile(candidate):
            return candidate
        parent = os.path.dirname(d)
        if parent == d:
            return None
        d = parent


def _read_dotenv(dotenv_dir: str) -> Dict[str, str]:
    """Return the key/value pairs of the nearest `.env` (does not touch os.environ)."""
    path = _find_upwards(dotenv_dir, ".env")
    if not path:
        log.debug(f"No .env found starting from: {os.path.abspath(dotenv_dir)}")
        return {}
    try:
        values = dotenv_values(path)
    except (OSError, UnicodeDecodeError) as e:
        log.warning(f"Failed reading .env: {e}")
        return {}
    env = {k: v.strip() for k, v in values.items() if v is not None}
    log.debug(f"Loaded {len(env)} key(s) from .env at {path}")
    return env


def _lookup(env: Dict[str, str], *names: str) -> Optional[str]:
    for name in names:
        v = os.environ.get(name)
        if v and v.strip():
            return v.strip()
    for name in names:
        v = env.get(name) or env.get(name.lower())
        if v:
            return v
    return None


@dataclass
class Settings:
    db_path: str
    seed_webhook_url: Optional[str]
    api_key: Optional[str]
    transcribe_model: str
    transcribe_base_url: Optional[str]
    probe_url: str
    http_timeout: int = 30


def load_settings(dotenv_dir: Optional[str] = None) -> Settings:
    """Resolve runtime settings from the environment first, then `.env`."""
    base = dotenv_dir or os.getcwd()
    env = _read_dotenv(base)

    db_path = _lookup(env, "GRAVE_DB_PATH")
    db_path = expand_abs(db_path) if db_path else default_db_path(base)

    openai_key = _lookup(env, "OPENAI_API_KEY")
    openrouter_key = _lookup(env, "OPEN_ROUTER_API_KEY")
    base_url = _lookup(env, "TRANSCRIBE_BASE_URL")
    if openai_key:
        api_key = openai_key
    else:
        api_key = openrouter_key
        if openrouter_key and not base_url:
            base_url = OPENROUTER_BASE_URL
            log.info("Using OpenRouter endpoint for transcription")

    timeout_raw = _lookup(env, "GRAVE_HTTP_TIMEOUT")
    try:
        timeout = int(timeout_raw) if timeout_raw else 30
    except ValueError:
        log.warning(f"GRAVE_HTTP_TIMEOUT={timeout_raw!r} is not an integer; using 30s")
        timeout = 30

    return Settings(
        db_path=db_path,
        seed_webhook_url=_lookup(env, "GRAVE_WEBHOOK_URL"),
        api_key=api_key,
        transcribe_model=_lookup(env, "TRANSCRIBE_MODEL") or DEFAULT_TRANSCRIBE_MODEL,
        transcribe_base_url=base_url,
        probe_url=_lookup(env, "CONNECTIVITY_PROBE_URL") or DEFAULT_PROBE_URL,
        http_timeout=timeout,
    )
