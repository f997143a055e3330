"""AI transcription of grave marker photos via an OpenAI-compatible vision API."""

from __future__ import annotations

import json
import time
from typing import Any, Dict, List, Optional

import httpx
from openai import APIConnectionError, APIStatusError, APITimeoutError, OpenAI

from .domain.models import Person
from .errors import TranscriptionError
from .logging import get_logger

LOG = get_logger("transcribe")

PROMPT = (
    "Analyse cette photo de pierre tombale. Il peut y avoir un ou plusieurs défunts. "
    "Extrais une liste d'objets JSON contenant pour chaque personne : le nom complet, "
    "la date de naissance, le lieu de naissance (avec code postal si présent), la date de décès, "
    "le lieu de décès (avec code postal si présent), et l'épitaphe. "
    "Si une information est illisible ou absente, laisse le champ vide. "
    'Réponds uniquement avec un objet JSON de la forme {"people": [{"name": "", "birthDate": "", '
    '"birthPlace": "", "deathDate": "", "deathPlace": "", "epitaph": ""}]}.'
)


def _scavenge_json(s: str) -> Optional[Dict[str, Any]]:
    """Return the widest parseable {...} block inside `s`, if any."""
    if not s:
        return None
    start = s.find("{")
    end = s.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return None
    for j in range(end, start, -1):
        try:
            obj = json.loads(s[start:j + 1])
        except ValueError:
            continue
        if isinstance(obj, dict):
            return obj
    return None


def parse_people(text: str) -> List[Person]:
    """Turn the model's JSON answer into Person objects (missing fields become empty)."""
    try:
        data = json.loads(text)
    except ValueError:
        data = _scavenge_json(text)
        if data is None:
            raise TranscriptionError(f"Model answer is not JSON: {text[:200]!r}")
    if not isinstance(data, dict):
        raise TranscriptionError("Model answer must be a JSON object")
    people = data.get("people") or []
    if not isinstance(people, list):
        raise TranscriptionError("'people' must be a list")
    return [Person.from_dict(p) for p in people if isinstance(p, dict)]


def build_client(api_key: str, *, base_url: Optional[str] = None, timeout: float = 90.0) -> OpenAI:
    http_client = httpx.Client(
        timeout=httpx.Timeout(connect=10.0, read=timeout, write=30.0, pool=10.0),
    )
    return OpenAI(api_key=api_key, base_url=base_url, http_client=http_client, max_retries=0)


def transcribe_grave_photo(
    data_url: str,
    *,
    api_key: Optional[str] = None,
    model: str,
    base_url: Optional[str] = None,
    client: Optional[OpenAI] = None,
) -> List[Person]:
    """Return the people read from the marker photo given as a data URL.

    Raises TranscriptionError on missing credentials, API failures or an
    unusable answer.
    """
    if client is None:
        if not api_key:
            raise TranscriptionError("No API key configured (OPENAI_API_KEY or OPEN_ROUTER_API_KEY)")
        client = build_client(api_key, base_url=base_url)

    approx_mb = round(len(data_url) / (1024 * 1024), 2)
    LOG.info(f"Transcribing marker photo (~{approx_mb} MiB) with model '{model}'")
    t0 = time.perf_counter()
    try:
        resp = client.chat.completions.create(
            model=model,
            temperature=0,
            response_format={"type": "json_object"},
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": PROMPT},
                        {"type": "image_url", "image_url": {"url": data_url}},
                    ],
                }
            ],
        )
    except (APIConnectionError, APITimeoutError) as exc:
        LOG.error(f"Transcription request failed: {exc}")
        raise TranscriptionError(f"network error: {exc}") from exc
    except APIStatusError as exc:
        LOG.error(f"Transcription API returned HTTP {exc.status_code}")
        raise TranscriptionError(f"API error {exc.status_code}") from exc

    choices = getattr(resp, "choices", None) or []
    text = choices[0].message.content if choices else None
    if not text:
        raise TranscriptionError("Model returned empty content")
    people = parse_people(text)
    LOG.info(f"Transcription finished in {time.perf_counter() - t0:.2f}s; {len(people)} person(s) found")
    return people
