"""
Multi-format API usage log parsing.

Detects the provider format of each raw log entry and normalizes it into a
canonical UsageRecord. Supported shapes:

- NewAPI: flat objects with ``prompt_tokens``, ``completion_tokens``,
  ``cached_tokens`` and ``cache_creation_tokens`` at the top level
- OpenAI: chat completion responses with a nested ``usage`` object
- Anthropic: message responses with ``usage.input_tokens`` / ``output_tokens``

Unrecognized shapes are never dropped; they go through the NewAPI extractor.
"""

import json
import logging
import math
from collections import Counter
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .models import UsageRecord

logger = logging.getLogger(__name__)


class LogFormat(Enum):
    """Source format of a raw log entry."""
    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    NEWAPI = "newapi"
    UNKNOWN = "unknown"


class ParseError(ValueError):
    """Raised when log input is not UTF-8 text, JSON or newline-delimited JSON."""
    def __init__(self, message: str, line: Optional[int] = None):
        super().__init__(message)
        self.line = line


def detect_format(raw: Dict[str, Any]) -> LogFormat:
    """Detect the source format of a single raw record.

    Checks run in a fixed order because the shapes overlap: an Anthropic
    response also carries ``model`` and a ``usage`` object.
    """
    usage = raw.get("usage")
    if not isinstance(usage, dict):
        usage = {}
    model = raw.get("model")

    # Anthropic
    if raw.get("type") == "message" or _first_content_type(raw) == "text":
        return LogFormat.ANTHROPIC
    if "input_tokens" in usage and isinstance(model, str) and model.startswith("claude"):
        return LogFormat.ANTHROPIC

    # OpenAI
    if raw.get("object") == "chat.completion" or raw.get("choices") is not None:
        return LogFormat.OPENAI
    if "prompt_tokens" in usage and "prompt_tokens" not in raw:
        return LogFormat.OPENAI

    # NewAPI / flat
    if "prompt_tokens" in raw or "model" in raw:
        return LogFormat.NEWAPI

    return LogFormat.UNKNOWN


def parse_record(raw: Dict[str, Any]) -> UsageRecord:
    """Normalize a single raw record, auto-detecting its format."""
    log_format = detect_format(raw)
    if log_format == LogFormat.OPENAI:
        return _parse_openai(raw)
    if log_format == LogFormat.ANTHROPIC:
        return _parse_anthropic(raw)
    return _parse_newapi(raw)


def parse_log(data: Union[str, bytes, List[Any], Dict[str, Any]]) -> List[UsageRecord]:
    """Parse log content into normalized usage records.

    Accepts a JSON array, newline-delimited JSON, a single JSON object, or
    already-decoded data.

    Args:
        data: Raw file contents or decoded JSON

    Returns:
        List of UsageRecord in input order

    Raises:
        ParseError: If bytes are not UTF-8, text is not valid JSON or JSON
            lines, or an entry is not a JSON object
    """
    if isinstance(data, bytes):
        try:
            data = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError(f"Input is not valid UTF-8 text: {e}") from e

    if isinstance(data, str):
        entries = _load_text(data)
    else:
        entries = data

    if not isinstance(entries, list):
        entries = [entries]

    records = []
    formats: Counter = Counter()
    for index, raw in enumerate(entries):
        if not isinstance(raw, dict):
            raise ParseError(f"Log entry {index + 1} is not a JSON object")
        formats[detect_format(raw).value] += 1
        records.append(parse_record(raw))

    logger.debug("Parsed %d records (%s)", len(records), dict(formats))
    return records


def _load_text(text: str) -> Any:
    # Exports from some editors start with a byte-order mark
    text = text.lstrip("\ufeff").strip()
    if not text:
        return []

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    # Newline-delimited JSON
    entries = []
    for line_number, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            entries.append(json.loads(line))
        except json.JSONDecodeError as e:
            raise ParseError(
                f"Input is neither JSON nor JSON lines (line {line_number}: {e.msg})",
                line=line_number,
            ) from e
    return entries


def _parse_newapi(raw: Dict[str, Any]) -> UsageRecord:
    return UsageRecord(
        timestamp=_timestamp(raw.get("timestamp")) or _timestamp(raw.get("created_at")) or _now_iso(),
        model=_model(raw),
        prompt_tokens=_tokens(raw.get("prompt_tokens")),
        completion_tokens=_tokens(raw.get("completion_tokens")),
        cached_tokens=_tokens(raw.get("cached_tokens")),
        cache_creation_tokens=_tokens(raw.get("cache_creation_tokens")),
    )


def _parse_openai(raw: Dict[str, Any]) -> UsageRecord:
    usage = _dict(raw.get("usage"))
    details = _dict(usage.get("prompt_tokens_details"))
    return UsageRecord(
        timestamp=_timestamp(raw.get("created")) or _timestamp(raw.get("timestamp")) or _now_iso(),
        model=_model(raw),
        prompt_tokens=_tokens(usage.get("prompt_tokens")),
        completion_tokens=_tokens(usage.get("completion_tokens")),
        cached_tokens=_tokens(details.get("cached_tokens")),
        # No separate write-cache accounting in this format
        cache_creation_tokens=0,
    )


def _parse_anthropic(raw: Dict[str, Any]) -> UsageRecord:
    usage = _dict(raw.get("usage"))
    return UsageRecord(
        timestamp=_timestamp(raw.get("timestamp")) or _timestamp(raw.get("created_at")) or _now_iso(),
        model=_model(raw),
        prompt_tokens=_tokens(usage.get("input_tokens")),
        completion_tokens=_tokens(usage.get("output_tokens")),
        cached_tokens=_tokens(usage.get("cache_read_input_tokens")),
        cache_creation_tokens=_tokens(usage.get("cache_creation_input_tokens")),
    )


def _first_content_type(raw: Dict[str, Any]) -> Optional[str]:
    content = raw.get("content")
    if isinstance(content, list) and content and isinstance(content[0], dict):
        return content[0].get("type")
    return None


def _dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _model(raw: Dict[str, Any]) -> str:
    model = raw.get("model")
    if isinstance(model, str) and model.strip():
        return model
    return "unknown"


def _tokens(value: Any) -> int:
    """Coerce a token count to a non-negative int, 0 when missing or invalid."""
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return 0
    if not isinstance(value, (int, float)):
        return 0
    if isinstance(value, float) and not math.isfinite(value):
        return 0
    return max(0, int(value))


def _timestamp(value: Any) -> Optional[str]:
    """Return an ISO timestamp for a string or epoch-seconds value, else None."""
    if isinstance(value, str) and value.strip():
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value:
        try:
            return _format_iso(datetime.fromtimestamp(value, tz=timezone.utc))
        except (OverflowError, OSError, ValueError):
            return None
    return None


def _now_iso() -> str:
    return _format_iso(datetime.now(timezone.utc))


def _format_iso(moment: datetime) -> str:
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
