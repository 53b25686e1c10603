from __future__ import annotations
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Union

logger = logging.getLogger(__name__)


_FENCE_OPEN = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\s*```$")


@dataclass
class Parsed:
	value: Any


@dataclass
class Unrecoverable:
	raw: str
	reason: str = ""


ParseOutcome = Union[Parsed, Unrecoverable]


def _strip_fences(text: str) -> str:
	text = _FENCE_OPEN.sub("", text)
	return _FENCE_CLOSE.sub("", text)


def parse_outcome(raw: str | None) -> ParseOutcome:
	"""Recover the JSON object embedded in model output, if there is one."""
	if raw is None:
		return Unrecoverable(raw="", reason="empty response")
	candidate = _strip_fences(raw.strip())
	first = candidate.find("{")
	last = candidate.rfind("}")
	if first != -1 and last > first:
		candidate = candidate[first : last + 1]
	try:
		return Parsed(json.loads(candidate))
	except (json.JSONDecodeError, ValueError) as exc:
		return Unrecoverable(raw=raw, reason=str(exc))


def safe_json_parse(raw: str | None, fallback: dict[str, Any]) -> dict[str, Any]:
	"""Parse model output or return ``fallback`` unchanged."""
	outcome = parse_outcome(raw)
	if isinstance(outcome, Parsed) and isinstance(outcome.value, dict):
		return outcome.value
	reason = outcome.reason if isinstance(outcome, Unrecoverable) else "not a JSON object"
	logger.warning("JSON parse error: %s", reason)
	logger.debug("Content that failed to parse: %s", raw)
	return fallback


def tool_result(result: Any) -> dict[str, Any]:
	return {"ok": True, "result": result}


def parse_error(raw: str | None) -> dict[str, Any]:
	return {"ok": False, "error": "ParseError", "raw": raw or ""}
