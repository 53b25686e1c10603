"""Tests for model output recovery."""

from trainer.parsing import Parsed, Unrecoverable, parse_error, parse_outcome, safe_json_parse


def test_fenced_json_is_recovered() -> None:
	outcome = parse_outcome('```json\n{"questions": []}\n```')
	assert outcome == Parsed({"questions": []})


def test_prose_around_object_is_sliced_off() -> None:
	outcome = parse_outcome('Sure! Here is the test:\n{"a": {"b": 1}}\nGood luck.')
	assert outcome == Parsed({"a": {"b": 1}})


def test_garbage_is_unrecoverable() -> None:
	outcome = parse_outcome("I cannot help with that")
	assert isinstance(outcome, Unrecoverable)
	assert outcome.raw == "I cannot help with that"
	assert isinstance(parse_outcome(None), Unrecoverable)


def test_safe_parse_returns_fallback_object_unchanged() -> None:
	fallback = {"results": []}
	assert safe_json_parse("{not json", fallback) is fallback
	assert safe_json_parse("[1, 2]", fallback) is fallback
	assert safe_json_parse('{"ok": 1}', fallback) == {"ok": 1}


def test_parse_error_shape() -> None:
	assert parse_error("xx") == {"ok": False, "error": "ParseError", "raw": "xx"}
	assert parse_error(None)["raw"] == ""
