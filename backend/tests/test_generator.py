"""Tests for test generation normalization."""

import json

import pytest

from trainer.agents.generator import build_generation_result, even_points, generate_test, normalize_test

from conftest import FakeLLM


def _questions(count: int, **extra) -> list:
	return [{"id": 100 + i, "type": "short", "prompt": f"Q{i}", "answer": "a", **extra} for i in range(count)]


def test_short_model_output_is_padded_to_requested_count() -> None:
	model = {"questions": _questions(4, points=25), "totalPoints": 100}
	test = normalize_test(model, 7)
	assert len(test["questions"]) == 7
	assert [q["id"] for q in test["questions"]] == [1, 2, 3, 4, 5, 6, 7]
	assert [q["prompt"] for q in test["questions"][:4]] == ["Q0", "Q1", "Q2", "Q3"]
	assert all(q["points"] == 25 for q in test["questions"][:4])
	assert all(q["points"] == even_points(7) == 14 for q in test["questions"][4:])
	assert test["totalPoints"] == 100


def test_extra_questions_are_truncated() -> None:
	test = normalize_test({"questions": _questions(6)}, 3)
	assert [q["prompt"] for q in test["questions"]] == ["Q0", "Q1", "Q2"]
	assert all(q["points"] == 33 for q in test["questions"])


def test_non_numeric_points_get_even_split() -> None:
	questions = _questions(2)
	questions[0]["points"] = "lots"
	questions[1]["points"] = 0
	test = normalize_test({"questions": questions}, 2)
	assert [q["points"] for q in test["questions"]] == [50, 50]


def test_unparseable_output_still_yields_a_full_test() -> None:
	result = build_generation_result("the model had a bad day", 5, "react")
	assert result["ok"] is True
	assert result["raw"] == "the model had a bad day"
	questions = result["result"]["questions"]
	assert len(questions) == 5
	assert all(q["framework"] == "react" for q in questions)
	assert result["result"]["metadata"]["questionCount"] == 5


@pytest.mark.asyncio
async def test_generate_test_uses_model_output() -> None:
	llm = FakeLLM("```json\n" + json.dumps({"questions": _questions(2, points=50)}) + "\n```")
	result = await generate_test({"numQuestions": 2, "topics": ["css"], "focusAreas": ["grid"]}, llm)
	assert result["ok"] is True
	assert "raw" not in result
	assert [q["prompt"] for q in result["result"]["questions"]] == ["Q0", "Q1"]
	assert "grid" in llm.calls[0]["user"]
	assert llm.calls[0]["max_tokens"] == 4000
