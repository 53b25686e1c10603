"""Tests for grading normalization."""

import pytest

from trainer.agents.checker import NO_ANSWER_FEEDBACK, build_grading_result, grade_test, normalize_grade

from conftest import FakeLLM

TEST = {
	"questions": [
		{"id": 1, "type": "short", "prompt": "What does === do?", "answer": "strict equality", "points": 60, "category": "javascript"},
		{"id": 2, "type": "short", "prompt": "Name a semantic tag", "answer": "article", "points": 40, "category": "html"},
	]
}


def test_blank_answer_scores_zero_and_overall_is_recomputed() -> None:
	model = {
		"results": [
			{"id": 1, "score": 60, "max": 60, "correct": True, "feedback": "Great"},
			{"id": 2, "score": 40, "max": 40, "correct": True, "feedback": "Great"},
		],
		"overallScore": 100,
	}
	grade = normalize_grade(model, TEST, {"1": "strict equality", "2": "   "})
	second = grade["results"][1]
	assert second["score"] == 0
	assert second["correct"] is False
	assert second["feedback"] == NO_ANSWER_FEEDBACK
	assert grade["overallScore"] == 60.0
	assert grade["totalPoints"] == 100


def test_missing_results_are_filled_from_the_test() -> None:
	grade = normalize_grade({"results": []}, {"result": TEST}, {"1": "Strict Equality"})
	assert [r["id"] for r in grade["results"]] == [1, 2]
	assert grade["results"][0]["score"] == 60
	assert grade["results"][0]["expected"] == "strict equality"
	assert grade["results"][1]["feedback"] == NO_ANSWER_FEEDBACK
	assert grade["overallScore"] == 60.0


def test_results_match_by_question_id_and_extras_are_appended() -> None:
	model = {"results": [
		{"questionId": 2, "score": 20, "max": 40},
		{"id": 9, "score": 5, "max": 5},
		{"id": 1, "score": 30, "max": 60},
	]}
	grade = normalize_grade(model, TEST, {"1": "x", "2": "y"})
	assert [r["id"] for r in grade["results"]] == [1, 2, 9]
	assert [r["score"] for r in grade["results"]] == [30, 20, 5]
	assert grade["totalPoints"] == 105
	assert grade["overallScore"] == round(55 / 105 * 100, 2)


def test_unparseable_grading_keeps_raw_output() -> None:
	result = build_grading_result("not json at all", TEST, {"1": "", "2": ""})
	assert result["ok"] is True
	assert result["raw"] == "not json at all"
	assert result["result"]["overallScore"] == 0
	assert result["result"]["learningPath"]["focusTopics"] == ["javascript", "html"]


@pytest.mark.asyncio
async def test_grade_test_requires_test_and_answers() -> None:
	with pytest.raises(ValueError):
		await grade_test({"answers": {}}, FakeLLM())


@pytest.mark.asyncio
async def test_grade_test_adds_analytics() -> None:
	llm = FakeLLM({"results": [{"id": 1, "score": 60, "max": 60}, {"id": 2, "score": 10, "max": 40}]})
	result = await grade_test({"test": TEST, "answers": {"1": "strict equality", "2": "div"}}, llm)
	grade = result["result"]
	assert grade["overallScore"] == 70.0
	assert grade["analytics"]["strengths"] == ["javascript"]
	assert grade["analytics"]["weaknesses"] == ["html"]
	assert grade["learningPath"]["nextSkillLevel"] == "junior-advanced"
	assert llm.calls[0]["temperature"] == 0.1


def test_answers_keyed_by_integer_id_are_found() -> None:
	grade = normalize_grade({"results": []}, TEST, {1: "strict equality", 2: "section"})
	assert grade["results"][0]["studentAnswer"] == "strict equality"
	assert grade["results"][0]["score"] == 60
	assert grade["results"][1]["studentAnswer"] == "section"
	assert grade["results"][1]["score"] == 0


def test_exact_match_scores_the_question_points() -> None:
	grade = normalize_grade({"results": [{"id": 1, "max": 10}]}, TEST, {"1": "strict equality"})
	first = grade["results"][0]
	assert first["score"] == 60
	assert first["max"] == 60
	assert first["correct"] is True
	assert grade["overallScore"] == 60.0
