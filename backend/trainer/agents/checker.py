from __future__ import annotations
import json
import logging
from typing import Any, Dict, List, Optional

from ..parsing import safe_json_parse

logger = logging.getLogger(__name__)


STRICTNESS_MULTIPLIERS = {"lenient": 1.2, "standard": 1.0, "strict": 0.8}

COMMON_MISTAKES: Dict[str, List[str]] = {
	"javascript": [
		"Not handling null/undefined values",
		"Incorrect use of == vs ===",
		"Missing error handling for async operations",
		"Improper variable scoping",
	],
	"html": [
		"Missing semantic elements",
		"Improper form structure",
		"Missing alt attributes for images",
		"Incorrect heading hierarchy",
	],
	"css": [
		"Overusing !important",
		"Not considering mobile-first design",
		"Poor selector specificity",
	],
	"api": [
		"Not checking response status",
		"Not handling network failures",
		"Incorrect HTTP methods",
	],
}

NO_ANSWER_FEEDBACK = "No answer provided."


def build_grading_prompt(strictness: str) -> str:
	multiplier = STRICTNESS_MULTIPLIERS.get(strictness, 1.0)
	return (
		"You are an expert web development grader specializing in junior-level assessment.\n"
		f"Strictness: {strictness} ({multiplier}x multiplier)\n"
		"- Exact match for multiple choice questions\n"
		"- Partial credit for short answers showing understanding\n"
		"- Code questions: functionality > syntax perfection\n\n"
		"OUTPUT FORMAT - JSON only:\n"
		'{"results":[{"id":1,"score":16,"max":20,"feedback":"...","correct":false,"expected":"..."}],'
		'"overallScore":78.5,"totalPoints":100,"summary":"..."}'
	)


def build_grading_request(test: Dict[str, Any], answers: Dict[str, Any], strictness: str) -> str:
	return (
		f"Grade this test with {strictness} strictness.\n\n"
		f"TEST:\n{json.dumps(test, indent=2)}\n\n"
		f"STUDENT ANSWERS:\n{json.dumps(answers, indent=2)}\n\n"
		"Provide specific, actionable feedback for each question and an overall summary."
	)


def questions_of(test: Any) -> List[Dict[str, Any]]:
	"""Questions of a test given either as ``{"result": {...}}`` or the bare test."""
	if not isinstance(test, dict):
		return []
	body = test.get("result") if isinstance(test.get("result"), dict) else test
	questions = body.get("questions")
	return [q for q in questions if isinstance(q, dict)] if isinstance(questions, list) else []


def _is_number(value: Any) -> bool:
	return isinstance(value, (int, float)) and not isinstance(value, bool)


def _result_key(result: Dict[str, Any]) -> Optional[str]:
	candidate = result.get("id", result.get("questionId"))
	if isinstance(candidate, (int, str)) and not isinstance(candidate, bool):
		return str(candidate)
	return None


def normalize_grade(grade_data: Dict[str, Any], test: Any, answers: Optional[Dict[str, Any]]) -> Dict[str, Any]:
	"""
	Reconcile the model's grading with the questions actually asked.

	Each question gets exactly one result, matched by id. Blank answers always
	score zero. ``overallScore`` is recomputed from the summed points and
	replaces whatever the model reported.
	"""
	raw_results = grade_data.get("results")
	raw_results = [r for r in raw_results if isinstance(r, dict)] if isinstance(raw_results, list) else []
	by_key: Dict[str, Dict[str, Any]] = {}
	for result in raw_results:
		key = _result_key(result)
		if key is not None and key not in by_key:
			by_key[key] = result

	questions = questions_of(test)
	answer_map = answers or {}
	default_points = round(100 / len(questions)) if questions else 0

	normalized_results: List[Dict[str, Any]] = []
	for index, question in enumerate(questions):
		question_id = question.get("id", index + 1)
		key = str(question_id)
		existing = by_key.get(key)
		# Positional default when the model dropped ids entirely
		if existing is None and index < len(raw_results) and _result_key(raw_results[index]) is None:
			existing = raw_results[index]
		normalized: Dict[str, Any] = dict(existing) if existing else {}
		normalized["id"] = question_id

		max_points = question["points"] if _is_number(question.get("points")) else default_points
		if not _is_number(normalized.get("max")):
			normalized["max"] = max_points

		expected = question.get("answer") or ""
		if not isinstance(normalized.get("expected"), str) or not normalized["expected"]:
			normalized["expected"] = expected

		raw_answer = answer_map.get(key)
		if raw_answer is None:
			raw_answer = answer_map.get(question_id)
		student_answer = raw_answer.strip() if isinstance(raw_answer, str) else ""
		normalized["studentAnswer"] = student_answer

		if not student_answer:
			normalized["correct"] = False
			normalized["score"] = 0
			normalized["feedback"] = NO_ANSWER_FEEDBACK
		else:
			if not _is_number(normalized.get("score")):
				exact = student_answer.lower() == str(expected).lower()
				if exact:
					normalized["score"] = normalized["max"] = max_points
				else:
					normalized["score"] = 0
			if not isinstance(normalized.get("correct"), bool):
				normalized["correct"] = normalized["score"] > 0
		normalized_results.append(normalized)

	used = {str(r["id"]) for r in normalized_results}
	for result in raw_results:
		key = _result_key(result)
		if key is None or key in used:
			continue
		used.add(key)
		normalized_results.append({**result, "id": int(key) if key.isdigit() else key})

	total_max = sum(r["max"] for r in normalized_results if _is_number(r.get("max")))
	total_score = sum(r["score"] for r in normalized_results if _is_number(r.get("score")))
	overall = round(total_score / total_max * 100, 2) if total_max > 0 else 0
	existing_total = grade_data.get("totalPoints") if _is_number(grade_data.get("totalPoints")) else None

	return {
		**grade_data,
		"results": normalized_results,
		"totalPoints": total_max or existing_total or 100,
		"overallScore": overall,
	}


def add_analytics(grade: Dict[str, Any], test: Any) -> Dict[str, Any]:
	questions = {str(q.get("id")): q for q in questions_of(test)}
	earned: Dict[str, float] = {}
	possible: Dict[str, float] = {}
	focus: List[str] = []
	for result in grade.get("results", []):
		question = questions.get(str(result.get("id")))
		if not question or not question.get("category"):
			continue
		category = question["category"]
		result["category"] = category
		result["commonMistakes"] = COMMON_MISTAKES.get(category, [])
		score = result.get("score") if _is_number(result.get("score")) else 0
		max_points = result.get("max") if _is_number(result.get("max")) else 0
		earned[category] = earned.get(category, 0) + score
		possible[category] = possible.get(category, 0) + max_points
		if max_points and score < max_points * 0.7 and category not in focus:
			focus.append(category)

	percentages = {c: earned[c] / possible[c] * 100 for c in earned if possible[c] > 0}
	grade["analytics"] = {
		"categoryScores": percentages,
		"strengths": [c for c, pct in percentages.items() if pct >= 80],
		"weaknesses": [c for c, pct in percentages.items() if pct < 60],
	}
	grade["learningPath"] = {"focusTopics": focus, "nextSkillLevel": _next_skill_level(grade["overallScore"])}
	return grade


def _next_skill_level(overall_score: float) -> str:
	if overall_score >= 90:
		return "intermediate"
	if overall_score >= 70:
		return "junior-advanced"
	return "junior"


def build_grading_result(content: Optional[str], test: Any, answers: Optional[Dict[str, Any]]) -> Dict[str, Any]:
	fallback = {"results": [], "overallScore": 0, "totalPoints": 100, "summary": "Grading failed - please try again"}
	grade_data = safe_json_parse(content, fallback)
	grade = add_analytics(normalize_grade(grade_data, test, answers), test)
	if grade_data is fallback:
		return {"ok": True, "result": grade, "raw": content or ""}
	return {"ok": True, "result": grade}


async def grade_test(args: Dict[str, Any], llm: Any) -> Dict[str, Any]:
	test = args.get("test")
	answers = args.get("answers")
	strictness = args.get("strictness") or "standard"
	if not test or answers is None:
		raise ValueError("Missing required grading parameters")

	body = test.get("result", test) if isinstance(test, dict) else test
	content = await llm.chat(
		build_grading_prompt(strictness),
		build_grading_request(body, answers, strictness),
		max_tokens=3000,
		temperature=0.1,
	)
	return build_grading_result(content, test, answers)
