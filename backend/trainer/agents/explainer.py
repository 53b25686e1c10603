from __future__ import annotations
import json
import re
from typing import Any, Dict, List, Optional

from ..parsing import Parsed, parse_error, parse_outcome, tool_result


MISTAKE_PATTERNS: Dict[str, List[tuple]] = {
	"javascript": [
		(re.compile(r"[^=!]==[^=]"), "Loose equality (==) instead of strict equality (===)"),
		(re.compile(r"\bvar\b"), "Using var instead of let/const"),
		(re.compile(r"\.then\((?!.*\.catch)", re.S), "Promise chain without error handling"),
	],
	"html": [
		(re.compile(r"<div[^>]*>\s*<div", re.I), "Nested divs where semantic elements would fit"),
		(re.compile(r"<img(?![^>]*alt=)", re.I), "Image without alt text"),
	],
	"css": [
		(re.compile(r"!important"), "Relying on !important to win specificity"),
		(re.compile(r"float\s*:", re.I), "Using floats for layout instead of flexbox/grid"),
	],
}

CATEGORY_RESOURCES: Dict[str, List[str]] = {
	"javascript": ["MDN JavaScript Guide", "javascript.info"],
	"html": ["MDN HTML elements reference", "WebAIM accessibility articles"],
	"css": ["MDN CSS reference", "CSS-Tricks flexbox and grid guides"],
	"api": ["MDN Fetch API", "HTTP status code reference"],
	"framework": ["Official framework documentation"],
}


def levenshtein(a: str, b: str) -> int:
	if len(a) < len(b):
		a, b = b, a
	previous = list(range(len(b) + 1))
	for i, ca in enumerate(a, start=1):
		current = [i]
		for j, cb in enumerate(b, start=1):
			current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + (ca != cb)))
		previous = current
	return previous[-1]


def similarity(a: str, b: str) -> float:
	longest = max(len(a), len(b))
	if longest == 0:
		return 1.0
	return (longest - levenshtein(a, b)) / longest


def analyze_mistake(question: Dict[str, Any], student_answer: str, correct_answer: str, category: str) -> Dict[str, Any]:
	analysis: Dict[str, Any] = {
		"category": category,
		"mistakeType": "conceptual",
		"severity": "medium",
		"patterns": [],
	}
	for pattern, explanation in MISTAKE_PATTERNS.get(category, []):
		if pattern.search(student_answer):
			analysis["patterns"].append(explanation)

	score = similarity(student_answer.lower(), correct_answer.lower())
	if score > 0.7:
		analysis["severity"] = "minor"
	elif score < 0.3:
		analysis["severity"] = "major"

	prompt = str(question.get("prompt", "")).lower()
	if question.get("type") == "code" or "{" in student_answer or "function" in student_answer:
		analysis["mistakeType"] = "syntaxError"
	elif "why" in prompt or "explain" in prompt:
		analysis["mistakeType"] = "conceptualError"
	elif "best" in prompt or "should" in prompt:
		analysis["mistakeType"] = "bestPractice"
	return analysis


def _explanation_system_prompt(category: str, difficulty: str, analysis: Dict[str, Any]) -> str:
	patterns = "; ".join(analysis["patterns"]) or "none detected"
	return (
		"Explain why a junior developer's answer is incorrect in a helpful, educational way.\n"
		f"Category: {category}. Student level: {difficulty}.\n"
		f"Mistake type: {analysis['mistakeType']} ({analysis['severity']}). Detected patterns: {patterns}.\n"
		"Use an encouraging tone and give the correct approach step by step.\n\n"
		"OUTPUT FORMAT - JSON only:\n"
		'{"isCorrect":false,"explanation":"...","correctApproach":"...","commonMistake":"...",'
		'"practiceExercise":"...","resources":["..."]}'
	)


async def explain_wrong_answer(args: Dict[str, Any], llm: Any) -> Dict[str, Any]:
	question = args.get("question")
	student_answer = args.get("studentAnswer")
	correct_answer = args.get("correctAnswer") or args.get("expectedAnswer")
	if not isinstance(question, dict) or student_answer is None or not correct_answer:
		raise ValueError("Missing required parameters for answer explanation")
	category = args.get("category") or question.get("category") or "general"
	difficulty = args.get("difficulty") or "junior"
	context = args.get("context") or {}

	analysis = analyze_mistake(question, str(student_answer), str(correct_answer), category)
	if str(student_answer).strip():
		user_prompt = (
			"Explain why this answer is wrong:\n\n"
			f"QUESTION: {json.dumps(question)}\n"
			f"STUDENT ANSWER: {student_answer}\n"
			f"CORRECT ANSWER: {correct_answer}\n"
			f"CONTEXT: {json.dumps(context)}"
		)
	else:
		user_prompt = (
			"Provide a helpful explanation for a question that was left blank:\n\n"
			f"QUESTION: {json.dumps(question)}\n"
			f"CORRECT ANSWER: {correct_answer}\n"
			f"CONTEXT: {json.dumps(context)}"
		)
	content = await llm.chat(
		_explanation_system_prompt(category, difficulty, analysis),
		user_prompt,
		max_tokens=1500,
		temperature=0.3,
	)
	outcome = parse_outcome(content)
	if not isinstance(outcome, Parsed) or not isinstance(outcome.value, dict):
		return parse_error(content)
	result = outcome.value
	result["mistakeAnalysis"] = analysis
	result.setdefault("resources", CATEGORY_RESOURCES.get(category, []))
	result["difficulty"] = difficulty
	return tool_result(result)


async def explain_web_concept(args: Dict[str, Any], llm: Any) -> Dict[str, Any]:
	question = args.get("question")
	concept: Optional[str] = args.get("concept")
	if not concept and isinstance(question, dict):
		concept = question.get("prompt")
	elif not concept and isinstance(question, str):
		concept = question
	if not concept:
		raise ValueError("Missing concept or question to explain")
	context = args.get("context") or "general"

	details = ""
	if args.get("studentAnswer") or args.get("expectedAnswer"):
		details = f"\nStudent answered: {args.get('studentAnswer', '')}\nExpected: {args.get('expectedAnswer', '')}"
	content = await llm.chat(
		"Explain web development concepts to junior developers in clear, practical language.\n\n"
		"OUTPUT FORMAT - JSON only:\n"
		'{"concept":"...","explanation":"...","examples":["..."],"useCase":"...",'
		'"commonPitfalls":["..."],"nextSteps":"..."}',
		f"Explain this web development concept: {concept}\nContext: {context}{details}",
		max_tokens=600,
		temperature=0.6,
	)
	outcome = parse_outcome(content)
	if not isinstance(outcome, Parsed) or not isinstance(outcome.value, dict):
		return parse_error(content)
	result = outcome.value
	result.setdefault("resources", CATEGORY_RESOURCES.get(context, []))
	return tool_result(result)
