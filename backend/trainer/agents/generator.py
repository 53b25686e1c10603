from __future__ import annotations
import hashlib
import logging
import random
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..parsing import Parsed, parse_outcome

logger = logging.getLogger(__name__)


TOTAL_POINTS = 100

SPECIALIZATIONS: Dict[str, List[str]] = {
	"html": ["Semantic HTML elements", "Forms and validation", "Accessibility basics", "DOM structure", "HTML5 features", "Meta tags and SEO basics"],
	"javascript": ["Variables and data types", "Functions and scope", "DOM manipulation", "Event handling", "Async/await and promises", "Array and object methods", "ES6+ features", "Error handling"],
	"css": ["Selectors and specificity", "Box model", "Flexbox basics", "Grid basics", "Responsive design", "CSS variables"],
	"apis": ["HTTP methods (GET, POST, PUT, DELETE)", "Status codes", "JSON format", "Fetch API", "Error handling in API calls", "Authentication basics"],
	"react": ["Components and JSX", "Props and state", "useEffect and lifecycle", "Conditional rendering", "Lists and keys"],
	"vue": ["Template syntax", "Data binding", "Computed properties", "Directives (v-if, v-for)", "Props and emit"],
	"angular": ["Components and templates", "Data binding", "Services and dependency injection", "Routing basics"],
}

_TOPIC_ALIASES = {"js": "javascript", "api": "apis"}

SCENARIOS = [
	"debugging a broken feature",
	"code review scenarios",
	"performance optimization",
	"accessibility improvements",
	"security vulnerabilities",
	"cross-browser compatibility",
	"responsive design challenges",
	"API integration problems",
	"user experience improvements",
	"modern best practices",
]


def _topic_details(topics: List[str]) -> str:
	details: List[str] = []
	for topic in topics:
		key = _TOPIC_ALIASES.get(topic.lower(), topic.lower())
		areas = SPECIALIZATIONS.get(key)
		if areas:
			details.append(f"{key}: {', '.join(areas[:4])}")
	return "\n".join(details)


def build_system_prompt(framework: str, difficulty: str) -> str:
	return (
		"You are an expert web development instructor specializing in junior-level training.\n"
		"Generate tests for junior developers (6 months - 2 years experience) with practical, real-world scenarios.\n"
		f"Framework: {framework}\nLevel: {difficulty}\n\n"
		"OUTPUT FORMAT: JSON only in this exact structure:\n"
		'{ "questions":[{"id":1,"type":"mcq"|"short"|"code","prompt":"...","choices":[...],"answer":"...",'
		'"rubric":["..."],"points":<int>,"category":"html|css|javascript|api|framework"}],"totalPoints":100 }\n\n'
		"QUESTION TYPES: mcq (4 options), short (1-3 sentences), code (snippet or debugging).\n"
		"Points should sum to exactly 100."
	)


def build_user_prompt(topics: List[str], num_questions: int, focus_areas: List[str], framework: str, difficulty: str) -> str:
	focus_text = f"\nFOCUS AREAS (prioritize these based on previous mistakes): {', '.join(focus_areas)}" if focus_areas else ""
	scenarios = ", ".join(random.sample(SCENARIOS, 3))
	timestamp = datetime.now(timezone.utc).isoformat()
	return (
		f"Generate EXACTLY {num_questions} UNIQUE questions for junior web developers.\n"
		f"TIMESTAMP: {timestamp}\n"
		f"TOPICS TO COVER: {', '.join(topics)}\n"
		f"SPECIFIC AREAS:\n{_topic_details(topics)}\n"
		f"FRAMEWORK CONTEXT: {'Pure HTML/CSS/JS' if framework == 'vanilla' else framework}\n"
		f"Difficulty: {difficulty}\n"
		f"Include diverse scenarios like: {scenarios}\n"
		f"Each question should have approximately {round(TOTAL_POINTS / num_questions)} points."
		f"{focus_text}"
	)


def even_points(num_questions: int) -> int:
	return round(TOTAL_POINTS / num_questions) if num_questions > 0 else 0


def placeholder_question(index: int, num_questions: int) -> Dict[str, Any]:
	"""Deterministic stand-in used when the model returns too few questions."""
	number = index + 1
	if index % 2 == 0:
		return {
			"id": number,
			"type": "mcq",
			"prompt": f"Which JavaScript method is used to add an element to the end of an array? (Question {number})",
			"choices": ["push()", "pop()", "shift()", "unshift()"],
			"answer": "push()",
			"rubric": ["Correct method for adding to array end"],
			"points": even_points(num_questions),
			"category": "javascript",
		}
	return {
		"id": number,
		"type": "short",
		"prompt": f"Explain the difference between let and var in JavaScript. (Question {number})",
		"answer": "let has block scope while var has function scope",
		"rubric": ["Mentions scope difference", "Block vs function scope"],
		"points": even_points(num_questions),
		"category": "javascript",
	}


def fallback_test(num_questions: int) -> Dict[str, Any]:
	return {
		"questions": [placeholder_question(i, num_questions) for i in range(num_questions)],
		"totalPoints": TOTAL_POINTS,
	}


def _valid_points(value: Any) -> bool:
	return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


def normalize_test(parsed: Any, num_questions: int) -> Dict[str, Any]:
	"""
	Force a model-produced test into shape.

	Always returns exactly ``num_questions`` questions with ids 1..n. Missing
	questions are padded with placeholders, extras are dropped, and questions
	without a usable point value get an even share of 100.
	"""
	test: Dict[str, Any] = dict(parsed) if isinstance(parsed, dict) else {}
	raw_questions = test.get("questions")
	questions: List[Dict[str, Any]] = [q for q in raw_questions if isinstance(q, dict)] if isinstance(raw_questions, list) else []

	if len(questions) < num_questions:
		questions.extend(placeholder_question(i, num_questions) for i in range(len(questions), num_questions))
	elif len(questions) > num_questions:
		questions = questions[:num_questions]

	points_per = even_points(num_questions)
	test["questions"] = [
		{**q, "id": idx + 1, "points": q["points"] if _valid_points(q.get("points")) else points_per}
		for idx, q in enumerate(questions)
	]
	test["totalPoints"] = TOTAL_POINTS
	return test


def question_hash(prompt: str) -> str:
	return hashlib.sha1(prompt.encode("utf-8")).hexdigest()[:12]


def diversity_score(questions: List[Dict[str, Any]]) -> int:
	if not questions:
		return 0
	categories = {q.get("category") for q in questions}
	types = {q.get("type") for q in questions}
	prompts = {question_hash(str(q.get("prompt", ""))) for q in questions}
	category_score = len(categories) / max(len(questions), 3)
	type_score = len(types) / 3
	uniqueness_score = len(prompts) / len(questions)
	return round((category_score + type_score + uniqueness_score) / 3 * 100)


def enhance_test(test: Dict[str, Any], framework: str) -> Dict[str, Any]:
	questions = test.get("questions", [])
	test["questions"] = [
		{**q, "framework": framework, "uniqueId": question_hash(str(q.get("prompt", "")))}
		for q in questions
	]
	metadata = test.get("metadata") if isinstance(test.get("metadata"), dict) else {}
	metadata.update({
		"framework": framework,
		"generatedBy": "TestGeneratorAgent",
		"generatedAt": datetime.now(timezone.utc).isoformat(),
		"questionCount": len(questions),
		"diversity": diversity_score(questions),
	})
	test["metadata"] = metadata
	return test


def _int_arg(value: Any, default: int) -> int:
	try:
		number = int(value)
	except (TypeError, ValueError):
		return default
	return max(1, min(number, 20))


async def generate_test(args: Dict[str, Any], llm: Any) -> Dict[str, Any]:
	topics: List[str] = list(args.get("topics") or ["javascript", "html"])
	num_questions = _int_arg(args.get("numQuestions"), 5)
	difficulty: str = args.get("difficulty") or "junior"
	focus_areas: List[str] = list(args.get("focusAreas") or [])
	framework: str = args.get("framework") or "vanilla"

	content = await llm.chat(
		build_system_prompt(framework, difficulty),
		build_user_prompt(topics, num_questions, focus_areas, framework, difficulty),
		max_tokens=4000,
		temperature=0.6,
	)
	return build_generation_result(content, num_questions, framework)


def build_generation_result(content: Optional[str], num_questions: int, framework: str = "vanilla") -> Dict[str, Any]:
	"""Parse and normalize generation output into a ToolCallResult dict."""
	outcome = parse_outcome(content)
	if isinstance(outcome, Parsed) and isinstance(outcome.value, dict):
		return {"ok": True, "result": enhance_test(normalize_test(outcome.value, num_questions), framework)}
	logger.warning("Test generation output unparseable, using placeholder questions")
	result = enhance_test(normalize_test(fallback_test(num_questions), num_questions), framework)
	return {"ok": True, "result": result, "raw": content or ""}
