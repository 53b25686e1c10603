from __future__ import annotations
import logging
from typing import Any, Dict, List

from ..parsing import Parsed, parse_outcome, tool_result

logger = logging.getLogger(__name__)


DIFFICULTY_LEVELS = ["beginner", "junior", "intermediate", "advanced"]
INCREASE_AT = 0.8
DECREASE_AT = 0.4
MINIMUM = 0.6

GENERAL_AREAS: Dict[str, List[str]] = {
	"html": ["semantic elements", "accessibility", "forms", "validation"],
	"css": ["flexbox", "grid", "responsive design", "animations"],
	"javascript": ["async/await", "array methods", "object manipulation", "error handling"],
	"general": ["debugging", "best practices", "performance", "code organization"],
}


def category_performance(results: List[Dict[str, Any]]) -> Dict[str, Dict[str, float]]:
	categories: Dict[str, Dict[str, float]] = {}
	for result in results:
		entry = categories.setdefault(result.get("category") or "general", {"correct": 0, "total": 0})
		entry["total"] += 1
		if result.get("correct"):
			entry["correct"] += 1
	for entry in categories.values():
		entry["accuracy"] = entry["correct"] / entry["total"] if entry["total"] else 0
	return categories


def streak(results: List[Dict[str, Any]]) -> int:
	count = 0
	for result in reversed(results):
		if not result.get("correct"):
			break
		count += 1
	return count


def trend(results: List[Dict[str, Any]]) -> str:
	if len(results) < 6:
		return "insufficient_data"
	recent = results[-5:]
	previous = results[-10:-5]
	recent_acc = sum(1 for r in recent if r.get("correct")) / len(recent)
	previous_acc = sum(1 for r in previous if r.get("correct")) / len(previous)
	if recent_acc > previous_acc + 0.1:
		return "improving"
	if recent_acc < previous_acc - 0.1:
		return "declining"
	return "stable"


def analyze_performance(results: List[Dict[str, Any]], subject: str) -> Dict[str, Any]:
	correct = sum(1 for r in results if r.get("correct"))
	accuracy = correct / len(results) if results else 0
	by_category = category_performance(results)
	return {
		"accuracy": accuracy,
		"correctCount": correct,
		"incorrectCount": len(results) - correct,
		"mistakes": [r.get("category") or subject for r in results if not r.get("correct")],
		"weakAreas": [c for c, p in by_category.items() if p["accuracy"] < MINIMUM][:3],
		"strongAreas": [c for c, p in by_category.items() if p["accuracy"] >= INCREASE_AT][:3],
		"streak": streak(results),
		"trend": trend(results),
	}


def difficulty_adjustment(accuracy: float, current: str, weak_areas: List[str]) -> Dict[str, str]:
	index = DIFFICULTY_LEVELS.index(current) if current in DIFFICULTY_LEVELS else 1
	percent = round(accuracy * 100)
	if accuracy >= INCREASE_AT and index < len(DIFFICULTY_LEVELS) - 1:
		return {
			"level": DIFFICULTY_LEVELS[index + 1],
			"adjustment": "increase",
			"reason": f"Excellent performance ({percent}%)! Ready for more challenging questions.",
		}
	if accuracy <= DECREASE_AT and index > 0:
		return {
			"level": DIFFICULTY_LEVELS[index - 1],
			"adjustment": "decrease",
			"reason": f"Performance below target ({percent}%). Reducing difficulty to build confidence.",
		}
	if accuracy < MINIMUM:
		reason = f"Performance needs improvement ({percent}%). Focus on: {', '.join(weak_areas)}"
	else:
		reason = f"Good performance ({percent}%). Maintaining current difficulty level."
	return {"level": current, "adjustment": "maintain", "reason": reason}


def focus_areas(mistakes: List[str], subject: str) -> List[str]:
	counts: Dict[str, int] = {}
	for category in mistakes:
		counts[category] = counts.get(category, 0) + 1
	areas = sorted(counts, key=lambda c: counts[c], reverse=True)
	if len(areas) < 3:
		general = GENERAL_AREAS.get(subject, GENERAL_AREAS["general"])
		areas.extend(general[: 3 - len(areas)])
	return areas[:5]


def optimal_question_count(accuracy: float) -> int:
	if accuracy >= 0.9:
		return 10
	if accuracy >= 0.7:
		return 8
	if accuracy >= 0.5:
		return 6
	return 5


def motivational_message(accuracy: float, direction: str) -> str:
	if accuracy >= 0.8:
		return "Excellent work! You're mastering these concepts. Ready for the next challenge?"
	if accuracy >= 0.6:
		return "Good progress! You're on the right track. Keep practicing and you'll see improvement."
	if direction == "improving":
		return "Great improvement! Your hard work is paying off. Keep up the momentum!"
	return "Learning takes time - you're building important skills. Every mistake is a step toward mastery!"


def fallback_recommendations(analysis: Dict[str, Any]) -> Dict[str, Any]:
	weakest = analysis["weakAreas"][0] if analysis["weakAreas"] else "fundamentals"
	return {
		"immediate": [f"Focus on {weakest}", "Take smaller practice quizzes", "Review incorrect answers"],
		"shortTerm": ["Complete daily practice sessions", "Work through tutorial exercises"],
		"longTerm": ["Build a portfolio project", "Master core concepts completely"],
		"resources": ["MDN Web Docs", "Practice coding challenges", "Interactive tutorials"],
		"motivational": motivational_message(analysis["accuracy"], analysis["trend"]),
	}


async def _recommendations(llm: Any, analysis: Dict[str, Any], adjustment: Dict[str, str]) -> Dict[str, Any]:
	system_prompt = (
		"You are an adaptive learning coach for web development.\n"
		f"Accuracy: {round(analysis['accuracy'] * 100)}%\n"
		f"Weak Areas: {', '.join(analysis['weakAreas']) or 'None identified'}\n"
		f"Strong Areas: {', '.join(analysis['strongAreas']) or 'None identified'}\n"
		f"Current Streak: {analysis['streak']} correct\nTrend: {analysis['trend']}\n"
		f"Difficulty adjustment: {adjustment['adjustment']} ({adjustment['reason']})\n\n"
		"Return ONLY JSON with keys: immediate, shortTerm, longTerm, resources (arrays of strings) and motivational (string)."
	)
	try:
		content = await llm.chat(
			system_prompt,
			"Generate specific, achievable learning recommendations for this student.",
			max_tokens=800,
			temperature=0.3,
		)
	except RuntimeError as exc:
		logger.warning("Recommendation call failed: %s", exc)
		return fallback_recommendations(analysis)
	outcome = parse_outcome(content)
	if isinstance(outcome, Parsed) and isinstance(outcome.value, dict):
		return outcome.value
	logger.info("Using fallback learning recommendations")
	return fallback_recommendations(analysis)


async def track_learning_progress(args: Dict[str, Any], llm: Any) -> Dict[str, Any]:
	results = args.get("testResults")
	if not isinstance(results, list):
		raise ValueError("Test results are required for progress tracking")
	results = [r for r in results if isinstance(r, dict)]
	current = args.get("currentDifficulty") or "junior"
	subject = args.get("subject") or "general"

	analysis = analyze_performance(results, subject)
	adjustment = difficulty_adjustment(analysis["accuracy"], current, analysis["weakAreas"])
	areas = focus_areas(analysis["mistakes"], subject)
	recommendations = await _recommendations(llm, analysis, adjustment)

	return tool_result({
		"userId": args.get("userId") or "default",
		"performance": {
			"accuracy": analysis["accuracy"],
			"totalQuestions": len(results),
			"correctAnswers": analysis["correctCount"],
			"incorrectAnswers": analysis["incorrectCount"],
			"currentStreak": analysis["streak"],
			"improvementTrend": analysis["trend"],
		},
		"difficulty": {"current": current, "recommended": adjustment["level"], **adjustment},
		"weakAreas": analysis["weakAreas"],
		"strongAreas": analysis["strongAreas"],
		"focusAreas": areas,
		"recommendations": recommendations,
		"nextSessionConfig": {
			"difficulty": adjustment["level"],
			"topics": areas[:3],
			"questionCount": optimal_question_count(analysis["accuracy"]),
			"emphasis": analysis["weakAreas"][:2],
		},
	})


async def get_progress_stats(args: Dict[str, Any], llm: Any = None) -> Dict[str, Any]:
	# No persistence layer: the figures are a fixed sample
	return tool_result({
		"userId": args.get("userId") or "default",
		"timeframe": args.get("timeframe") or "week",
		"overall": {
			"testsCompleted": 15,
			"averageAccuracy": 0.73,
			"totalQuestions": 120,
			"correctAnswers": 88,
			"currentStreak": 5,
			"longestStreak": 8,
		},
		"byCategory": {
			"html": {"accuracy": 0.85, "count": 20, "trend": "improving"},
			"css": {"accuracy": 0.65, "count": 25, "trend": "stable"},
			"javascript": {"accuracy": 0.7, "count": 30, "trend": "improving"},
			"api": {"accuracy": 0.6, "count": 15, "trend": "declining"},
		},
		"weakAreas": ["JavaScript Async", "CSS Grid"],
		"strongAreas": ["HTML Semantics", "DOM Events"],
		"currentDifficulty": "junior",
		"recommendedDifficulty": "intermediate",
		"recommendedNextSteps": [
			"Focus on API concepts - accuracy below 70%",
			"Continue JavaScript practice - good improvement trend",
			"Challenge yourself with intermediate HTML",
		],
	})
