from __future__ import annotations
import json
from typing import Any, Dict, List

from ..parsing import tool_result


TOPIC_KEYWORDS = {
	"function": "functions",
	"variable": "variables",
	"array": "arrays",
	"object": "objects",
	"dom": "DOM manipulation",
	"event": "event handling",
	"async": "asynchronous programming",
	"fetch": "API calls",
	"html": "HTML structure",
	"css": "CSS styling",
	"semantic": "semantic HTML",
	"responsive": "responsive design",
}


def extract_topics(question: Dict[str, Any]) -> List[str]:
	prompt = str(question.get("prompt", "")).lower()
	topics = [topic for keyword, topic in TOPIC_KEYWORDS.items() if keyword in prompt]
	return topics or [question.get("category") or "general concept"]


def _ratio(result: Dict[str, Any]) -> float:
	max_points = result.get("max") or 0
	return (result.get("score") or 0) / max_points if max_points else 0.0


def analyze_missed(missed: List[Dict[str, Any]], grades: List[Dict[str, Any]]) -> Dict[str, Any]:
	concepts: Dict[str, Dict[str, Any]] = {}
	ratios: Dict[str, float] = {}
	for question, grade in zip(missed, grades):
		if not grade or _ratio(grade) >= 0.7:
			continue
		category = question.get("category") or "general"
		entry = concepts.setdefault(category, {"topics": [], "totalMissed": 0, "questions": []})
		entry["topics"].extend(extract_topics(question))
		entry["totalMissed"] += 1
		entry["questions"].append({
			"id": question.get("id"),
			"prompt": str(question.get("prompt", ""))[:100],
			"scorePercent": _ratio(grade) * 100,
		})
		ratios[category] = ratios.get(category, 0.0) + _ratio(grade)
	averages = {c: ratios[c] / concepts[c]["totalMissed"] for c in concepts}
	return {"conceptMap": concepts, "categoryScores": averages}


def prioritize_topics(analysis: Dict[str, Any]) -> List[str]:
	ranked = []
	for category, data in analysis["conceptMap"].items():
		severity = 1 - analysis["categoryScores"].get(category, 0)
		priority = data["totalMissed"] * severity
		ranked.extend((priority, topic) for topic in data["topics"])
	ranked.sort(key=lambda item: item[0], reverse=True)
	ordered: List[str] = []
	for _, topic in ranked:
		if topic not in ordered:
			ordered.append(topic)
	return ordered


async def derive_focus_topics(args: Dict[str, Any], llm: Any = None) -> Dict[str, Any]:
	missed = args.get("missedQuestions")
	grades = args.get("gradeResults")
	if not isinstance(missed, list) or not isinstance(grades, list):
		raise ValueError("Missing required parameters for focus topic derivation")
	analysis = analyze_missed(missed, grades)
	topics = prioritize_topics(analysis)
	return tool_result({
		"focusTopics": topics[:3],
		"detailedAnalysis": analysis,
		"studyPlan": [
			{
				"day": day,
				"topic": topic,
				"activities": [f"Review {topic} documentation", "Complete 3-5 practice exercises", f"Take a short quiz on {topic}"],
				"estimatedTime": "30-45 minutes",
			}
			for day, topic in enumerate(topics[:5], start=1)
		],
	})


def _check_javascript(code: str, report: Dict[str, Any]) -> None:
	if "==" in code and "===" not in code:
		report["style"]["suggestions"].append("Use === for strict equality comparison")
		report["style"]["score"] -= 10
	if "var " in code:
		report["style"]["suggestions"].append("Consider using 'let' or 'const' instead of 'var'")
		report["style"]["score"] -= 5
	if "try" not in code and ("fetch" in code or "await" in code):
		report["security"]["warnings"].append("Consider adding error handling for async operations")
		report["security"]["safe"] = False
	if code.count("document.getElementById") > 2:
		report["performance"]["optimizations"].append("Consider caching DOM queries")
		report["performance"]["efficient"] = False


def _check_html(code: str, report: Dict[str, Any]) -> None:
	if "<!DOCTYPE" not in code.upper():
		report["syntax"]["issues"].append("Missing DOCTYPE declaration")
		report["syntax"]["valid"] = False
	if "<img" in code and "alt=" not in code:
		report["style"]["suggestions"].append("Add alt attributes to images for accessibility")
		report["style"]["score"] -= 15
	if "lang=" not in code:
		report["style"]["suggestions"].append("Add lang attribute to html element")
		report["style"]["score"] -= 5


def _check_css(code: str, report: Dict[str, Any]) -> None:
	if "!important" in code:
		report["style"]["suggestions"].append("Avoid using !important when possible")
		report["style"]["score"] -= 10
	if "box-sizing: border-box" not in code:
		report["performance"]["optimizations"].append("Consider using box-sizing: border-box")


def _check_json(code: str, report: Dict[str, Any]) -> None:
	try:
		json.loads(code)
	except json.JSONDecodeError as exc:
		report["syntax"]["valid"] = False
		report["syntax"]["issues"].append(f"JSON syntax error: {exc}")


_CHECKS = {"javascript": _check_javascript, "html": _check_html, "css": _check_css, "json": _check_json}


async def validate_web_code(args: Dict[str, Any], llm: Any = None) -> Dict[str, Any]:
	code = args.get("code")
	language = args.get("language")
	if not code or not language:
		raise ValueError("Missing required parameters for code validation")
	report: Dict[str, Any] = {
		"syntax": {"valid": True, "issues": []},
		"style": {"score": 100, "suggestions": []},
		"security": {"safe": True, "warnings": []},
		"performance": {"efficient": True, "optimizations": []},
	}
	check = _CHECKS.get(str(language).lower())
	if check:
		check(code, report)

	overall = round((
		report["style"]["score"]
		+ (100 if report["syntax"]["valid"] else 50)
		+ (100 if report["security"]["safe"] else 70)
		+ (100 if report["performance"]["efficient"] else 80)
	) / 4)
	recommendations = []
	if not report["syntax"]["valid"]:
		recommendations.append({"type": "syntax", "priority": "high", "details": report["syntax"]["issues"]})
	if report["style"]["score"] < 80:
		recommendations.append({"type": "style", "priority": "medium", "details": report["style"]["suggestions"]})
	if not report["security"]["safe"]:
		recommendations.append({"type": "security", "priority": "high", "details": report["security"]["warnings"]})
	return tool_result({
		"overallScore": overall,
		"language": language,
		"validation": report,
		"recommendations": recommendations,
	})
