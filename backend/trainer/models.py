from __future__ import annotations
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class ToolCallResult(BaseModel):
	ok: bool
	result: Optional[Any] = None
	error: Optional[str] = None
	# Unparseable model output, kept for diagnostics
	raw: Optional[str] = None


class GenerateRequest(BaseModel):
	topics: List[str] = Field(default_factory=lambda: ["javascript", "html"])
	numQuestions: int = Field(default=5, ge=1, le=20)
	difficulty: str = "junior"
	focusTopics: List[str] = Field(default_factory=list)
	framework: str = "vanilla"


class GradeRequest(BaseModel):
	test: Optional[Dict[str, Any]] = None
	answers: Optional[Dict[str, Any]] = None
	strictness: str = "standard"


class ExplainRequest(BaseModel):
	question: Optional[Dict[str, Any]] = None
	studentAnswer: Optional[str] = None
	expectedAnswer: Optional[str] = None
	context: Optional[str] = None


class ProgressRequest(BaseModel):
	testResults: Optional[List[Dict[str, Any]]] = None
	currentDifficulty: str = "junior"
	subject: str = "general"
	userId: str = "default"
