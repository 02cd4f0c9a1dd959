# validators/grammar.py
"""Grammar section: one explained grammar point with practice exercises."""

from __future__ import annotations

from typing import Any

from models import CEFRLevel, GrammarContent, GrammarExercise, SharedContext
from utils.response_parsing import as_list, as_str_list, extract_json

from .base import IssueCollector, SectionValidator

MIN_EXERCISES = 5
MIN_EXAMPLES = 3
MIN_EXPLANATION_LENGTH = 10


class GrammarValidator(SectionValidator):
    section_name = "grammar"
    instruction = "Study the grammar point and complete the exercises:"
    error_penalty = 15

    def parse_items(self, raw_text: str) -> list[Any]:
        data = extract_json(raw_text)
        if isinstance(data, dict) and isinstance(data.get("grammar"), dict):
            data = data["grammar"]
        if not isinstance(data, dict):
            return []
        exercises = []
        for entry in as_list(data.get("exercises")):
            if isinstance(entry, dict):
                exercises.append(
                    GrammarExercise(
                        prompt=str(entry.get("prompt") or entry.get("question") or "").strip(),
                        answer=str(entry.get("answer") or "").strip(),
                    )
                )
            elif isinstance(entry, str):
                exercises.append(GrammarExercise(prompt=entry.strip()))
        return [
            GrammarContent(
                focus=str(data.get("focus") or "").strip(),
                rule=str(data.get("rule") or data.get("explanation") or "").strip(),
                form=str(data.get("form") or "").strip(),
                usage=str(data.get("usage") or "").strip(),
                examples=as_str_list(data.get("examples")),
                exercises=exercises,
            )
        ]

    def check(
        self,
        items: list[Any],
        level: CEFRLevel,
        context: SharedContext,
        collector: IssueCollector,
    ) -> int:
        grammar = next((item for item in items if isinstance(item, GrammarContent)), None)
        if grammar is None:
            collector.error(
                "structural_error",
                "No grammar content could be parsed from the response",
                "Return a JSON object with rule, form, usage, examples and exercises",
            )
            return 0

        for field_name in ("rule", "form", "usage"):
            if len(getattr(grammar, field_name)) < MIN_EXPLANATION_LENGTH:
                collector.error(
                    "structural_error",
                    f"Grammar {field_name} explanation missing or too short",
                    f"Explain the {field_name} of the grammar point clearly",
                )
        if len(grammar.examples) < MIN_EXAMPLES:
            collector.error(
                "wrong_count",
                "Insufficient example sentences",
                f"Provide at least {MIN_EXAMPLES} example sentences",
            )
        if len(grammar.exercises) < MIN_EXERCISES:
            collector.error(
                "wrong_count",
                f"Insufficient exercises: expected at least {MIN_EXERCISES}, got {len(grammar.exercises)}",
                f"Provide at least {MIN_EXERCISES} practice exercises",
            )
        for index, exercise in enumerate(grammar.exercises, start=1):
            if len(exercise.prompt) < 5:
                collector.error("structural_error", f"Exercise {index} has invalid prompt")
            if not exercise.answer:
                collector.error(
                    "structural_error",
                    f"Exercise {index} missing answer",
                    "Give every exercise an answer",
                )
        return 10 if len(grammar.exercises) >= MIN_EXERCISES else 0
