# tests/conftest.py
import inspect
import json
import os
import sys
from collections import Counter

import pytest

# Ensure repository root is on PYTHONPATH for tests
repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if repo_root not in sys.path:
    sys.path.insert(0, repo_root)

# Ensure placeholder secrets do not trigger validators during tests
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("ENABLE_RICH_PROGRESS", "false")
os.environ.setdefault("LOG_FILE", "")

from core import llm_interface  # noqa: E402
from models import CEFRLevel, SharedContext  # noqa: E402

SOURCE_TEXT = (
    "Renewable energy is changing the way many countries produce electricity. "
    "Solar panels and wind turbines now supply a growing share of power in homes and factories. "
    "Scientists study how these sources can reduce carbon emissions and protect the climate. "
    "However, storing energy for cloudy days and calm nights is still a difficult problem. "
    "Engineers are developing better batteries that can hold energy for many hours. "
    "Governments also create policy to encourage families to install solar panels on their roofs. "
    "Many experts believe that clean energy will become cheaper than coal within the next decade. "
    "Students who learn about these changes understand why the future of energy matters to everyone."
)

VOCABULARY_WORDS = ["energy", "solar", "carbon", "climate", "battery", "policy"]


def vocabulary_response(examples_per_word: int, words=None) -> str:
    entries = []
    for word in words or VOCABULARY_WORDS:
        entries.append(
            {
                "word": word,
                "meaning": f"a short meaning for {word}",
                "examples": [
                    f"Example {n} shows how people use the word {word} today."
                    for n in range(1, examples_per_word + 1)
                ],
            }
        )
    return json.dumps(entries)


def dialogue_response(lines: int = 12) -> str:
    speakers = ("Anna", "Ben")
    rows = []
    for index in range(lines):
        rows.append(
            f"{speakers[index % 2]}: I think solar energy and climate policy matter for our city today."
        )
    return "\n".join(rows)


PARAGRAPH = (
    "Many families now use solar energy at home. They want to reduce carbon "
    "emissions and protect the climate for the future, so they install panels on their roofs."
)

GOOD_RESPONSES = {
    "context_vocabulary": json.dumps(VOCABULARY_WORDS),
    "context_themes": json.dumps(["renewable energy", "climate change", "energy storage"]),
    "context_summary": "Countries use more solar and wind power. Storage is still a problem.",
    "warmup": "\n".join(
        [
            "What kinds of energy do you use at home every day?",
            "How do you feel about the weather getting hotter in summer?",
            "Would you like to have solar panels on your house?",
        ]
    ),
    "vocabulary": vocabulary_response(4),
    "reading": PARAGRAPH,
    "comprehension": "\n".join(
        [
            "What do solar panels and wind turbines supply?",
            "Why do scientists study renewable energy sources?",
            "What problem do cloudy days and calm nights create?",
            "What are engineers developing to store energy?",
            "What do experts believe about clean energy prices?",
        ]
    ),
    "discussion": "\n".join(
        [
            "What kind of energy does your country use most?",
            "Why do you think some people do not trust solar power?",
            "How could your town use less energy?",
            "Should governments pay families to install solar panels?",
            "Which energy source do you think is best for the future?",
        ]
    ),
    "dialogue": dialogue_response(),
    "grammar": json.dumps(
        {
            "focus": "Present continuous for changing situations",
            "rule": "Use the present continuous for trends that are changing now.",
            "form": "subject + am/is/are + verb-ing",
            "usage": "We use it to describe developments that are happening around now.",
            "examples": [
                "Renewable energy is changing the world.",
                "Engineers are developing better batteries.",
                "Prices are falling every year.",
            ],
            "exercises": [
                {"prompt": "Solar power ___ (grow) quickly.", "answer": "is growing"},
                {"prompt": "Engineers ___ (build) new batteries.", "answer": "are building"},
                {"prompt": "The climate ___ (change).", "answer": "is changing"},
                {"prompt": "We ___ (use) less coal.", "answer": "are using"},
                {"prompt": "Prices ___ (fall) this year.", "answer": "are falling"},
            ],
        }
    ),
    "pronunciation": json.dumps(
        {
            "words": [
                {
                    "word": word,
                    "ipa": ipa,
                    "tips": [f"Stress the first syllable of {word}."],
                    "practiceSentence": f"Please say the word {word} slowly twice.",
                }
                for word, ipa in (
                    ("energy", "/ˈenədʒi/"),
                    ("climate", "/ˈklaɪmət/"),
                    ("carbon", "/ˈkɑːbən/"),
                    ("solar", "/ˈsəʊlə/"),
                    ("policy", "/ˈpɒləsi/"),
                )
            ],
            "tongueTwisters": [
                {"text": "Six solar cells sell slowly on Saturday.", "targetSounds": ["/s/"]},
                {"text": "Three thin thinkers thought through the theory.", "targetSounds": ["/θ/"]},
            ],
        }
    ),
    "wrapup": "\n".join(
        [
            "Which new energy words will you use this week?",
            "Tell your tutor one idea from the lesson that surprised you.",
            "How would you explain renewable energy to a friend?",
        ]
    ),
}

_PROMPT_MARKERS = (
    ("most useful vocabulary words", "context_vocabulary"),
    ("main themes of the text", "context_themes"),
    ("Summarise the text", "context_summary"),
    ("writing the warm-up", "warmup"),
    ("writing the vocabulary section", "vocabulary"),
    ("adapting a text", "reading"),
    ("writing comprehension questions", "comprehension"),
    ("writing discussion questions", "discussion"),
    ("writing a dialogue", "dialogue"),
    ("writing the grammar section", "grammar"),
    ("writing the pronunciation section", "pronunciation"),
    ("writing the wrap-up", "wrapup"),
)


def prompt_kind(prompt: str) -> str:
    for marker, kind in _PROMPT_MARKERS:
        if marker in prompt:
            return kind
    raise AssertionError(f"Unrecognised prompt: {prompt[:80]}")


class ScriptedGenerator:
    """Text generator that answers by prompt kind.

    A response may be a string, an exception to raise, a list consumed one
    item per call (the last item repeats), or a callable taking the prompt.
    A callable may be a coroutine function.
    """

    def __init__(self, **responses):
        self.responses = {**GOOD_RESPONSES, **responses}
        self.prompts: list[tuple[str, str]] = []
        self.temperatures: list[tuple[str, float | None]] = []
        self.calls: Counter = Counter()

    async def generate(self, prompt: str, temperature: float | None = None) -> str:
        kind = prompt_kind(prompt)
        self.calls[kind] += 1
        self.prompts.append((kind, prompt))
        self.temperatures.append((kind, temperature))
        value = self.responses[kind]
        if isinstance(value, list):
            value = value[min(self.calls[kind], len(value)) - 1]
        if callable(value) and not isinstance(value, BaseException):
            value = value(prompt)
            if inspect.isawaitable(value):
                value = await value
        if isinstance(value, BaseException):
            raise value
        return value

    def prompts_for(self, kind: str) -> list[str]:
        return [prompt for k, prompt in self.prompts if k == kind]


class UsageReportingGenerator(ScriptedGenerator):
    """Scripted generator that also reports token usage for every call."""

    usage = {"prompt_tokens": 10, "completion_tokens": 5}

    def __init__(self, **responses):
        super().__init__(**responses)
        self.cached_flags: list[tuple[str, bool]] = []

    async def generate_with_usage(self, prompt, temperature=None, cached=False):
        self.cached_flags.append((prompt_kind(prompt), cached))
        return await self.generate(prompt, temperature), dict(self.usage)


@pytest.fixture(autouse=True)
def no_tokenizer(monkeypatch):
    """Use the character-based token estimate instead of loading encodings."""
    monkeypatch.setattr(llm_interface, "_get_tokenizer", lambda _model_name: None)


@pytest.fixture
def scripted_generator():
    return ScriptedGenerator


@pytest.fixture
def source_text():
    return SOURCE_TEXT


@pytest.fixture
def shared_context():
    return SharedContext(
        source_text=SOURCE_TEXT,
        difficulty_level=CEFRLevel.B1,
        key_vocabulary=tuple(VOCABULARY_WORDS),
        main_themes=("renewable energy", "climate change"),
        summary="Countries use more solar and wind power.",
        target_language="english",
        lesson_type="discussion",
        lesson_title="Science & Discovery Discussion",
    )
