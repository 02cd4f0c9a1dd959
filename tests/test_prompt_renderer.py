import pytest
from jinja2 import DictLoader, Environment, StrictUndefined, UndefinedError
from pydantic import BaseModel

import prompt_renderer


def test_render_prompt_with_custom_env(monkeypatch):
    env = Environment(
        loader=DictLoader({"greet.j2": "Hello {{ name }}  "}), autoescape=False
    )
    monkeypatch.setattr(prompt_renderer, "_env", env)
    result = prompt_renderer.render_prompt("greet.j2", {"name": "Bob"})
    assert result == "Hello Bob\n"


class Word(BaseModel):
    word: str
    part_of_speech: str | None = None


def test_tojson_with_pydantic_object(monkeypatch):
    env = Environment(loader=DictLoader({"obj.j2": "{{ item | tojson }}"}), autoescape=False)
    env.filters["tojson"] = prompt_renderer._tojson
    monkeypatch.setattr(prompt_renderer, "_env", env)
    result = prompt_renderer.render_prompt("obj.j2", {"item": Word(word="solar")})
    assert result == '{"word": "solar"}\n'


def test_tojson_serialises_tuples():
    assert prompt_renderer._tojson({"words": ("a", "b")}) == '{"words": ["a", "b"]}'


def test_missing_variable_raises(monkeypatch):
    env = Environment(
        loader=DictLoader({"strict.j2": "{{ missing }}"}), undefined=StrictUndefined
    )
    monkeypatch.setattr(prompt_renderer, "_env", env)
    with pytest.raises(UndefinedError):
        prompt_renderer.render_prompt("strict.j2", {})


def test_section_template_path():
    assert prompt_renderer.section_template("warmup") == "sections/warmup.j2"


def test_warmup_prompt_includes_context_and_feedback(shared_context):
    prompt = prompt_renderer.render_prompt(
        "sections/warmup.j2",
        {
            "ctx": shared_context,
            "feedback_lines": ["- Questions must end with a question mark."],
            "attempt": 2,
            "previous_score": 40,
        },
    )
    assert "B1 english lesson" in prompt
    assert "Key vocabulary: energy, solar, carbon" in prompt
    assert "attempt 2" in prompt
    assert "score 40/100" in prompt


def test_warmup_prompt_without_feedback(shared_context):
    prompt = prompt_renderer.render_prompt(
        "sections/warmup.j2",
        {"ctx": shared_context, "feedback_lines": [], "attempt": 1, "previous_score": 0},
    )
    assert "IMPORTANT" not in prompt
