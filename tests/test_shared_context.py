# tests/test_shared_context.py
import asyncio

import pytest
from conftest import SOURCE_TEXT, ScriptedGenerator, UsageReportingGenerator

from config import settings
from core.exceptions import GenerationCancelledError
from models import CEFRLevel
from processing.shared_context import (
    GENERIC_VOCABULARY,
    SharedContextBuilder,
    contextual_title,
    fallback_summary,
    fallback_themes,
    fallback_vocabulary,
)


@pytest.mark.asyncio
async def test_build_uses_model_output():
    generator = ScriptedGenerator()
    ctx = await SharedContextBuilder(generator).build(SOURCE_TEXT, "discussion", "b1", "english")
    assert ctx.difficulty_level is CEFRLevel.B1
    assert ctx.key_vocabulary[:3] == ("energy", "solar", "carbon")
    assert ctx.main_themes[0] == "renewable energy"
    assert ctx.summary.startswith("Countries use more solar")
    assert generator.calls["context_vocabulary"] == 1
    assert generator.calls["context_themes"] == 1
    assert generator.calls["context_summary"] == 1


@pytest.mark.asyncio
async def test_build_falls_back_when_every_call_fails():
    boom = ConnectionError("network down")
    generator = ScriptedGenerator(
        context_vocabulary=boom, context_themes=boom, context_summary=boom
    )
    ctx = await SharedContextBuilder(generator).build(SOURCE_TEXT, "discussion", CEFRLevel.A2)
    assert ctx.key_vocabulary
    assert ctx.key_vocabulary[0] == "energy"
    assert ctx.main_themes
    assert ctx.summary.startswith("Renewable energy is changing")
    assert len(ctx.summary) <= 300


@pytest.mark.asyncio
async def test_build_falls_back_on_too_few_words():
    generator = ScriptedGenerator(context_vocabulary='["energy"]', context_themes="", context_summary="   ")
    ctx = await SharedContextBuilder(generator).build(SOURCE_TEXT, "grammar", "B2")
    assert len(ctx.key_vocabulary) > 1
    assert ctx.summary


@pytest.mark.asyncio
async def test_build_accepts_plain_line_lists():
    words = "\n".join(["- Energy", "- Solar", "- Carbon", "- Climate", "- Battery", "- Policy", "- Future"])
    generator = ScriptedGenerator(context_vocabulary=words)
    ctx = await SharedContextBuilder(generator).build(SOURCE_TEXT, "discussion", "B1")
    assert ctx.key_vocabulary[:2] == ("energy", "solar")


def test_fallback_vocabulary_is_never_empty():
    assert fallback_vocabulary("a an the of") == list(GENERIC_VOCABULARY)
    ranked = fallback_vocabulary("energy energy solar solar wind")
    assert ranked[:2] == ["energy", "solar"]


def test_fallback_themes_and_summary():
    themes = fallback_themes(SOURCE_TEXT)
    assert themes and "energy" in themes
    summary = fallback_summary(SOURCE_TEXT)
    assert summary.startswith("Renewable energy")


@pytest.mark.parametrize(
    "text,expected",
    [
        ("We talk about golf and the Ryder Cup this year.", "Ryder Cup Golf Discussion"),
        ("New technology helps doctors.", "Technology Today Discussion"),
        ("yesterday Marie walked to the market.", "Marie Discussion"),
        ("just some plain words here", "Business English - B2 Level"),
    ],
)
def test_contextual_title(text, expected):
    assert contextual_title(text, "business", CEFRLevel.B2) == expected


@pytest.mark.asyncio
async def test_slow_context_call_times_out_to_fallback():
    async def hang(_prompt):
        await asyncio.sleep(5)
        return "[]"

    generator = ScriptedGenerator(context_vocabulary=hang)
    builder = SharedContextBuilder(generator, timeout=0.05)
    ctx = await asyncio.wait_for(builder.build(SOURCE_TEXT, "discussion", "B1"), timeout=2)
    assert ctx.key_vocabulary[0] == "energy"
    assert ctx.key_vocabulary == tuple(fallback_vocabulary(SOURCE_TEXT))
    assert ctx.main_themes[0] == "renewable energy"


@pytest.mark.asyncio
async def test_cancel_during_context_call_raises():
    cancel = asyncio.Event()

    async def cancel_then_hang(_prompt):
        cancel.set()
        await asyncio.sleep(5)
        return "never"

    generator = ScriptedGenerator(context_summary=cancel_then_hang)
    builder = SharedContextBuilder(generator, timeout=30)
    with pytest.raises(GenerationCancelledError):
        await asyncio.wait_for(
            builder.build(SOURCE_TEXT, "discussion", "B1", cancel_event=cancel), timeout=2
        )


@pytest.mark.asyncio
async def test_cancelled_session_makes_no_context_calls():
    cancel = asyncio.Event()
    cancel.set()
    generator = ScriptedGenerator()
    with pytest.raises(GenerationCancelledError):
        await SharedContextBuilder(generator).build(
            SOURCE_TEXT, "discussion", "B1", cancel_event=cancel
        )
    assert sum(generator.calls.values()) == 0


@pytest.mark.asyncio
async def test_context_calls_use_context_temperature_cache_and_report_usage():
    generator = UsageReportingGenerator()
    reported = []
    await SharedContextBuilder(generator, on_usage=reported.append).build(
        SOURCE_TEXT, "discussion", "B1"
    )
    assert {temp for _kind, temp in generator.temperatures} == {settings.TEMPERATURE_CONTEXT}
    assert len(generator.cached_flags) == 3
    assert all(cached for _kind, cached in generator.cached_flags)
    assert reported == [UsageReportingGenerator.usage] * 3
