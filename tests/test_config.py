# tests/test_config.py

import config
from config import GenerationConfig, LessonSettings


def test_placeholder_api_key_warns(monkeypatch):
    warnings: list[str] = []

    def fake_warning(msg: str, **_kw: object) -> None:
        warnings.append(msg)

    monkeypatch.setattr(config.logger, "warning", fake_warning)
    LessonSettings(OPENAI_API_KEY="nope")
    assert any("OPENAI_API_KEY" in msg for msg in warnings)


def test_model_defaults_follow_generation_model():
    settings = LessonSettings(OPENAI_API_KEY="valid", GENERATION_MODEL="model-x")
    assert settings.FALLBACK_GENERATION_MODEL == "model-x"
    assert settings.CONTEXT_MODEL == "model-x"


def test_generation_config_defaults():
    cfg = GenerationConfig()
    assert cfg.min_word_count == 50
    assert cfg.min_quality_score == 60
    assert cfg.max_attempts == 2
    assert cfg.accept_best_on_exhaustion is True
    assert cfg.strict_mode is False


def test_generation_config_from_settings_overrides(monkeypatch):
    monkeypatch.setattr(config.settings, "MIN_WORD_COUNT", 80)
    cfg = GenerationConfig.from_settings(strict_mode=True)
    assert cfg.min_word_count == 80
    assert cfg.strict_mode is True
