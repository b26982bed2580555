import pytest
from loguru import logger
from pydantic import ValidationError

from pophealth.config import (
    COLOR_THEMES,
    TIER_ORDER,
    DisplayMode,
    Settings,
    get_settings,
    scale_for_theme,
    theme_palette,
)
from pophealth.exceptions import ConfigurationError, PopHealthError
from pophealth.logs import configure_logging


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv('POPHEALTH_CATEGORY_COUNT', raising=False)
        settings = Settings()
        assert settings.category_count == 10
        assert settings.display_mode is DisplayMode.COUNT
        assert settings.color_theme == 'iridis'
        assert settings.max_pivot_rows == 400

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv('POPHEALTH_CATEGORY_COUNT', '5')
        monkeypatch.setenv('POPHEALTH_DISPLAY_MODE', 'percentage')
        monkeypatch.setenv('POPHEALTH_COLOR_THEME', 'grayscale')
        settings = Settings()
        assert settings.category_count == 5
        assert settings.display_mode is DisplayMode.PERCENTAGE
        assert settings.color_theme == 'grayscale'

    def test_rejects_unknown_theme(self):
        with pytest.raises(ValidationError):
            Settings(color_theme='sepia')

    def test_rejects_zero_categories(self):
        with pytest.raises(ValidationError):
            Settings(category_count=0)

    def test_get_settings_cached(self):
        get_settings.cache_clear()
        assert get_settings() is get_settings()
        get_settings.cache_clear()


class TestThemes:
    def test_every_theme_covers_every_tier(self):
        for theme in COLOR_THEMES:
            assert set(theme_palette(theme)) == set(TIER_ORDER)

    def test_unknown_theme(self):
        with pytest.raises(ConfigurationError) as excinfo:
            scale_for_theme('sepia')
        assert 'sepia' in str(excinfo.value)


def test_display_mode_parse():
    assert DisplayMode.parse(' Percentage ') is DisplayMode.PERCENTAGE
    assert DisplayMode.parse(DisplayMode.COUNT) is DisplayMode.COUNT
    with pytest.raises(ConfigurationError):
        DisplayMode.parse('ratio')


def test_error_context_in_message():
    error = ConfigurationError('Unknown display mode', {'mode': 'ratio'})
    assert isinstance(error, PopHealthError)
    assert str(error) == "Unknown display mode (mode='ratio')"
    assert str(PopHealthError('plain')) == 'plain'


def test_configure_logging_replaces_sinks():
    messages = []
    configure_logging('debug')
    logger.add(messages.append, level='INFO', format='{message}')
    logger.info('loaded {} events', 3)
    assert messages and messages[-1].strip() == 'loaded 3 events'
    logger.remove()
