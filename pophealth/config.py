"""
Configuration for the population-health engine.

Two kinds of configuration live here:

    - Settings: process-wide defaults read from the environment
      (POPHEALTH_* variables or a .env file) via pydantic-settings.
    - Immutable per-call objects (TierScale, RiskBand) and the static
      tables they default to (color themes, risk bands). The engine never
      stores these; every pipeline call receives them explicitly.
"""

from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional, Tuple

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pophealth.exceptions import ConfigurationError


# =============================================================================
# DISPLAY MODE
# =============================================================================

class DisplayMode(str, Enum):
    COUNT = 'count'
    PERCENTAGE = 'percentage'

    @classmethod
    def parse(cls, value):
        """Accept a DisplayMode or its string value."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ConfigurationError(
                'Unknown display mode',
                {'mode': value, 'allowed': [m.value for m in cls]}
            ) from None


# =============================================================================
# COLOR TIERS & THEMES
# =============================================================================

class ColorTier(str, Enum):
    HIGHEST = 'Highest'
    HIGH = 'High'
    MEDIUM = 'Medium'
    LOW = 'Low'
    LOWEST = 'Lowest'


# Ordered from most to least intense
TIER_ORDER = (ColorTier.HIGHEST, ColorTier.HIGH, ColorTier.MEDIUM, ColorTier.LOW, ColorTier.LOWEST)

COLOR_THEMES: Dict[str, Dict[ColorTier, str]] = {
    'iridis': {
        ColorTier.HIGHEST: '#6A0DAD',
        ColorTier.HIGH: '#9370DB',
        ColorTier.MEDIUM: '#B19CD9',
        ColorTier.LOW: '#CCCCFF',
        ColorTier.LOWEST: '#F8F8FF',
    },
    'viridis': {
        ColorTier.HIGHEST: '#440154',
        ColorTier.HIGH: '#31688E',
        ColorTier.MEDIUM: '#35B779',
        ColorTier.LOW: '#90D743',
        ColorTier.LOWEST: '#FDE725',
    },
    'redBlue': {
        ColorTier.HIGHEST: '#9E0142',
        ColorTier.HIGH: '#F46D43',
        ColorTier.MEDIUM: '#FFFFFF',
        ColorTier.LOW: '#74ADD1',
        ColorTier.LOWEST: '#313695',
    },
    'grayscale': {
        ColorTier.HIGHEST: '#000000',
        ColorTier.HIGH: '#444444',
        ColorTier.MEDIUM: '#777777',
        ColorTier.LOW: '#BBBBBB',
        ColorTier.LOWEST: '#EEEEEE',
    },
}


def theme_palette(theme):
    """Return the tier -> hex color mapping for a theme name."""
    try:
        return COLOR_THEMES[theme]
    except KeyError:
        raise ConfigurationError(
            'Unknown color theme',
            {'theme': theme, 'allowed': sorted(COLOR_THEMES)}
        ) from None


@dataclass(frozen=True)
class TierScale:
    """
    Lower bounds for the four upper color tiers; anything below `low` is Lowest.

    Thresholds apply to max(normalized, log-scaled) intensity, both in [0, 1].
    """
    highest: float = 0.80
    high: float = 0.60
    medium: float = 0.40
    low: float = 0.20

    def __post_init__(self):
        bounds = (self.highest, self.high, self.medium, self.low)
        if not all(0.0 <= b <= 1.0 for b in bounds):
            raise ConfigurationError('Tier thresholds must lie in [0, 1]', {'thresholds': bounds})
        if any(a <= b for a, b in zip(bounds, bounds[1:])):
            raise ConfigurationError('Tier thresholds must be strictly descending', {'thresholds': bounds})

    def steps(self):
        """(threshold, tier) pairs from highest to lowest."""
        return (
            (self.highest, ColorTier.HIGHEST),
            (self.high, ColorTier.HIGH),
            (self.medium, ColorTier.MEDIUM),
            (self.low, ColorTier.LOW),
        )


DEFAULT_TIER_SCALE = TierScale()

# Themes may ship their own thresholds; the rest use DEFAULT_TIER_SCALE.
THEME_SCALES: Dict[str, TierScale] = {}


def scale_for_theme(theme):
    theme_palette(theme)
    return THEME_SCALES.get(theme, DEFAULT_TIER_SCALE)


# =============================================================================
# RISK BANDS
# =============================================================================

@dataclass(frozen=True)
class RiskBand:
    """Closed count range [min_count, max_count]; max_count=None means unbounded."""
    label: str
    min_count: int
    max_count: Optional[int] = None

    @property
    def display_label(self):
        if self.max_count is None:
            span = f'{self.min_count}+'
        elif self.min_count == self.max_count:
            span = f'{self.min_count}'
        else:
            span = f'{self.min_count}-{self.max_count}'
        name = 'No' if self.label == 'None' else self.label
        return f'{name} Risk ({span} symptoms)'


DEFAULT_RISK_BANDS: Tuple[RiskBand, ...] = (
    RiskBand('None', 0, 0),
    RiskBand('Low', 1, 9),
    RiskBand('Medium', 10, 19),
    RiskBand('Medium-High', 20, 49),
    RiskBand('High', 50, 99),
    RiskBand('Very High', 100, None),
)


def validate_bands(bands):
    """
    Check that bands are ordered, contiguous and exhaustive over [0, inf).

    Returns:
        tuple: The bands as a tuple

    Raises:
        ConfigurationError: If the bands do not partition [0, inf)
    """
    bands = tuple(bands)
    if not bands:
        raise ConfigurationError('At least one risk band is required')
    labels = [band.label for band in bands]
    if len(set(labels)) != len(labels):
        raise ConfigurationError('Risk band labels must be unique', {'labels': labels})
    if bands[0].min_count != 0:
        raise ConfigurationError('First risk band must start at 0', {'band': bands[0].label})
    for prev, band in zip(bands, bands[1:]):
        if prev.max_count is None or band.min_count != prev.max_count + 1:
            raise ConfigurationError(
                'Risk bands must be contiguous and non-overlapping',
                {'previous': prev.label, 'next': band.label}
            )
    for band in bands:
        if band.max_count is not None and band.max_count < band.min_count:
            raise ConfigurationError('Risk band has max below min', {'band': band.label})
    if bands[-1].max_count is not None:
        raise ConfigurationError('Last risk band must be unbounded', {'band': bands[-1].label})
    return bands


# =============================================================================
# APPLICATION SETTINGS
# =============================================================================

class Settings(BaseSettings):
    """Process-wide defaults; every field can be overridden with POPHEALTH_<NAME>."""

    model_config = SettingsConfigDict(
        env_file='.env',
        env_prefix='POPHEALTH_',
        case_sensitive=False,
        extra='ignore'
    )

    data_dir: Path = Field(default=Path('../data'), description='Directory holding patients.csv and extracted_symptoms.csv')
    category_count: int = Field(default=10, ge=1, description='Top-N categories kept in bar/pie charts')
    display_mode: DisplayMode = Field(default=DisplayMode.COUNT)
    color_theme: str = Field(default='iridis')
    max_pivot_rows: Optional[int] = Field(default=400, ge=1, description='Most frequent rows kept in a pivot')
    log_level: str = Field(default='INFO')

    @field_validator('color_theme')
    @classmethod
    def _known_theme(cls, value):
        if value not in COLOR_THEMES:
            raise ValueError(f'unknown color theme {value!r}; expected one of {sorted(COLOR_THEMES)}')
        return value


@lru_cache(maxsize=1)
def get_settings():
    return Settings()
