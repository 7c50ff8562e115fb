"""Weather condition codes and their display attributes.

Conditions are the WMO weather interpretation codes used by Open-Meteo. Every
code maps to a label, a farm-oriented description, a Lucide icon name and a
colour scheme through ``CONDITION_TABLE``.
"""

from dataclasses import dataclass
from enum import IntEnum

import structlog

logger = structlog.get_logger()


class Condition(IntEnum):
    """WMO weather interpretation code."""

    CLEAR = 0
    MAINLY_CLEAR = 1
    PARTLY_CLOUDY = 2
    OVERCAST = 3
    FOG = 45
    RIME_FOG = 48
    LIGHT_DRIZZLE = 51
    DRIZZLE = 53
    HEAVY_DRIZZLE = 55
    LIGHT_FREEZING_DRIZZLE = 56
    FREEZING_DRIZZLE = 57
    LIGHT_RAIN = 61
    RAIN = 63
    HEAVY_RAIN = 65
    LIGHT_FREEZING_RAIN = 66
    FREEZING_RAIN = 67
    LIGHT_SNOW = 71
    SNOW = 73
    HEAVY_SNOW = 75
    SNOW_GRAINS = 77
    LIGHT_SHOWERS = 80
    SHOWERS = 81
    HEAVY_SHOWERS = 82
    LIGHT_SNOW_SHOWERS = 85
    SNOW_SHOWERS = 86
    THUNDERSTORM = 95
    THUNDERSTORM_WITH_HAIL = 96
    HEAVY_THUNDERSTORM_WITH_HAIL = 99

    @classmethod
    def from_code(cls, code: int | None) -> "Condition":
        """Map a raw provider code to a condition, unknown codes read as clear."""
        if code is None:
            return cls.CLEAR
        try:
            return cls(int(code))
        except ValueError:
            logger.debug("Unknown weather code", code=code)
            return cls.CLEAR

    @property
    def info(self) -> "ConditionInfo":
        return CONDITION_TABLE[self]

    @property
    def label(self) -> str:
        return CONDITION_TABLE[self].label

    @property
    def is_rain(self) -> bool:
        return self in _RAIN

    @property
    def is_fog(self) -> bool:
        return self in (Condition.FOG, Condition.RIME_FOG)


_RAIN = frozenset(
    {
        Condition.LIGHT_RAIN,
        Condition.RAIN,
        Condition.HEAVY_RAIN,
        Condition.LIGHT_FREEZING_RAIN,
        Condition.FREEZING_RAIN,
        Condition.LIGHT_SHOWERS,
        Condition.SHOWERS,
        Condition.HEAVY_SHOWERS,
        Condition.THUNDERSTORM,
        Condition.THUNDERSTORM_WITH_HAIL,
        Condition.HEAVY_THUNDERSTORM_WITH_HAIL,
    }
)


@dataclass(frozen=True)
class ColorScheme:
    """Background gradient, text and icon colours for a condition."""

    bg: str
    text: str
    icon: str


SUNNY = ColorScheme("linear-gradient(135deg, #FFD70020, #FFA50020)", "#D97706", "#F59E0B")
MOSTLY_SUNNY = ColorScheme(
    "linear-gradient(135deg, #FEF3C720, #FBBF2420)", "#B45309", "#D97706"
)
PARTLY_CLOUDY = ColorScheme(
    "linear-gradient(135deg, #E0F2FE20, #BAE6FD20)", "#0369A1", "#0EA5E9"
)
OVERCAST = ColorScheme("linear-gradient(135deg, #94A3B820, #64748B20)", "#334155", "#475569")
RAINY = ColorScheme("linear-gradient(135deg, #DBEAFE20, #93C5FD20)", "#1D4ED8", "#3B82F6")
DRIZZLY = ColorScheme("linear-gradient(135deg, #E0F2FE20, #7DD3FC20)", "#0EA5E9", "#38BDF8")
STORMY = ColorScheme("linear-gradient(135deg, #5B21B620, #7C3AED20)", "#7C3AED", "#8B5CF6")
FOGGY = ColorScheme("linear-gradient(135deg, #F1F5F920, #E2E8F020)", "#64748B", "#94A3B8")
DEFAULT_SCHEME = ColorScheme(
    "linear-gradient(135deg, #F3F4F620, #E5E7EB20)", "#6B7280", "#9CA3AF"
)
DEFAULT_ICON = "Cloud"


@dataclass(frozen=True)
class ConditionInfo:
    """Display attributes of a condition."""

    label: str
    description: str
    icon: str
    colors: ColorScheme
    cloud_cover: int


CONDITION_TABLE: dict[Condition, ConditionInfo] = {
    Condition.CLEAR: ConditionInfo(
        "Clear", "Clear skies, perfect for farm work", "Sun", SUNNY, 10
    ),
    Condition.MAINLY_CLEAR: ConditionInfo(
        "Mainly clear", "Mostly clear, good working conditions", "Sun", MOSTLY_SUNNY, 30
    ),
    Condition.PARTLY_CLOUDY: ConditionInfo(
        "Partly cloudy", "Partly cloudy, good working conditions", "Cloud", PARTLY_CLOUDY, 50
    ),
    Condition.OVERCAST: ConditionInfo(
        "Overcast", "Overcast, might rain later", "Cloud", OVERCAST, 90
    ),
    Condition.FOG: ConditionInfo("Fog", "Foggy, low visibility", "CloudFog", FOGGY, 100),
    Condition.RIME_FOG: ConditionInfo(
        "Fog", "Foggy with frost, low visibility", "CloudFog", FOGGY, 100
    ),
    Condition.LIGHT_DRIZZLE: ConditionInfo(
        "Light drizzle", "Light drizzle, use rain gear", "CloudDrizzle", DRIZZLY, 80
    ),
    Condition.DRIZZLE: ConditionInfo(
        "Drizzle", "Drizzle, use rain gear", "CloudDrizzle", DRIZZLY, 85
    ),
    Condition.HEAVY_DRIZZLE: ConditionInfo(
        "Heavy drizzle", "Heavy drizzle, use rain gear", "CloudDrizzle", DRIZZLY, 90
    ),
    Condition.LIGHT_FREEZING_DRIZZLE: ConditionInfo(
        "Light freezing drizzle", "Freezing drizzle, slippery ground", "CloudDrizzle", DRIZZLY, 90
    ),
    Condition.FREEZING_DRIZZLE: ConditionInfo(
        "Freezing drizzle", "Freezing drizzle, slippery ground", "CloudDrizzle", DRIZZLY, 90
    ),
    Condition.LIGHT_RAIN: ConditionInfo(
        "Light rain", "Light rain, consider indoor tasks", "CloudRain", RAINY, 85
    ),
    Condition.RAIN: ConditionInfo("Rain", "Rainy, consider indoor tasks", "CloudRain", RAINY, 90),
    Condition.HEAVY_RAIN: ConditionInfo(
        "Heavy rain", "Heavy rain, avoid field work", "CloudRain", RAINY, 100
    ),
    Condition.LIGHT_FREEZING_RAIN: ConditionInfo(
        "Light freezing rain", "Freezing rain, avoid field work", "CloudHail", RAINY, 95
    ),
    Condition.FREEZING_RAIN: ConditionInfo(
        "Freezing rain", "Freezing rain, avoid field work", "CloudHail", RAINY, 100
    ),
    Condition.LIGHT_SNOW: ConditionInfo(
        "Light snow", "Light snow, keep crops covered", "Snowflake", DEFAULT_SCHEME, 90
    ),
    Condition.SNOW: ConditionInfo(
        "Snow", "Snow, keep crops covered", "Snowflake", DEFAULT_SCHEME, 95
    ),
    Condition.HEAVY_SNOW: ConditionInfo(
        "Heavy snow", "Heavy snow, stay indoors", "Snowflake", DEFAULT_SCHEME, 100
    ),
    Condition.SNOW_GRAINS: ConditionInfo(
        "Snow grains", "Snow grains, keep crops covered", "Snowflake", DEFAULT_SCHEME, 90
    ),
    Condition.LIGHT_SHOWERS: ConditionInfo(
        "Light showers", "Rain showers, intermittent work possible", "CloudRain", RAINY, 70
    ),
    Condition.SHOWERS: ConditionInfo(
        "Showers", "Rain showers, intermittent work possible", "CloudRain", RAINY, 80
    ),
    Condition.HEAVY_SHOWERS: ConditionInfo(
        "Heavy showers", "Heavy showers, avoid field work", "CloudRain", RAINY, 90
    ),
    Condition.LIGHT_SNOW_SHOWERS: ConditionInfo(
        "Light snow showers", "Snow showers, keep crops covered", "Snowflake", DEFAULT_SCHEME, 80
    ),
    Condition.SNOW_SHOWERS: ConditionInfo(
        "Snow showers", "Snow showers, keep crops covered", "Snowflake", DEFAULT_SCHEME, 90
    ),
    Condition.THUNDERSTORM: ConditionInfo(
        "Thunderstorm", "Thunderstorm, suspend outdoor activities", "CloudLightning", STORMY, 100
    ),
    Condition.THUNDERSTORM_WITH_HAIL: ConditionInfo(
        "Thunderstorm with hail",
        "Thunderstorm with hail, suspend outdoor activities",
        "CloudLightning",
        STORMY,
        100,
    ),
    Condition.HEAVY_THUNDERSTORM_WITH_HAIL: ConditionInfo(
        "Heavy thunderstorm with hail",
        "Severe thunderstorm, suspend outdoor activities",
        "CloudLightning",
        STORMY,
        100,
    ),
}

# Labels that are not WMO labels but show up in saved data and UI requests
_LABEL_ALIASES = {
    "cloudy": Condition.OVERCAST,
    "sunny": Condition.CLEAR,
}


def parse_condition(value: "Condition | int | str | None") -> Condition | None:
    """Resolve a condition, WMO code or label. Returns None when unknown."""
    if value is None:
        return None
    if isinstance(value, Condition):
        return value
    if isinstance(value, int):
        try:
            return Condition(value)
        except ValueError:
            return None
    text = value.strip().lower()
    if text.isdigit():
        return parse_condition(int(text))
    for condition, info in CONDITION_TABLE.items():
        if info.label.lower() == text:
            return condition
    return _LABEL_ALIASES.get(text)


def weather_icon(value: "Condition | int | str | None") -> str:
    """Lucide icon name for a condition."""
    condition = parse_condition(value)
    if condition is None:
        return DEFAULT_ICON
    return CONDITION_TABLE[condition].icon


def color_scheme(value: "Condition | int | str | None") -> ColorScheme:
    """Colour scheme for a condition."""
    condition = parse_condition(value)
    if condition is None:
        return DEFAULT_SCHEME
    return CONDITION_TABLE[condition].colors


def estimate_cloud_cover(condition: Condition) -> int:
    """Cloud cover percentage implied by a condition code."""
    return CONDITION_TABLE[condition].cloud_cover
