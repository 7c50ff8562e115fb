"""Farm work advice derived from a weather snapshot."""

from meteo_cache.api.schemas import FarmRecommendations, WeatherSnapshot

_SEVERITY = {"good": 0, "moderate": 1, "poor": 2}


def _worse(current: str, candidate: str) -> str:
    return candidate if _SEVERITY[candidate] > _SEVERITY[current] else current


def farm_recommendations(weather: WeatherSnapshot) -> FarmRecommendations:
    """Recommend farm activities from fixed weather thresholds.

    The status is the worst level any rule triggers.
    """
    status = "good"
    activities: list[str] = []
    warnings: list[str] = []
    suggestions: list[str] = []

    # Temperature
    if weather.temperature > 35:
        status = _worse(status, "poor")
        warnings.append("Extreme heat: Risk of heat stroke")
        suggestions += ["Work early morning or late afternoon", "Ensure adequate water supply"]
        activities += ["Indoor maintenance", "Equipment repair"]
    elif weather.temperature > 30:
        status = _worse(status, "moderate")
        suggestions.append("Take frequent breaks in shade")
        activities += ["Light harvesting tasks", "Irrigation work"]
    elif weather.temperature < 20:
        suggestions.append("Cool weather: Good for strenuous work")
        activities += ["Land preparation", "Planting"]
    else:
        activities += ["Full farm operations", "Planting and cultivation", "Harvesting"]

    # Rain
    if weather.condition.is_rain or weather.precipitation > 5:
        status = _worse(status, "poor" if weather.precipitation > 10 else "moderate")
        warnings.append("Wet conditions: Slippery surfaces")
        activities += ["Indoor maintenance tasks", "Equipment repair"]
        suggestions += ["Use proper rain gear if working outside", "Check drainage systems"]
        if weather.precipitation > 20:
            warnings.append("Heavy rain: Flood risk")
            suggestions += ["Secure farm equipment", "Monitor water levels"]

    # Wind, km/h
    if weather.wind_speed > 30:
        status = _worse(status, "poor")
        warnings.append("Strong winds: Dangerous for outdoor work")
        activities.append("Secure loose items and structures")
        suggestions.append("Delay work with tall equipment")
    elif weather.wind_speed > 20:
        status = _worse(status, "moderate")
        suggestions.append("Be cautious with tall equipment")
        activities.append("Light field work")

    if weather.uv_index > 8:
        suggestions += ["High UV: Use sun protection", "Schedule work in shaded areas"]

    if weather.condition.is_fog or weather.visibility < 2:
        status = _worse(status, "moderate")
        warnings.append("Low visibility: Use caution")
        suggestions += ["Use lights on equipment", "Work in pairs for safety"]

    return FarmRecommendations(
        status=status,
        activities=list(dict.fromkeys(activities)),
        warnings=warnings,
        suggestions=suggestions,
    )
