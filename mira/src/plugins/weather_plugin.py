"""
Mira - Weather Plugin
======================
Answers weather questions from a pluggable ``WeatherDataSource``.

Sources (selected by ``settings.WEATHER_BACKEND``):
    • ``MockWeatherSource``      — fixed city table, no network.
    • ``OpenWeatherMapSource``   — live ``GET {base}/weather`` via httpx.

Success payload::

    {"location", "temperature", "description", "humidity", "wind_speed"}
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Protocol, runtime_checkable

import httpx

from mira.config.settings import Settings
from mira.src.core.errors import (
    ErrorKind,
    LocationNotFoundError,
    NoLocationExtractedError,
    WeatherSourceUnavailableError,
)
from mira.src.core.intents import detect_weather_intent, extract_location, has_weather_cues
from mira.src.plugins.base import BasePlugin, PluginPayload
from mira.src.utils.logger import get_logger

logger = get_logger(__name__)

_GENERIC_UPSTREAM_ERROR = "Failed to fetch weather data"


@dataclass(frozen=True, slots=True)
class WeatherReport:
    location: str
    temperature: float
    description: str
    humidity: int
    wind_speed: float


@runtime_checkable
class WeatherDataSource(Protocol):
    async def fetch_weather(self, location: str, units: str) -> WeatherReport: ...


# ══════════════════════════════════════════════════════════════════════
#  MOCK SOURCE
# ══════════════════════════════════════════════════════════════════════


# city → (temperature °C, description, humidity %, wind m/s)
_MOCK_TABLE: dict[str, tuple[float, str, int, float]] = {
    "bangalore": (28, "Partly cloudy", 65, 3.2),
    "mumbai": (32, "Humid", 80, 4.1),
    "delhi": (35, "Sunny", 45, 2.8),
    "chennai": (33, "Hot and humid", 75, 3.6),
    "kolkata": (31, "Cloudy", 70, 2.5),
    "london": (14, "Light rain", 82, 5.4),
    "tokyo": (22, "Clear sky", 55, 3.0),
    "paris": (18, "Overcast", 68, 4.3),
    "new york": (20, "Scattered clouds", 60, 5.0),
}
_MOCK_DEFAULT: tuple[float, str, int, float] = (25, "Partly cloudy", 60, 3.5)


class MockWeatherSource:
    """Deterministic source; unknown cities get generic fallback data."""

    async def fetch_weather(self, location: str, units: str = "metric") -> WeatherReport:
        key = location.strip().lower()
        row = _MOCK_TABLE.get(key)
        if row is None:
            row = next((values for city, values in _MOCK_TABLE.items() if city in key), _MOCK_DEFAULT)
        temperature, description, humidity, wind_speed = row
        if units == "imperial":
            temperature = round(temperature * 9 / 5 + 32)
        return WeatherReport(location=location.strip(), temperature=temperature, description=description, humidity=humidity, wind_speed=wind_speed)


# ══════════════════════════════════════════════════════════════════════
#  OPENWEATHERMAP SOURCE
# ══════════════════════════════════════════════════════════════════════


class OpenWeatherMapSource:
    """
    Current-weather lookup against the OpenWeatherMap REST API.

    Error mapping:
        HTTP 404              → ``LocationNotFoundError``
        other HTTP / network  → ``WeatherSourceUnavailableError``

    The upstream JSON ``message`` is surfaced whenever the API sends one.
    """

    __slots__ = ("_api_key", "_base_url", "_timeout", "_transport")

    def __init__(self, api_key: str, base_url: str, timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport


    async def fetch_weather(self, location: str, units: str = "metric") -> WeatherReport:
        params = {"q": location, "appid": self._api_key, "units": units}
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.get(f"{self._base_url}/weather", params=params)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as exc:
            message = _upstream_message(exc.response)
            if exc.response.status_code == 404:
                raise LocationNotFoundError(message) from exc
            logger.warning("Weather API returned %d for '%s': %s", exc.response.status_code, location, message)
            raise WeatherSourceUnavailableError(message) from exc
        except httpx.HTTPError as exc:
            logger.warning("Weather API request failed for '%s': %s", location, exc)
            raise WeatherSourceUnavailableError(_GENERIC_UPSTREAM_ERROR) from exc

        return _parse_report(data)


def _upstream_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return _GENERIC_UPSTREAM_ERROR
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return _GENERIC_UPSTREAM_ERROR


def _parse_report(data: dict[str, Any]) -> WeatherReport:
    try:
        name = data["name"]
        country = data.get("sys", {}).get("country")
        return WeatherReport(
            location=f"{name}, {country}" if country else name,
            temperature=round(data["main"]["temp"]),
            description=data["weather"][0]["description"],
            humidity=data["main"]["humidity"],
            wind_speed=data.get("wind", {}).get("speed", 0.0),
        )
    except (KeyError, IndexError, TypeError) as exc:
        raise WeatherSourceUnavailableError("Unexpected weather data format") from exc


def build_weather_source(config: Settings) -> WeatherDataSource:
    """Pick the data source named by ``WEATHER_BACKEND``."""
    if config.WEATHER_BACKEND == "openweathermap":
        return OpenWeatherMapSource(
            api_key=config.OPENWEATHER_API_KEY.get_secret_value(),  # type: ignore[union-attr]
            base_url=config.OPENWEATHER_BASE_URL,
            timeout=config.WEATHER_TIMEOUT_SECONDS,
        )
    return MockWeatherSource()


# ══════════════════════════════════════════════════════════════════════
#  PLUGIN
# ══════════════════════════════════════════════════════════════════════


class WeatherPlugin(BasePlugin):
    name = "weather"
    description = "Get current weather information for any location"
    capabilities = ("Current temperature", "Weather conditions", "Humidity", "Wind speed")
    missing_argument_kind = ErrorKind.NO_LOCATION_EXTRACTED

    def __init__(self, source: WeatherDataSource, units: str = "metric", default_location: str | None = None) -> None:
        self._source = source
        self._units = units
        self._default_location = default_location


    def matches(self, message: str) -> bool:
        return has_weather_cues(message)


    def extract_argument(self, message: str) -> str | None:
        # Without a weather keyword there is no default location to fall back on.
        if not has_weather_cues(message):
            return extract_location(message)
        return detect_weather_intent(message, self._default_location).location


    async def _run(self, argument: str) -> PluginPayload:
        if not argument or not argument.strip():
            raise NoLocationExtractedError("Could not extract a location from the message")
        report = await self._source.fetch_weather(argument.strip(), self._units)
        return asdict(report)
