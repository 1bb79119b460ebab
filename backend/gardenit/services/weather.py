"""Weather snapshot fetching from Open-Meteo."""
import logging
import math
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from gardenit.config import get_settings
from gardenit.exceptions import WeatherFetchError

logger = logging.getLogger(__name__)

HOURLY_FIELDS = "precipitation_probability,temperature_2m,soil_temperature_10cm,wind_gusts_10m"
DAILY_FIELDS = "temperature_2m_min,temperature_2m_max,precipitation_probability_max,wind_gusts_10m_max"
WINDOW_HOURS = 24

# Flat frost probability used whenever the daily minimum is at or below 0°C.
# Placeholder heuristic kept for compatibility with existing rule thresholds.
FROST_PROBABILITY_AT_ZERO = 0.5


@dataclass(frozen=True)
class WeatherSnapshot:
    """Short-term forecast facts shared by every weather and soil rule."""

    timezone: str = "UTC"
    precip_prob_next_24h: float = 0.0  # 0-1
    min_temp_next_24h: float | None = None
    max_temp_tomorrow: float | None = None
    frost_probability: float = 0.0  # 0-1, derived
    gusts_next_24h: float | None = None
    soil_temp_10cm: float | None = None


class WeatherClient(Protocol):
    def fetch_snapshot(self, latitude: float, longitude: float) -> WeatherSnapshot: ...


def _samples(values: Any, limit: int | None = None) -> list[float]:
    """Numeric samples from a forecast series, skipping gaps."""
    if not isinstance(values, list):
        return []
    window = values[:limit] if limit is not None else values
    return [
        float(value)
        for value in window
        if isinstance(value, (int, float))
        and not isinstance(value, bool)
        and not math.isnan(value)
    ]


def _at(values: Any, index: int) -> float | None:
    if not isinstance(values, list) or len(values) <= index:
        return None
    value = values[index]
    if not isinstance(value, (int, float)) or isinstance(value, bool) or math.isnan(value):
        return None
    return float(value)


def _section(payload: dict[str, Any], key: str) -> dict[str, Any]:
    section = payload.get(key)
    return section if isinstance(section, dict) else {}


def summarize_forecast(payload: dict[str, Any]) -> WeatherSnapshot:
    """Reduce an Open-Meteo forecast response to a WeatherSnapshot.

    Hourly series are read over the next 24 samples; daily series are
    expected to hold today (index 0) and tomorrow (index 1). Missing series
    yield None for the corresponding field. A missing precipitation series
    counts as 0% chance of rain. Sections of the wrong shape count as missing.
    """
    hourly = _section(payload, "hourly")
    daily = _section(payload, "daily")
    timezone = payload.get("timezone")

    precip = _samples(hourly.get("precipitation_probability"), WINDOW_HOURS)
    precip_prob = max(precip) / 100 if precip else 0.0

    gusts = _samples(hourly.get("wind_gusts_10m"), WINDOW_HOURS)
    soil = _samples(hourly.get("soil_temperature_10cm"), WINDOW_HOURS)

    min_temp = _at(daily.get("temperature_2m_min"), 0)
    max_tomorrow = _at(daily.get("temperature_2m_max"), 1)
    if max_tomorrow is None:
        max_tomorrow = _at(daily.get("temperature_2m_max"), 0)

    if min_temp is not None and min_temp <= 0:
        frost_probability = FROST_PROBABILITY_AT_ZERO
    else:
        frost_probability = precip_prob

    return WeatherSnapshot(
        timezone=timezone if isinstance(timezone, str) and timezone else "UTC",
        precip_prob_next_24h=precip_prob,
        min_temp_next_24h=min_temp,
        max_temp_tomorrow=max_tomorrow,
        frost_probability=frost_probability,
        gusts_next_24h=max(gusts) if gusts else None,
        soil_temp_10cm=sum(soil) / len(soil) if soil else None,
    )


class OpenMeteoClient:
    """Fetches forecasts from Open-Meteo and summarizes them."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        http_client: httpx.Client | None = None,
    ):
        settings = get_settings()
        self.base_url = base_url or settings.weather_base_url
        self.timeout = timeout if timeout is not None else settings.weather_timeout_seconds
        self._http_client = http_client

    def _get(self, params: dict[str, Any]) -> httpx.Response:
        if self._http_client is not None:
            return self._http_client.get(self.base_url, params=params, timeout=self.timeout)
        with httpx.Client(timeout=self.timeout) as client:
            return client.get(self.base_url, params=params)

    def fetch_snapshot(self, latitude: float, longitude: float) -> WeatherSnapshot:
        """Fetch the 2-day forecast for a coordinate.

        Raises:
            WeatherFetchError: on timeouts, transport errors, non-2xx
                responses, or a body that is not a JSON object.
        """
        params = {
            "latitude": latitude,
            "longitude": longitude,
            "hourly": HOURLY_FIELDS,
            "daily": DAILY_FIELDS,
            "forecast_days": 2,
            "timezone": "auto",
        }
        try:
            response = self._get(params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise WeatherFetchError(f"Failed to fetch weather: {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise WeatherFetchError(f"Failed to fetch weather: {e}") from e
        except ValueError as e:
            raise WeatherFetchError(f"Weather response was not JSON: {e}") from e

        if not isinstance(data, dict):
            raise WeatherFetchError("Weather response was not a JSON object")

        snapshot = summarize_forecast(data)
        logger.debug("Weather snapshot for (%s, %s): %s", latitude, longitude, snapshot)
        return snapshot
