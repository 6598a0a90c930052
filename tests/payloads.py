"""OpenWeatherMap-shaped payloads and a scriptable data source shared by the tests."""

import asyncio

from weatherlens.data_sources import RawWeatherBundle, coordinates_from_current
from weatherlens.domain import Coordinates, UnitSystem
from weatherlens.errors import CityNotFoundError, UpstreamError

START_TS = 1704103200  # 2024-01-01T10:00:00Z

CITIES = {
    "London": ("GB", 51.5085, -0.1257),
    "Tokyo": ("JP", 35.6895, 139.6917),
    "Paris": ("FR", 48.8534, 2.3488),
    "Berlin": ("DE", 52.5244, 13.4105),
    "Rome": ("IT", 41.8947, 12.4839),
    "Madrid": ("ES", 40.4165, -3.7026),
    "Vienna": ("AT", 48.2085, 16.3721),
}


def make_current_payload(name="London", country="GB", lat=51.5085, lon=-0.1257, temp=15.0,
                         icon="10d", main="Rain", description="light rain"):
    return {
        "coord": {"lon": lon, "lat": lat},
        "weather": [{"id": 500, "main": main, "description": description, "icon": icon}],
        "main": {"temp": temp, "feels_like": temp - 1.5, "pressure": 1012, "humidity": 81},
        "visibility": 10000,
        "wind": {"speed": 3.6, "deg": 220},
        "clouds": {"all": 75},
        "dt": START_TS,
        "sys": {"country": country, "sunrise": START_TS - 7200, "sunset": START_TS + 21600},
        "timezone": 0,
        "name": name,
        "cod": 200,
    }


def make_forecast_payload(count=40, temp=10.0):
    return {
        "cod": "200",
        "cnt": count,
        "list": [
            {
                "dt": START_TS + i * 3 * 3600,
                "main": {"temp": temp + i},
                "weather": [{"id": 800, "main": "Clear", "description": "clear sky", "icon": "01d"}],
                "pop": 0.1 * (i % 5),
            }
            for i in range(count)
        ],
    }


def make_air_payload(aqi=2, lat=51.5085, lon=-0.1257):
    return {
        "coord": {"lon": lon, "lat": lat},
        "list": [
            {
                "main": {"aqi": aqi},
                "components": {
                    "co": 230.3, "no": 0.1, "no2": 12.5, "o3": 61.2,
                    "so2": 3.1, "pm2_5": 5.4, "pm10": 8.8, "nh3": 0.6,
                },
                "dt": START_TS,
            }
        ],
    }


def make_alerts_payload():
    return {
        "alerts": [
            {
                "sender_name": "Met Office",
                "event": "Yellow wind warning",
                "start": START_TS,
                "end": START_TS + 43200,
                "description": "Strong winds expected.",
                "tags": ["Wind"],
            }
        ]
    }


def make_bundle(name="London", *, units=UnitSystem.METRIC, temp=None, forecast_count=40, alerts=None):
    country, lat, lon = CITIES.get(name, ("XX", 10.0, 20.0))
    if temp is None:
        temp = 15.0 if units == UnitSystem.METRIC else 59.0
    current = make_current_payload(name=name, country=country, lat=lat, lon=lon, temp=temp)
    return RawWeatherBundle(
        coordinates=coordinates_from_current(current),
        current=current,
        forecast=make_forecast_payload(forecast_count),
        air_quality=make_air_payload(lat=lat, lon=lon),
        alerts=alerts if alerts is not None else make_alerts_payload()["alerts"],
    )


class FakeDataSource:
    """
    In-process stand-in for OpenWeatherClient.

    - `gates[key]` (an asyncio.Event) holds a lookup until the test sets it.
    - `not_found` / `failing` hold locators that raise the matching error.
    - `places` is what reverse_geocode returns; `geocode_gate` holds it.
    """

    def __init__(self):
        self.calls = []
        self.gates = {}
        self.not_found = set()
        self.failing = set()
        self.places = [{"name": "Paris", "country": "FR"}]
        self.geocode_error = None
        self.geocode_gate = None
        self.closed = False

    @staticmethod
    def key(locator):
        if isinstance(locator, Coordinates):
            return (locator.latitude, locator.longitude)
        return locator

    async def fetch_bundle(self, locator, units):
        self.calls.append((locator, UnitSystem(units)))
        key = self.key(locator)
        gate = self.gates.get(key)
        if gate is not None:
            await gate.wait()
        if key in self.not_found:
            raise CityNotFoundError(str(locator))
        if key in self.failing:
            raise UpstreamError("boom", status_code=500)
        if isinstance(locator, Coordinates):
            bundle = make_bundle("Paris", units=units)
            bundle.current["coord"] = {"lat": locator.latitude, "lon": locator.longitude}
            return bundle
        return make_bundle(locator, units=units)

    async def reverse_geocode(self, coords):
        if self.geocode_gate is not None:
            await self.geocode_gate.wait()
        if self.geocode_error is not None:
            raise self.geocode_error
        return list(self.places)

    async def aclose(self):
        self.closed = True


async def let_tasks_run(rounds=5):
    for _ in range(rounds):
        await asyncio.sleep(0)
