import datetime as dt
import unittest

from weatherlens import formatting
from weatherlens.domain import Coordinates, UnitSystem


def _ts(year, month, day, hour=0, minute=0):
    return int(dt.datetime(year, month, day, hour, minute, tzinfo=dt.timezone.utc).timestamp())


class TestWeatherIcon(unittest.TestCase):
    def test_known_prefixes(self):
        self.assertEqual(formatting.weather_icon("01d"), "☀️")
        self.assertEqual(formatting.weather_icon("10n"), "🌦️")
        self.assertEqual(formatting.weather_icon("50d"), "🌫️")

    def test_unmapped_codes_fall_back(self):
        for code in ("", "99d", "xx", "7", None, 800):
            self.assertEqual(formatting.weather_icon(code), formatting.DEFAULT_WEATHER_ICON)


class TestAqiDescription(unittest.TestCase):
    def test_categories(self):
        self.assertEqual(formatting.aqi_description(1).label, "Good")
        self.assertEqual(formatting.aqi_description(3).color, "#FF7E00")
        self.assertEqual(formatting.aqi_description(5).label, "Very Poor")

    def test_out_of_range_is_unknown(self):
        for aqi in (-1, 0, 6, 100, None, "3", 2.5, True):
            category = formatting.aqi_description(aqi)
            self.assertEqual(category.label, "Unknown")
            self.assertEqual(category.color, "#999")


class TestWindDirection(unittest.TestCase):
    def test_cardinal_points(self):
        self.assertEqual(formatting.wind_direction(0), "N")
        self.assertEqual(formatting.wind_direction(90), "E")
        self.assertEqual(formatting.wind_direction(180), "S")
        self.assertEqual(formatting.wind_direction(270), "W")
        self.assertEqual(formatting.wind_direction(350), "N")

    def test_half_bucket_rounds_up(self):
        self.assertEqual(formatting.wind_direction(11.25), "NNE")
        self.assertEqual(formatting.wind_direction(33.75), "NE")

    def test_periodic_in_360(self):
        for degrees in range(0, 360, 5):
            self.assertEqual(
                formatting.wind_direction(degrees),
                formatting.wind_direction(degrees + 360),
                msg=f"degrees={degrees}",
            )


class TestMoonPhase(unittest.TestCase):
    def test_returns_known_phase(self):
        names = {phase.name for _upper, phase in formatting._MOON_PHASES}
        for day in range(1, 29):
            self.assertIn(formatting.moon_phase(_ts(2024, 2, day)).name, names)

    def test_matches_rule_of_thumb(self):
        # ((2024 * 12.368 + 1) * 29.5306 + 15) % 29.5306
        phase = ((2024 * 12.368 + 1) * formatting.SYNODIC_MONTH_DAYS + 15) % formatting.SYNODIC_MONTH_DAYS
        expected = next((m for upper, m in formatting._MOON_PHASES if phase < upper), formatting._MOON_PHASES[0][1])
        self.assertEqual(formatting.moon_phase(_ts(2024, 1, 15, 12)), expected)

    def test_utc_offset_changes_calendar_day(self):
        ts = _ts(2024, 3, 1, 23)
        self.assertEqual(
            formatting.moon_phase(ts, utc_offset=3600),
            formatting.moon_phase(_ts(2024, 3, 2, 12)),
        )


class TestTimeFormatting(unittest.TestCase):
    def test_granularities(self):
        ts = _ts(2024, 1, 1, 7, 5)
        self.assertEqual(formatting.format_time(ts), "07:05 AM")
        self.assertEqual(formatting.format_hour(ts), "07 AM")
        self.assertEqual(formatting.format_date(ts), "Mon, Jan 1")
        self.assertEqual(formatting.format_datetime(ts), "Mon, Jan 1 07:05 AM")

    def test_offset_applies(self):
        ts = _ts(2024, 1, 1, 7, 5)
        self.assertEqual(formatting.format_time(ts, utc_offset=-5 * 3600), "02:05 AM")


class TestUnitsAndMisc(unittest.TestCase):
    def test_unit_symbols(self):
        self.assertEqual(formatting.unit_symbol(UnitSystem.METRIC), "°C")
        self.assertEqual(formatting.unit_symbol(UnitSystem.IMPERIAL), "°F")
        self.assertEqual(formatting.speed_unit("metric"), "m/s")
        self.assertEqual(formatting.speed_unit("imperial"), "mph")

    def test_temperature_and_wind(self):
        self.assertEqual(formatting.format_temperature(20.5, UnitSystem.METRIC), "21°C")
        self.assertEqual(formatting.format_temperature(-0.4, UnitSystem.IMPERIAL), "0°F")
        self.assertEqual(formatting.format_wind(3.6, 22.5, UnitSystem.METRIC), "3.6 m/s NNE")
        self.assertEqual(formatting.format_wind(3.6, None, UnitSystem.METRIC), "3.6 m/s")

    def test_pop(self):
        self.assertEqual(formatting.format_pop(0), "0%")
        self.assertEqual(formatting.format_pop(None), "0%")
        self.assertEqual(formatting.format_pop(0.42), "42%")

    def test_weather_map_url(self):
        url = formatting.weather_map_url(Coordinates(latitude=51.5, longitude=-0.12))
        self.assertTrue(url.startswith("https://openweathermap.org/weathermap?"))
        self.assertIn("lat=51.5", url)
        self.assertIn("lon=-0.12", url)
        self.assertIn("zoom=10", url)


if __name__ == "__main__":
    unittest.main()
