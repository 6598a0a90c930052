import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient

from weatherlens.config import Settings
from weatherlens.dashboard import build_dashboard
from weatherlens.main import app
from weatherlens.preference_store import InMemoryPreferenceStore

from payloads import FakeDataSource


class TestMain(unittest.TestCase):
    def test_app_metadata(self):
        self.assertEqual(app.title, "WeatherLens")
        paths = {route.path for route in app.routes}
        self.assertIn("/healthz", paths)
        self.assertIn("/v1/lookup", paths)

    def test_healthz(self):
        resp = TestClient(app).get("/healthz")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"status": "ok"})

    def test_dashboard_unavailable_outside_lifespan(self):
        app.state.dashboard = None
        resp = TestClient(app).get("/v1/dashboard")
        self.assertEqual(resp.status_code, 503)

    def test_lifespan_builds_and_closes_dashboard(self):
        source = FakeDataSource()

        def fake_build(settings):
            return build_dashboard(
                Settings(preference_backend="memory"),
                data_source=source,
                store=InMemoryPreferenceStore(),
            )

        app.state.dashboard = None
        with patch("weatherlens.main.build_dashboard", side_effect=fake_build) as built:
            with TestClient(app) as client:
                self.assertEqual(client.get("/v1/dashboard").status_code, 200)
        built.assert_called_once()
        self.assertTrue(source.closed)
        self.assertIsNone(app.state.dashboard)


if __name__ == "__main__":
    unittest.main()
