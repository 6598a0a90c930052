import logging
import unittest

from utils import logging_utils
from utils.logging_utils import build_logging_config, get_tagged_logger, mask_api_key


class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        self.records.append(record)


class TestLoggingUtils(unittest.TestCase):
    def test_build_logging_config_has_expected_handlers_and_filters(self):
        cfg = build_logging_config(job_name="weatherlens-test")
        self.assertEqual(set(cfg["handlers"]), {"stdout", "stderr"})
        self.assertEqual(cfg["filters"]["job_name"]["job_name"], "weatherlens-test")
        # request URLs carry the API key
        self.assertEqual(cfg["loggers"]["httpx"]["level"], "WARNING")

    def test_get_tagged_logger_defaults_tag_to_module(self):
        logger = get_tagged_logger("weatherlens.lookup_service")
        self.assertEqual(logger.extra["tag"], "lookup_service")

    def test_get_tagged_logger_injects_tag(self):
        handler = _ListHandler()
        logger = get_tagged_logger("weatherlens.tests", tag="custom_tag")
        base_logger = logger.logger
        base_logger.setLevel(logging.DEBUG)
        base_logger.addHandler(handler)
        base_logger.propagate = False
        try:
            logger.info("hello world")
        finally:
            base_logger.removeHandler(handler)
            base_logger.propagate = True

        self.assertEqual(handler.records[-1].tag, "custom_tag")

    def test_setup_logging_override_applies_filters(self):
        root = logging.getLogger()
        orig_handlers = root.handlers[:]
        orig_level = root.level
        try:
            logging_utils.setup_logging(level="INFO", job_name="weatherlens-test", override_existing=True)
            self.assertTrue(
                any(
                    any(f.__class__.__name__ == "JobNameFilter" for f in h.filters)
                    for h in root.handlers
                )
            )
        finally:
            root.handlers = orig_handlers
            root.setLevel(orig_level)
            logging_utils._CONFIGURED = False


class TestMaskApiKey(unittest.TestCase):
    def test_masks_appid(self):
        url = "https://api.openweathermap.org/data/2.5/weather?q=Paris&units=metric&appid=abc123"
        self.assertEqual(
            mask_api_key(url),
            "https://api.openweathermap.org/data/2.5/weather?q=Paris&units=metric&appid=%2A%2A%2A",
        )

    def test_masks_other_secret_names(self):
        masked = mask_api_key("https://x.test/a?api_key=1&token=2&lat=3")
        self.assertEqual(masked, "https://x.test/a?api_key=%2A%2A%2A&token=%2A%2A%2A&lat=3")

    def test_leaves_urls_without_query(self):
        url = "https://api.openweathermap.org/geo/1.0/reverse"
        self.assertEqual(mask_api_key(url), url)


if __name__ == "__main__":
    unittest.main()
