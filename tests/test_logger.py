import logging

from loguru import logger

from answer_engine.config import settings
from answer_engine.services import logger as log_service


class TestNoisyLoggers:
    def test_stack_loggers_are_quieted(self):
        level = logging.getLevelName(settings.noisy_log_level.upper())
        for name in ("openai._base_client", "httpx", "uvicorn.access"):
            assert logging.getLogger(name).level == level

    def test_unrelated_loggers_keep_their_level(self):
        assert "asyncio" not in log_service.NOISY_LOGGERS
        assert "fastapi" not in log_service.NOISY_LOGGERS


class TestLogEvent:
    def test_event_fields_reach_the_sink(self):
        records = []
        sink_id = logger.add(lambda m: records.append(m.record), level="DEBUG")
        try:
            log_service.log_event(
                event_type="parse_failure", message="bad json", level="warning", raw="{"
            )
        finally:
            logger.remove(sink_id)

        assert len(records) == 1
        assert records[0]["level"].name == "WARNING"
        assert "parse_failure" in records[0]["message"]
        assert "'raw': '{'" in records[0]["message"]
