"""
Общие фикстуры: поддельные HTTP-сессии и клиенты источников
"""
import json

import pytest

from cambio_hub.core.exceptions import SourceUnavailableError
from cambio_hub.core.models import RateSample, SourceDescriptor, Variation
from cambio_hub.parser_service.config import ParserConfig


class FakeResponse:
    def __init__(self, status_code=200, json_data=None, text=None):
        self.status_code = status_code
        self._json_data = json_data
        if text is None:
            text = json.dumps(json_data) if json_data is not None else ""
        self.text = text

    def json(self):
        if self._json_data is None:
            raise ValueError("No JSON object could be decoded")
        return self._json_data


class FakeSession:
    """
    Вместо requests.Session: отвечает заранее заданными ответами по очереди.
    Исключение в очереди бросается как есть
    """

    def __init__(self, responses=None):
        self.headers = {}
        self._responses = list(responses or [])
        self.calls = []
        self.closed = False

    def get(self, url, timeout=None, headers=None):
        self.calls.append({"url": url, "timeout": timeout, "headers": headers})
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self):
        self.closed = True


class StubFetcher:
    """
    Клиент источника по сценарию: каждый элемент outcomes - курс
    (float, RateSample) или исключение
    """

    def __init__(self, name, outcomes):
        self.name = name
        self._outcomes = list(outcomes)
        self.call_count = 0
        self.closed = False

    def fetch(self):
        self.call_count += 1
        outcome = self._outcomes.pop(0) if self._outcomes else SourceUnavailableError(
            self.name, "сценарий исчерпан"
        )
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, RateSample):
            return outcome
        return RateSample(rate=outcome, source=self.name)

    def close(self):
        self.closed = True


def make_source(name, kind="api", priority=100, **kwargs):
    return SourceDescriptor(
        name=name,
        kind=kind,
        url=f"https://example.com/{name.lower().replace(' ', '-')}",
        priority=priority,
        **kwargs,
    )


def make_config(sources=None, tmp_path=None, **overrides):
    if sources is None:
        sources = (make_source("A", priority=1), make_source("B", priority=2))

    params = {
        "SOURCES": tuple(sources),
        "RESTRICTED_MODE": False,
        "RETRY_DELAY": 0.0,
    }
    if tmp_path is not None:
        params["LOGS_DIR"] = str(tmp_path / "logs")
        params["SESSION_FILE_PATH"] = str(tmp_path / "logs" / "session.json")
    params.update(overrides)
    return ParserConfig(**params)


def up_sample(source="B", rate=5.25, change=0.0150, percent="0.29%"):
    return RateSample(
        rate=rate,
        source=source,
        variation=Variation(percent=percent, absolute_change=change, direction="up"),
    )


@pytest.fixture
def config(tmp_path):
    return make_config(tmp_path=tmp_path)
