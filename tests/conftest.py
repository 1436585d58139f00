import datetime
import json

import pytest
import requests


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        if text is None:
            text = json.dumps(payload) if payload is not None else ""
        self.text = text

    def json(self):
        if self._payload is None:
            return json.loads(self.text)
        return self._payload


class FakeSession:
    """Stands in for requests.Session; answers are keyed by country for GET."""

    def __init__(self, responses=None, post_response=None):
        self.responses = responses or {}
        self.post_response = post_response or FakeResponse(200, text="ok")
        self.get_calls = []
        self.post_calls = []
        self.closed = False

    def get(self, url, params=None, timeout=None):
        self.get_calls.append({"url": url, "params": params, "timeout": timeout})
        answer = self.responses[params["country"]]
        if isinstance(answer, Exception):
            raise answer
        return answer

    def post(self, url, json=None, timeout=None):
        self.post_calls.append({"url": url, "json": json, "timeout": timeout})
        if isinstance(self.post_response, Exception):
            raise self.post_response
        return self.post_response

    def close(self):
        self.closed = True


@pytest.fixture
def target_date():
    return datetime.date(2026, 7, 4)


@pytest.fixture
def us_payload():
    return [
        {
            "name": "Independence Day",
            "name_local": "",
            "language": "",
            "description": "",
            "country": "US",
            "location": "United States",
            "type": "National",
            "date": "07/04/2026",
            "date_year": "2026",
            "date_month": "07",
            "date_day": "04",
            "week_day": "Saturday",
        }
    ]


@pytest.fixture
def env():
    return {
        "ABSTRACT_API_KEY": "test-key",
        "SLACK_WEBHOOK_URL": "https://hooks.slack.test/services/T000/B000/XXX",
    }


@pytest.fixture
def no_sleep(monkeypatch):
    monkeypatch.setattr("services.time.sleep", lambda seconds: None)


@pytest.fixture
def timeout_error():
    return requests.Timeout("read timed out")
