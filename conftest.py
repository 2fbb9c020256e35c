import json
from typing import Any, Dict, List, Optional

import pytest
import requests

from config import BridgeSettings

CRM_URL = "https://crm.example.com/rest/1/s3cr3tt0k3n"


class FakeResponse:
    def __init__(self, data: Any = None, status_code: int = 200, text: Optional[str] = None):
        self._data = data
        self.status_code = status_code
        self.text = text if text is not None else json.dumps(data)

    def json(self):
        if self._data is None:
            raise ValueError("No JSON object could be decoded")
        return self._data


class FakeCrmSession:
    """
    Stand-in for requests.Session. Replies are registered per CRM method;
    a reply may be a dict (200 JSON), a FakeResponse, an exception instance,
    or a list of those consumed in order.
    """

    def __init__(self):
        self.replies: Dict[str, Any] = {}
        self.calls: List[Dict[str, Any]] = []

    def reply(self, method: str, *replies: Any) -> "FakeCrmSession":
        self.replies[method] = list(replies)
        return self

    def calls_to(self, method: str) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["method"] == method]

    def post(self, url: str, json: Any = None, timeout: Any = None):
        method = url.rsplit("/", 1)[-1]
        self.calls.append({"url": url, "method": method, "json": json, "timeout": timeout})

        queue = self.replies.get(method)
        if not queue:
            raise AssertionError(f"Unexpected CRM call: {method}")
        reply = queue.pop(0) if len(queue) > 1 else queue[0]

        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, FakeResponse):
            return reply
        return FakeResponse(reply)


@pytest.fixture
def settings():
    return BridgeSettings(crm_webhook_url=CRM_URL, webhook_secret="")


@pytest.fixture
def secured_settings():
    return BridgeSettings(crm_webhook_url=CRM_URL, webhook_secret="portal-secret")


@pytest.fixture
def crm_session():
    return FakeCrmSession()


@pytest.fixture
def no_duplicates(crm_session):
    crm_session.reply("crm.duplicate.findbycomm", {"result": []})
    return crm_session


@pytest.fixture
def connection_error():
    return requests.ConnectionError("Name or service not known")
