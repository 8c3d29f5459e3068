from unittest.mock import Mock

import pytest
import requests

from ns_migrator.client import RemoteStorageClient, admin_url, key_count
from ns_migrator.config import RemoteConfig


def _response(status=200, payload=None):
    resp = Mock(spec=requests.Response)
    resp.status_code = status
    resp.ok = status < 400
    resp.text = ""
    resp.json.return_value = payload
    if status >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status}", response=resp)
    return resp


@pytest.fixture
def session():
    return Mock(spec=requests.Session)


@pytest.fixture
def client(session):
    return RemoteStorageClient(api_token="secret-token", timeout=(1, 2), session=session)


def test_admin_url_encodes_name():
    assert admin_url("https://a.example/", "my room/1", "export") == \
        "https://a.example/admin/my%20room%2F1/export"


def test_key_count_prefers_reported_count():
    assert key_count({"data": {"a": 1}, "keyCount": 7}) == 7
    assert key_count({"data": {"a": 1, "b": 2}}) == 2
    assert key_count({"data": {"a": 1}, "keyCount": True}) == 1
    assert key_count({}) == 0


def test_export(client, session):
    session.request.return_value = _response(payload={"data": {"k": "v"}, "keyCount": 1})

    payload = client.export_instance("https://a.example", "room")

    session.request.assert_called_once_with(
        "GET", "https://a.example/admin/room/export", json=None, timeout=(1, 2)
    )
    assert payload == {"data": {"k": "v"}, "keyCount": 1}


def test_export_without_data_key(client, session):
    session.request.return_value = _response(payload={"keyCount": 0})
    assert client.export_instance("https://a.example", "room")["data"] == {}


def test_export_rejects_non_object(client, session):
    session.request.return_value = _response(payload=[1, 2])
    with pytest.raises(requests.RequestException):
        client.export_instance("https://a.example", "room")


def test_export_rejects_non_object_data(client, session):
    session.request.return_value = _response(payload={"data": 5, "keyCount": 1})
    with pytest.raises(requests.exceptions.InvalidJSONError):
        client.export_instance("https://a.example", "room")


def test_export_null_data_is_empty(client, session):
    session.request.return_value = _response(payload={"data": None})
    assert client.export_instance("https://a.example", "room")["data"] == {}


def test_import_posts_data(client, session):
    session.request.return_value = _response()

    client.import_instance("https://b.example", "room", {"k": "v"})

    session.request.assert_called_once_with(
        "POST", "https://b.example/admin/room/import", json={"data": {"k": "v"}}, timeout=(1, 2)
    )


def test_alarm_and_freeze_calls(client, session):
    session.request.return_value = _response(payload={"alarm": 1700000000000})

    assert client.get_alarm("https://a.example", "room") == 1700000000000
    client.set_alarm("https://b.example", "room", 1700000000000)
    client.freeze("https://a.example", "room")
    client.unfreeze("https://a.example", "room")

    methods = [c.args[:2] for c in session.request.call_args_list]
    assert methods == [
        ("GET", "https://a.example/admin/room/alarm"),
        ("PUT", "https://b.example/admin/room/alarm"),
        ("PUT", "https://a.example/admin/room/freeze"),
        ("DELETE", "https://a.example/admin/room/freeze"),
    ]


def test_no_alarm(client, session):
    session.request.return_value = _response(payload={"alarm": None})
    assert client.get_alarm("https://a.example", "room") is None


@pytest.mark.parametrize("payload", [{"alarm": "tomorrow"}, {"alarm": True}, [1700000000000]])
def test_malformed_alarm_is_request_error(client, session, payload):
    session.request.return_value = _response(payload=payload)
    with pytest.raises(requests.RequestException):
        client.get_alarm("https://a.example", "room")


def test_http_error_propagates(client, session):
    session.request.return_value = _response(status=503)
    with pytest.raises(requests.HTTPError) as excinfo:
        client.export_instance("https://a.example", "room")
    assert excinfo.value.response.status_code == 503


def test_repr_redacts_token(client):
    assert "secret-token" not in repr(client)


def test_session_headers_from_config():
    client = RemoteStorageClient.from_config(RemoteConfig(api_token="abcdef", retries=2))
    assert client.session.headers["Authorization"] == "Bearer abcdef"
    assert client.timeout == (10.0, 60.0)
    assert client.session.get_adapter("https://x").max_retries.total == 2
