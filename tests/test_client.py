import json
from unittest.mock import Mock, patch

import pytest
import requests

from catalog_mirror.config import Config
from catalog_mirror.core.client import CatalogClient
from catalog_mirror.errors import (
    NetworkError,
    RemoteError,
    SchemaValidationError,
)
from catalog_mirror.models import Content, EntityKind, Theme, TokenSet
from catalog_mirror.token_store import TokenStore

CONTENT = {
    "id": "c1",
    "type": "post",
    "text": "hello",
    "themeId": "A",
    "createdAt": "2024-05-01T10:00:00Z",
}
THEME = {"id": "A", "name": "Travel", "contentCount": 3}


def _response(status=200, body=None, raw: bytes | None = None):
    """Build a mock requests.Response."""
    response = Mock(spec=requests.Response)
    response.status_code = status
    if raw is not None:
        response.content = raw
        response.json.side_effect = ValueError("not json")
    elif body is None:
        response.content = b""
        response.json.side_effect = ValueError("empty")
    else:
        response.content = json.dumps(body).encode()
        response.json.return_value = body
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(
            f"{status} Error", response=response
        )
    return response


def _sent(mock_request, index=-1):
    """(method, url, kwargs) of a recorded Session.request call."""
    call = mock_request.call_args_list[index]
    method, url = call[0]
    return method, url, call[1]


# Session setup
def test_base_url_strips_trailing_slash():
    client = CatalogClient(Config(api_url="https://catalog.example.com/"))
    assert client.base_url == "https://catalog.example.com"


def test_session_verifies_ssl(mock_config):
    client = CatalogClient(mock_config)
    assert client.session.verify
    assert client.session.headers["Accept"] == "application/json"


def test_session_insecure():
    client = CatalogClient(Config(insecure=True))
    assert not client.session.verify


@patch("catalog_mirror.core.client.requests.Session.request")
def test_no_token_sends_no_auth_header(mock_request, mock_config):
    mock_request.return_value = _response(body=[])
    CatalogClient(mock_config, TokenStore(mock_config.token_file)).fetch_themes()
    _, _, kwargs = _sent(mock_request)
    assert "Authorization" not in kwargs["headers"]


@patch("catalog_mirror.core.client.requests.Session.request")
def test_stored_token_sent_as_bearer(mock_request, mock_config):
    store = TokenStore(mock_config.token_file)
    store.save(TokenSet(access_token="tok", refresh_token="r", expires_at=0))
    mock_request.return_value = _response(body=[])

    CatalogClient(mock_config, store).fetch_themes()

    _, _, kwargs = _sent(mock_request)
    assert kwargs["headers"]["Authorization"] == "Bearer tok"
    assert kwargs["timeout"] == (10.0, 60.0)


# Collections
@patch("catalog_mirror.core.client.requests.Session.request")
def test_fetch_content(mock_request, mock_config):
    mock_request.return_value = _response(body=[CONTENT])
    result = CatalogClient(mock_config).fetch_content()

    assert result == [Content.model_validate(CONTENT)]
    method, url, _ = _sent(mock_request)
    assert (method, url) == ("GET", "https://catalog.example.com/content")


@patch("catalog_mirror.core.client.requests.Session.request")
def test_fetch_themes(mock_request, mock_config):
    mock_request.return_value = _response(body=[THEME])
    result = CatalogClient(mock_config).fetch_collection("theme")

    assert result[0].content_count == 3
    assert _sent(mock_request)[1] == "https://catalog.example.com/themes"


@patch("catalog_mirror.core.client.requests.Session.request")
def test_invalid_payload_is_rejected(mock_request, mock_config):
    mock_request.return_value = _response(body=[{"id": "A"}])
    with pytest.raises(SchemaValidationError):
        CatalogClient(mock_config).fetch_themes()


@patch("catalog_mirror.core.client.requests.Session.request")
def test_non_json_body_is_validation_error(mock_request, mock_config):
    mock_request.return_value = _response(raw=b"<html>oops</html>")
    with pytest.raises(SchemaValidationError, match="not valid JSON"):
        CatalogClient(mock_config).fetch_themes()


# Error classification
@patch("catalog_mirror.core.client.requests.Session.request")
def test_http_error_becomes_remote_error(mock_request, mock_config):
    mock_request.return_value = _response(
        500, {"message": "Database unavailable", "code": "E_DB"}
    )
    with pytest.raises(RemoteError) as info:
        CatalogClient(mock_config).fetch_content()
    assert info.value.status == 500
    assert info.value.message == "Database unavailable"
    assert info.value.code == "E_DB"


@patch("catalog_mirror.core.client.requests.Session.request")
def test_connection_error_becomes_network_error(mock_request, mock_config):
    mock_request.side_effect = requests.ConnectionError("refused")
    with pytest.raises(NetworkError):
        CatalogClient(mock_config).check_status()


# Sync job
@patch("catalog_mirror.core.client.requests.Session.request")
def test_begin_sync(mock_request, mock_config):
    mock_request.return_value = _response(body={"status": "started"})
    started = CatalogClient(mock_config).begin_sync()
    assert started.status == "started"
    method, url, _ = _sent(mock_request)
    assert (method, url) == ("POST", "https://catalog.example.com/content/sync")


@patch("catalog_mirror.core.client.requests.Session.request")
def test_check_status(mock_request, mock_config):
    mock_request.return_value = _response(
        body={"complete": False, "progress": 40}
    )
    status = CatalogClient(mock_config).check_status()
    assert not status.complete
    assert status.progress == 40
    assert _sent(mock_request)[1].endswith("/content/sync/status")


# Mutations
@patch("catalog_mirror.core.client.requests.Session.request")
def test_theme_only_patch_uses_theme_endpoint(mock_request, mock_config):
    mock_request.return_value = _response(body={**CONTENT, "themeId": "B"})
    result = CatalogClient(mock_config).mutate(
        EntityKind.CONTENT, "c1", {"themeId": "B"}
    )

    assert result.theme_id == "B"
    method, url, kwargs = _sent(mock_request)
    assert method == "PUT"
    assert url == "https://catalog.example.com/content/c1/theme"
    assert kwargs["json"] == {"themeId": "B"}


@patch("catalog_mirror.core.client.requests.Session.request")
def test_other_patch_uses_patch(mock_request, mock_config):
    mock_request.return_value = _response(body={**THEME, "name": "Food"})
    result = CatalogClient(mock_config).mutate("theme", "A", {"name": "Food"})

    assert isinstance(result, Theme)
    method, url, kwargs = _sent(mock_request)
    assert (method, url) == ("PATCH", "https://catalog.example.com/themes/A")
    assert kwargs["json"] == {"name": "Food"}


@patch("catalog_mirror.core.client.requests.Session.request")
def test_create_validates_and_sends_wire_names(mock_request, mock_config):
    mock_request.return_value = _response(
        body={"id": "T9", "name": "Food", "contentCount": 0}
    )
    created = CatalogClient(mock_config).create("theme", {"name": "Food"})

    assert created.id == "T9"
    method, url, kwargs = _sent(mock_request)
    assert method == "POST"
    assert url == "https://catalog.example.com/themes"
    assert kwargs["json"] == {"name": "Food", "contentCount": 0}


@patch("catalog_mirror.core.client.requests.Session.request")
def test_create_rejects_invalid_payload_without_request(mock_request, mock_config):
    with pytest.raises(SchemaValidationError):
        CatalogClient(mock_config).create("theme", {"name": ""})
    mock_request.assert_not_called()


@patch("catalog_mirror.core.client.requests.Session.request")
def test_delete_accepts_empty_body(mock_request, mock_config):
    mock_request.return_value = _response(204)
    assert CatalogClient(mock_config).delete("content", "c1") is None
    method, url, _ = _sent(mock_request)
    assert (method, url) == ("DELETE", "https://catalog.example.com/content/c1")


@patch("catalog_mirror.core.client.requests.Session.request")
def test_entity_ids_are_escaped_in_paths(mock_request, mock_config):
    client = CatalogClient(mock_config)

    mock_request.return_value = _response(204)
    client.delete("theme", "a/b?c#d")
    assert _sent(mock_request)[1] == (
        "https://catalog.example.com/themes/a%2Fb%3Fc%23d"
    )

    mock_request.return_value = _response(body={**THEME, "id": "a/b"})
    client.mutate("theme", "a/b", {"name": "Travel"})
    assert _sent(mock_request)[1] == "https://catalog.example.com/themes/a%2Fb"

    mock_request.return_value = _response(body=CONTENT)
    client.update_theme("../themes", "A")
    assert _sent(mock_request)[1] == (
        "https://catalog.example.com/content/..%2Fthemes/theme"
    )
