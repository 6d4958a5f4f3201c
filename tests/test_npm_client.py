import json

import pytest
import requests

from npm_wildcard.adapters.npm import NpmClient
from npm_wildcard.errors import AuthenticationError, NpmApiError, ValidationRejected


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        if text is None:
            text = json.dumps(payload) if payload is not None else ""
        self.text = text

    def json(self):
        return json.loads(self.text)


class FakeHttp:
    """requests.Session look-alike returning queued responses per (method, path)."""
    def __init__(self, routes=None, token="tok"):
        self.verify = True
        self.routes = routes or {}
        self.token = token
        self.logins = 0
        self.requests = []

    def post(self, url, json=None, timeout=None):
        self.logins += 1
        if isinstance(self.token, Exception):
            raise self.token
        if self.token is None:
            return FakeResponse(401, {"error": {"message": "Invalid credentials"}})
        return FakeResponse(200, {"token": self.token, "expires": "2026-10-19T12:00:00Z"})

    def request(self, method, url, headers=None, timeout=None, **kw):
        self.requests.append((method, url, headers, kw))
        path = url.split("/api", 1)[1]
        r = self.routes.get((method, path), FakeResponse(404, {"error": "not found"}))
        if isinstance(r, Exception):
            raise r
        return r


def client(http):
    return NpmClient("https://npm.example.com/", "admin@example.com", "pw", http=http)


def test_token_is_fetched_once():
    http = FakeHttp({("GET", "/nginx/certificates"): FakeResponse(200, [])})
    c = client(http)
    c.login()
    c.list_certificates()
    c.list_certificates()
    assert http.logins == 1
    assert http.requests[0][2] == {"Authorization": "Bearer tok"}
    assert http.requests[0][1] == "https://npm.example.com/api/nginx/certificates"


def test_missing_token_is_authentication_error():
    with pytest.raises(AuthenticationError, match="no token"):
        client(FakeHttp(token=None)).login()


def test_unreachable_login_is_authentication_error():
    with pytest.raises(AuthenticationError):
        client(FakeHttp(token=requests.ConnectionError("refused"))).login()


def test_certificates_are_parsed():
    http = FakeHttp({("GET", "/nginx/certificates"): FakeResponse(200, [{
        "id": 4, "nice_name": "*.example.com - 2026-09-01", "provider": "other",
        "domain_names": ["*.example.com"], "created_on": "2026-09-01 10:00:00",
        "expires_on": "2026-11-30 10:00:00", "meta": {},
    }])})
    certs = client(http).list_certificates()
    assert certs[0].id == 4
    assert certs[0].domain_names == ["*.example.com"]


def test_non_success_is_api_error():
    http = FakeHttp({("PUT", "/nginx/proxy-hosts/3"): FakeResponse(400, text='{"error":"bad"}')})
    with pytest.raises(NpmApiError) as ei:
        client(http).update_host("proxy-hosts", 3, {"certificate_id": 9})
    assert ei.value.status == 400
    assert "bad" in ei.value.body


def test_transport_error_is_api_error_without_status():
    http = FakeHttp({("GET", "/nginx/proxy-hosts"): requests.Timeout("slow")})
    with pytest.raises(NpmApiError) as ei:
        client(http).list_hosts("proxy-hosts")
    assert ei.value.status is None


def test_validation_rejection():
    http = FakeHttp({("POST", "/nginx/certificates/validate"):
                     FakeResponse(400, text='{"error":{"message":"key does not match"}}')})
    with pytest.raises(ValidationRejected, match="key does not match"):
        client(http).validate_certificate("CERT", "KEY")


def test_upload_sends_both_pem_files():
    http = FakeHttp({("POST", "/nginx/certificates/7/upload"): FakeResponse(200, {"certificate": "x"})})
    client(http).upload_certificate(7, "CERT", "KEY")
    files = http.requests[0][3]["files"]
    assert files["certificate"][0] == "fullchain.pem"
    assert files["certificate"][1] == b"CERT"
    assert files["certificate_key"][0] == "privkey.pem"


def test_create_uses_other_provider():
    http = FakeHttp({("POST", "/nginx/certificates"): FakeResponse(201, {"id": 12})})
    assert client(http).create_certificate("*.example.com - 2026-10-18") == {"id": 12}
    assert http.requests[0][3]["json"] == {"nice_name": "*.example.com - 2026-10-18", "provider": "other"}


def test_empty_and_non_json_bodies():
    http = FakeHttp({
        ("DELETE", "/nginx/certificates/3"): FakeResponse(200, text=""),
        ("GET", "/nginx/proxy-hosts/1"): FakeResponse(200, text="ok"),
    })
    c = client(http)
    assert c.delete_certificate(3) is None
    assert c.get_host("proxy-hosts", 1) == {"raw": "ok"}
