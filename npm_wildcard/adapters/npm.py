# npm_wildcard/adapters/npm.py
import logging

import requests

from npm_wildcard.errors import AuthenticationError, NpmApiError, ValidationRejected
from npm_wildcard.models import Certificate

logger = logging.getLogger(__name__)

PEM_CONTENT_TYPE = "application/x-x509-ca-cert"


class NpmSession:
    """
    Owns the bearer token for one run.

    token() logs in on first use and hands back the memoized value afterwards.
    Callers are sequential; a concurrent caller would need a lock around the
    acquire path.
    """
    def __init__(self, api_base: str, identity: str, secret: str,
                 http: requests.Session, timeout: float = 30.0):
        self.api_base = api_base
        self.identity = identity
        self.secret = secret
        self.http = http
        self.timeout = timeout
        self._token: str | None = None

    def token(self) -> str:
        if self._token:
            return self._token
        url = f"{self.api_base}/tokens"
        try:
            r = self.http.post(url, json={"identity": self.identity, "secret": self.secret},
                               timeout=self.timeout)
        except requests.RequestException as e:
            raise AuthenticationError(f"NPM login failed: {e}") from e
        try:
            data = r.json() if r.text else {}
        except ValueError:
            data = {}
        token = data.get("token") if isinstance(data, dict) else None
        if not token:
            raise AuthenticationError(f"NPM login failed: no token returned (status {r.status_code})")
        self._token = token
        return token

    def headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token()}"}


class NpmClient:
    """
    Nginx Proxy Manager REST adapter:
      - token login (memoized through NpmSession)
      - certificate list / validate / create / upload / delete
      - proxy-host and redirection-host list / get / update
    """
    def __init__(self, base_url: str, identity: str, secret: str,
                 timeout: float = 30.0, verify: bool = True,
                 http: requests.Session | None = None):
        self.base = f"{base_url.rstrip('/')}/api"
        self.timeout = timeout
        self.s = http or requests.Session()
        self.s.verify = verify
        self.session = NpmSession(self.base, identity, secret, self.s, timeout)

    # ---------- HTTP helpers ----------
    def _u(self, p: str) -> str:
        return f"{self.base}{p}"

    def _request(self, method: str, p: str, **kw):
        url = self._u(p)
        try:
            r = self.s.request(method, url, headers=self.session.headers(),
                               timeout=self.timeout, **kw)
        except requests.RequestException as e:
            raise NpmApiError(method, url, None, str(e)) from e
        if not 200 <= r.status_code < 300:
            raise NpmApiError(method, url, r.status_code, r.text)
        if not r.text:
            return {}
        try:
            return r.json()
        except ValueError:
            return {"raw": r.text}

    def _get(self, p: str):
        return self._request("GET", p)

    def _post(self, p: str, body: dict):
        return self._request("POST", p, json=body)

    def _put(self, p: str, body: dict):
        return self._request("PUT", p, json=body)

    @staticmethod
    def _pem_files(certificate: str, certificate_key: str) -> dict:
        return {
            "certificate": ("fullchain.pem", certificate.encode("utf-8"), PEM_CONTENT_TYPE),
            "certificate_key": ("privkey.pem", certificate_key.encode("utf-8"), PEM_CONTENT_TYPE),
        }

    def login(self) -> str:
        return self.session.token()

    # ---------- Certificates ----------
    def list_certificates(self) -> list[Certificate]:
        data = self._get("/nginx/certificates")
        return [Certificate.model_validate(c) for c in (data or [])]

    def validate_certificate(self, certificate: str, certificate_key: str) -> dict:
        try:
            return self._request("POST", "/nginx/certificates/validate",
                                 files=self._pem_files(certificate, certificate_key))
        except NpmApiError as e:
            if e.status is None:
                raise
            raise ValidationRejected(f"Certificate validation failed: {e.body}") from e

    def create_certificate(self, nice_name: str) -> dict:
        return self._post("/nginx/certificates", {"nice_name": nice_name, "provider": "other"})

    def upload_certificate(self, cert_id, certificate: str, certificate_key: str) -> dict:
        return self._request("POST", f"/nginx/certificates/{cert_id}/upload",
                             files=self._pem_files(certificate, certificate_key))

    def delete_certificate(self, cert_id) -> None:
        self._request("DELETE", f"/nginx/certificates/{cert_id}")

    # ---------- Hosts ----------
    def list_hosts(self, group: str) -> list[dict]:
        return list(self._get(f"/nginx/{group}") or [])

    def get_host(self, group: str, host_id) -> dict:
        return self._get(f"/nginx/{group}/{host_id}")

    def update_host(self, group: str, host_id, body: dict) -> dict:
        return self._put(f"/nginx/{group}/{host_id}", body)
