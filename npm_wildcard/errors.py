# npm_wildcard/errors.py
"""Error taxonomy for a maintenance run.

Everything below ``NpmWildcardError`` except ``ConfigurationError`` and
``AuthenticationError`` is fatal to the current wildcard only; the
orchestrator records it on the job and moves on.
"""


class NpmWildcardError(RuntimeError):
    """Base class for all errors raised by npm_wildcard."""


class ConfigurationError(NpmWildcardError):
    """Required configuration is missing or malformed."""
    def __init__(self, missing: list[str] | None = None, message: str | None = None):
        self.missing = list(missing or [])
        if message is None:
            message = "Missing required configuration: " + ", ".join(self.missing)
        super().__init__(message)


class AuthenticationError(NpmWildcardError):
    """Nginx Proxy Manager did not hand out a token. Aborts the whole run."""


class NpmApiError(NpmWildcardError):
    """Non-success response from the Nginx Proxy Manager API."""
    def __init__(self, method: str, url: str, status: int | None, body: str = ""):
        super().__init__(f"NPM {method} {url} failed (status {status}): {body}")
        self.method = method
        self.url = url
        self.status = status
        self.body = body


class ChallengePublishError(NpmWildcardError):
    """The DNS collaborator could not publish the challenge TXT record."""
    def __init__(self, hostname: str, reason: str):
        super().__init__(f"Publishing TXT record for {hostname} failed: {reason}")
        self.hostname = hostname
        self.reason = reason


class PropagationTimeoutError(NpmWildcardError):
    """The challenge value never became visible on any nameserver."""
    def __init__(self, hostname: str, attempts: int, interval: float):
        super().__init__(
            f"TXT record for {hostname} not visible after {attempts} attempt(s) "
            f"({attempts * interval:.0f}s of polling)"
        )
        self.hostname = hostname
        self.attempts = attempts
        self.interval = interval


class IssuanceFailure(NpmWildcardError):
    """certbot exited non-zero, or reported success without output files."""
    def __init__(self, message: str, returncode: int | None = None,
                 stdout: str = "", stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class ValidationRejected(NpmWildcardError):
    """NPM rejected the certificate/key pair. Raised before any record exists."""


class UploadConsistencyError(NpmWildcardError):
    """The freshly created certificate record could not be found on re-fetch.

    Carries the generated nice name so the record can be reconciled by hand.
    Never retry with the same name.
    """
    def __init__(self, nice_name: str, created_id=None):
        super().__init__(
            f"Certificate '{nice_name}' (created id={created_id}) not found after upload; "
            "reconcile manually in Nginx Proxy Manager"
        )
        self.nice_name = nice_name
        self.created_id = created_id


class HostUpdateError(NpmWildcardError):
    """Updating a single host failed. Logged, never propagated past the batch."""
    def __init__(self, kind: str, host_id, reason: str, current_state: dict | None = None):
        super().__init__(f"{kind} id={host_id} update failed: {reason}")
        self.kind = kind
        self.host_id = host_id
        self.reason = reason
        self.current_state = current_state
