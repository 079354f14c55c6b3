"""Error taxonomy for the installation handshake and webhook receiver.

None of these are fatal to the process. Callback-path errors turn into
dashboard redirects; webhook errors turn into synchronous 4xx/5xx replies.
"""


class GitHubAppError(Exception):
    """Base class for installation and webhook errors."""


class GitHubAppNotConfigured(GitHubAppError):
    """A required setting (slug, secret, key) is empty."""

    def __init__(self, setting: str):
        self.setting = setting
        super().__init__(f"{setting} not configured")


class MissingInstallationID(GitHubAppError):
    """The callback arrived without installation_id (cancelled or direct hit)."""


class InvalidStateError(GitHubAppError):
    """The install state token is missing, forged, expired or replayed."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class WebhookSignatureMismatch(GitHubAppError):
    """X-Hub-Signature-256 does not match the raw body."""


class UpstreamUnreachable(GitHubAppError):
    """Redis or the GitHub API could not be reached."""

    def __init__(self, upstream: str, detail: str = ""):
        self.upstream = upstream
        self.detail = detail
        super().__init__(f"{upstream} unreachable: {detail}" if detail else f"{upstream} unreachable")
