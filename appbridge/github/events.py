"""Per-event webhook handlers.

Each handler pulls out the fields a downstream sync needs, logs them and
returns an action label for the webhook response. Handlers are registered
by X-GitHub-Event name; unknown events are acknowledged and ignored.
"""

import logging
from typing import Callable

logger = logging.getLogger(__name__)

EventHandler = Callable[[dict], str]

_HANDLERS: dict[str, EventHandler] = {}


def handles(event: str) -> Callable[[EventHandler], EventHandler]:
    def register(fn: EventHandler) -> EventHandler:
        _HANDLERS[event] = fn
        return fn

    return register


def registered_events() -> list[str]:
    return sorted(_HANDLERS)


def dispatch_event(event: str, payload: dict) -> str:
    """Route a verified payload to its handler. Returns the action label."""
    handler = _HANDLERS.get(event)
    if handler is None:
        logger.info("No handler for webhook event %r, ignoring", event)
        return "ignored"
    return handler(payload)


def _repo_name(payload: dict) -> str:
    return (payload.get("repository") or {}).get("full_name", "")


def parse_installation_event(payload: dict) -> dict:
    """Extract installation ID, account and repository lists from an installation payload."""
    installation = payload.get("installation") or {}
    account = installation.get("account") or {}

    def _repos(key: str) -> list[dict]:
        return [
            {"id": r.get("id"), "full_name": r.get("full_name"), "name": r.get("name")}
            for r in payload.get(key) or []
        ]

    return {
        "action": payload.get("action", ""),
        "installation_id": installation.get("id"),
        "account_login": account.get("login"),
        "account_id": account.get("id"),
        "repositories": _repos("repositories"),
        "repositories_added": _repos("repositories_added"),
        "repositories_removed": _repos("repositories_removed"),
    }


@handles("ping")
def _handle_ping(payload: dict) -> str:
    logger.info("Webhook ping received (hook_id=%s)", payload.get("hook_id"))
    return "pong"


@handles("installation")
def _handle_installation(payload: dict) -> str:
    data = parse_installation_event(payload)
    logger.info(
        "installation %s: id=%s account=%s repos=%d",
        data["action"],
        data["installation_id"],
        data["account_login"],
        len(data["repositories"]),
    )
    return f"installation.{data['action'] or 'unknown'}"


@handles("installation_repositories")
def _handle_installation_repositories(payload: dict) -> str:
    data = parse_installation_event(payload)
    logger.info(
        "installation_repositories %s: id=%s added=%d removed=%d",
        data["action"],
        data["installation_id"],
        len(data["repositories_added"]),
        len(data["repositories_removed"]),
    )
    return f"installation_repositories.{data['action'] or 'unknown'}"


@handles("issues")
def _handle_issues(payload: dict) -> str:
    action = payload.get("action", "")
    number = (payload.get("issue") or {}).get("number")
    logger.info("issues %s: %s#%s", action, _repo_name(payload), number)
    return f"issues.{action or 'unknown'}"


@handles("pull_request")
def _handle_pull_request(payload: dict) -> str:
    action = payload.get("action", "")
    pr = payload.get("pull_request") or {}
    logger.info(
        "pull_request %s: %s#%s (%s)",
        action,
        _repo_name(payload),
        payload.get("number") or pr.get("number"),
        (pr.get("head") or {}).get("sha", "")[:7],
    )
    return f"pull_request.{action or 'unknown'}"


@handles("push")
def _handle_push(payload: dict) -> str:
    ref = payload.get("ref", "")
    default_branch = (payload.get("repository") or {}).get("default_branch", "main")
    head_sha = (payload.get("head_commit") or {}).get("id") or payload.get("after") or ""
    logger.info("push: %s %s @ %s", _repo_name(payload), ref, head_sha[:7])
    if ref == f"refs/heads/{default_branch}":
        return "push.default_branch"
    return "push.other_ref"


@handles("repository")
def _handle_repository(payload: dict) -> str:
    action = payload.get("action", "")
    logger.info("repository %s: %s", action, _repo_name(payload))
    return f"repository.{action or 'unknown'}"
