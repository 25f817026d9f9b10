import secrets
from flask import session, Request

# Requests that change vehicles, inspections or settings must carry the session token.
MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


def ensure_csrf_token() -> str:
    """Return the session's CSRF token, minting one on the first request."""
    token = session.get("csrf_token")
    if not token:
        token = secrets.token_urlsafe(32)
        session["csrf_token"] = token
    return token


def submitted_csrf_token(req: Request) -> str | None:
    # The inspection UI sends a header; plain forms and JSON bodies are accepted too.
    token = req.headers.get("X-CSRF-Token") or req.form.get("csrf_token")
    if not token and req.is_json:
        body = req.get_json(silent=True)
        if isinstance(body, dict):
            token = body.get("csrf_token")
    return token or None


def validate_csrf(req: Request) -> bool:
    token = submitted_csrf_token(req)
    expected = session.get("csrf_token")
    return bool(token and expected and secrets.compare_digest(str(token), str(expected)))
