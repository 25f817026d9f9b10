from flask import Blueprint

from app.recon.security import ensure_csrf_token

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    return {"service": "recon", "ok": True}


@bp.get("/csrf")
def csrf():
    """Token for JSON clients; send it back as the X-CSRF-Token header."""
    return {"csrf_token": ensure_csrf_token()}


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Fast liveness probe. No DB access.
    """
    return "ok", 200
