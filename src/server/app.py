"""Flask HTTP surface over the JSON-file stores.

Every response is a JSON envelope with a ``success`` flag.  Mutating
routes require the ``X-ADMIN-TOKEN`` header to match the configured
secret; with no secret configured the check is skipped (local use).
"""

from __future__ import annotations

import hmac
import logging
from collections.abc import Callable
from functools import wraps
from pathlib import Path
from typing import Any

from flask import Flask, jsonify, request, send_from_directory
from werkzeug.exceptions import HTTPException

from editorial.config import ServerSectionConfig
from editorial.content.store import CoverStore, ItemStore, UploadStore
from editorial.shared.errors import EditorialError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

ADMIN_HEADER = "X-ADMIN-TOKEN"


def _error(status: int, message: str):
    return jsonify({"success": False, "error": message}), status


def _token_matches(provided: str, expected: str) -> bool:
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def _body() -> dict[str, Any]:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _query(name: str) -> str:
    return str(request.args.get(name) or "").strip()


def create_app(settings: ServerSectionConfig | None = None) -> Flask:
    """Build the Flask app serving the editorial API.

    Args:
        settings: Server section of the config; defaults apply when omitted.
    """
    settings = settings or ServerSectionConfig()
    data_dir = Path(settings.data_dir).resolve()
    uploads_dir = Path(settings.uploads_dir).resolve()

    items = ItemStore(data_dir)
    covers = CoverStore(data_dir)
    uploads = UploadStore(uploads_dir)

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = settings.max_body_mb * 1024 * 1024
    app.extensions["editorial"] = {"items": items, "covers": covers, "uploads": uploads}

    def require_admin(view: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(view)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            if settings.admin_token:
                provided = str(request.headers.get(ADMIN_HEADER) or "")
                if not _token_matches(provided, settings.admin_token):
                    logger.warning("Rejected admin request to %s", request.path)
                    return _error(401, "Unauthorized")
            return view(*args, **kwargs)

        return wrapper

    @app.errorhandler(ValidationError)
    def _validation(exc: ValidationError):
        return _error(400, exc.message)

    @app.errorhandler(NotFoundError)
    def _not_found(exc: NotFoundError):
        return _error(404, exc.message)

    @app.errorhandler(EditorialError)
    def _editorial(exc: EditorialError):
        logger.error("Request to %s failed: %s", request.path, exc.message)
        return _error(500, exc.message)

    @app.errorhandler(HTTPException)
    def _http(exc: HTTPException):
        return _error(exc.code or 500, exc.description or exc.name)

    # --- Static ---

    @app.get("/assets/uploads/<path:filename>")
    def uploaded_file(filename: str):
        return send_from_directory(uploads_dir, filename)

    @app.get("/data/<path:filename>")
    def data_file(filename: str):
        return send_from_directory(data_dir, filename)

    # --- API ---

    @app.get("/health")
    def health():
        return jsonify({"success": True, "ok": True})

    @app.post("/uploadImage")
    @require_admin
    def upload_image():
        payload = _body()
        url = uploads.upload_image(
            str(payload.get("filename") or ""),
            str(payload.get("data") or ""),
            payload.get("mimeType") or None,
        )
        return jsonify({"success": True, "url": url})

    @app.post("/publish")
    @require_admin
    def publish():
        item = items.publish(_body())
        return jsonify({"success": True, "item": item.to_json_dict()})

    @app.post("/update")
    @require_admin
    def update():
        item = items.update(_body())
        return jsonify({"success": True, "item": item.to_json_dict()})

    @app.post("/delete")
    @require_admin
    def delete():
        payload = _body()
        item_type = str(payload.get("type") or "").strip()
        item_id = str(payload.get("id") or "").strip()
        deleted = items.delete(item_type, item_id)
        return jsonify({"success": True, "deleted": deleted})

    @app.get("/list")
    def list_items():
        item_type = _query("type")
        if not item_type:
            raise ValidationError("Missing type")
        return jsonify(
            {"success": True, "items": [item.to_json_dict() for item in items.list(item_type)]}
        )

    @app.get("/item")
    def get_item():
        item_type, item_id = _query("type"), _query("id")
        if not item_type or not item_id:
            raise ValidationError("Missing type or id")
        return jsonify({"success": True, "item": items.get(item_type, item_id).to_json_dict()})

    @app.get("/latest")
    def latest():
        raw = _query("limit")
        try:
            limit = int(raw) if raw else None
        except ValueError as exc:
            raise ValidationError("limit must be an integer") from exc
        return jsonify(
            {"success": True, "items": [item.to_json_dict() for item in items.latest(limit)]}
        )

    @app.post("/updateCover")
    @require_admin
    def update_cover():
        cover = covers.set_cover(_body())
        return jsonify({"success": True, "cover": cover.to_json_dict()})

    @app.get("/cover")
    def get_cover():
        cover = covers.get_cover()
        return jsonify({"success": True, "cover": cover.to_json_dict() if cover else None})

    @app.post("/deleteDemo")
    @require_admin
    def delete_demo():
        return jsonify({"success": True, "deleted": items.delete_all_demo()})

    @app.get("/stats")
    def stats():
        demo_only = _query("demo").lower() == "true"
        return jsonify({"success": True, "stats": items.stats(demo_only)})

    return app
