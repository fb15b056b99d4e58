from __future__ import annotations

from flask import current_app, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from adlinkton.api import api_bp
from adlinkton.extensions import db
from adlinkton.models import Category, Link, link_categories
from adlinkton.services.bookmark_import import BookmarkParseError
from adlinkton.services.categories import get_or_create_category
from adlinkton.services.favicons import get_favicon_store
from adlinkton.services.importer import run_bookmark_import
from adlinkton.services.links import (
    insert_link,
    link_exists,
    sanitize_html,
    validate_url,
)
from adlinkton.services.security import api_auth_required


def _to_bool(value, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _validation_error(errors: dict):
    return jsonify({"error": "Validation failed", "errors": errors}), 422


def _owned_category_ids(user_id: int, raw_ids) -> list[int] | None:
    if not isinstance(raw_ids, list):
        return None
    ids: list[int] = []
    for raw in raw_ids:
        try:
            value = int(raw)
        except (TypeError, ValueError):
            return None
        if value > 0 and value not in ids:
            ids.append(value)
    if not ids:
        return []
    owned = {
        row.id
        for row in db.session.query(Category.id)
        .filter(Category.user_id == user_id, Category.id.in_(ids))
        .all()
    }
    if owned != set(ids):
        return None
    return ids


def _is_html_upload(upload) -> bool:
    filename = (upload.filename or "").lower()
    return upload.mimetype == "text/html" or filename.endswith(".html")


@api_bp.route("/health")
def health():
    return jsonify({"status": "ok", "service": "Adlinkton"})


@api_bp.route("/categories", methods=["GET"])
@api_auth_required
def categories_list():
    user = g.api_user
    items = (
        Category.query.filter_by(user_id=user.id)
        .order_by(Category.sort_order.asc(), Category.name.asc())
        .all()
    )
    return jsonify({"items": [item.as_dict() for item in items]})


@api_bp.route("/categories", methods=["POST"])
@api_auth_required
def categories_create():
    user = g.api_user
    payload = request.get_json(silent=True) or {}
    name = (payload.get("name") or "").strip()
    parent_id = payload.get("parent_id")

    if not name or len(name) > 255:
        return _validation_error({"name": "Name must be between 1 and 255 characters"})
    if parent_id is not None:
        if isinstance(parent_id, bool):
            return _validation_error({"parent_id": "Must be an integer"})
        try:
            parent_id = int(parent_id)
        except (TypeError, ValueError):
            return _validation_error({"parent_id": "Must be an integer"})
        parent = Category.query.filter_by(id=parent_id, user_id=user.id).first()
        if not parent:
            return jsonify({"error": "parent category not found"}), 404

    category_id = get_or_create_category(user.id, name, parent_id)
    db.session.commit()
    category = db.session.get(Category, category_id)
    return jsonify(category.as_dict()), 201


@api_bp.route("/links", methods=["GET"])
@api_auth_required
def links_list():
    user = g.api_user
    category_id = request.args.get("category_id", type=int)
    query = Link.query.filter_by(user_id=user.id)
    if category_id:
        query = (
            query.join(link_categories, link_categories.c.link_id == Link.id)
            .filter(link_categories.c.category_id == category_id)
            .order_by(link_categories.c.sort_order.asc(), Link.id.asc())
        )
    else:
        query = query.order_by(Link.created_at.desc(), Link.id.desc())
    return jsonify({"items": [link.as_dict() for link in query.all()]})


@api_bp.route("/links", methods=["POST"])
@api_auth_required
def links_create():
    user = g.api_user
    payload = request.get_json(silent=True) or {}
    url = (payload.get("url") or "").strip()
    name = (payload.get("name") or "").strip()

    missing = [field for field in ("url", "name") if not payload.get(field)]
    if missing:
        return _validation_error({"missing_fields": missing})
    if not validate_url(url):
        return _validation_error({"url": "Invalid URL format"})
    if len(name) > 255:
        return _validation_error({"name": "Name must be between 1 and 255 characters"})

    category_ids = _owned_category_ids(user.id, payload.get("category_ids", []))
    if category_ids is None:
        return _validation_error({"category_ids": "Unknown category"})
    if link_exists(user.id, url):
        return jsonify({"error": "link already exists"}), 409

    favicon_path = get_favicon_store().fetch(url)
    link = insert_link(
        user_id=user.id,
        url=url,
        name=sanitize_html(name),
        favicon_path=favicon_path,
        category_ids=category_ids,
        is_favorite=_to_bool(payload.get("is_favorite")),
    )
    db.session.commit()
    return jsonify(link.as_dict()), 201


@api_bp.route("/import/bookmarks", methods=["POST"])
@api_auth_required
def import_bookmarks_api():
    user = g.api_user
    upload = request.files.get("file")
    if not upload:
        return jsonify({"error": "No file uploaded"}), 400
    if not _is_html_upload(upload):
        return jsonify({"error": "Invalid file type. Expected HTML file."}), 400

    try:
        html = upload.read()
    except OSError:
        return jsonify({"error": "Failed to read file"}), 400

    try:
        stats = run_bookmark_import(
            user.id,
            html,
            get_favicon_store(),
            favicon_timeout=current_app.config["IMPORT_FAVICON_TIMEOUT"],
        )
    except BookmarkParseError as exc:
        return jsonify({"error": f"Import failed: {exc}"}), 400
    except SQLAlchemyError as exc:
        current_app.logger.exception("Bookmark import failed for user %s", user.id)
        return jsonify({"error": f"Import failed: {exc}"}), 500

    return jsonify(
        {"message": "Bookmarks imported successfully", "stats": stats.as_dict()}
    )
