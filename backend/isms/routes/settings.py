from __future__ import annotations

from flask import Blueprint, jsonify, request, g

from ..extensions import db
from ..permissions import Action
from ..services.settings_service import SettingsService
from ..decorators import require_auth, require_permission
from .errors import json_error


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("")
@require_auth
@require_permission("settings", Action.READ)
def get_settings():
    try:
        settings = SettingsService(db.session).load()
        db.session.commit()
        return jsonify({"settings": settings.to_dict()})
    except Exception as exc:
        db.session.rollback()
        return json_error(exc, "load settings")


@settings_bp.put("")
@require_auth
@require_permission("settings", Action.WRITE)
def update_settings():
    try:
        settings = SettingsService(db.session).save(request.get_json(silent=True), user_id=g.current_user.id)
        db.session.commit()
        return jsonify({"settings": settings.to_dict()})
    except Exception as exc:
        db.session.rollback()
        return json_error(exc, "update settings")
