# Overview: Flask API routes for reception kiosk sessions; branch password login and logout.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import kiosk_token_from_request, with_auth
from ..errors import AuthError
from ..services import kiosk_service
from ..services.kiosk_service import KIOSK_COOKIE_NAME, KIOSK_SESSION_HOURS
from cspace.time_utils import to_utc_z


kiosk_bp = Blueprint("kiosk", __name__, url_prefix="/api/reception/kiosk")


@kiosk_bp.get("/branches")
def kiosk_branches_route():
    """Public: branches with kiosk mode enabled, for the kiosk login picker."""
    try:
        branches = kiosk_service.list_kiosk_branches()
    except Exception:
        current_app.logger.exception("Failed to list kiosk branches")
        return jsonify({"branches": []}), 200
    return jsonify({"branches": [{"id": b.id, "name": b.name} for b in branches]}), 200


@kiosk_bp.post("/authenticate")
def kiosk_authenticate_route():
    """Public: exchange the branch reception password for a 12-hour kiosk token."""
    try:
        data = request.get_json(silent=True) or {}
        session = kiosk_service.authenticate_kiosk(
            data.get("branchId"),
            data.get("password"),
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
    except AuthError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Kiosk authentication failed")
        return jsonify({"error": "internal_server_error"}), 500

    response = jsonify({
        "success": True,
        "branchId": session.branch.id,
        "branchName": session.branch.name,
        "token": session.token,
        "expiresAt": to_utc_z(session.expires_at),
    })
    response.set_cookie(
        KIOSK_COOKIE_NAME,
        session.token,
        max_age=KIOSK_SESSION_HOURS * 60 * 60,
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite="Strict",
        path="/",
    )
    return response, 200


@kiosk_bp.post("/logout")
def kiosk_logout_route():
    """Clear the kiosk cookie. Always 200."""
    result = kiosk_service.verify_kiosk_token(kiosk_token_from_request())
    if result.ok:
        kiosk_service.end_kiosk_session(result.principal.branch_id, ip_address=request.remote_addr)

    response = jsonify({"success": True})
    response.delete_cookie(KIOSK_COOKIE_NAME, path="/")
    return response, 200


@kiosk_bp.get("/session")
@with_auth(allow_kiosk=True)
def kiosk_session_route():
    """Describe the kiosk session behind this request (404 for personal sessions)."""
    kiosk = g.get("kiosk")
    if kiosk is None:
        return jsonify({"error": "not_found", "message": "No kiosk session"}), 404
    return jsonify({
        "branchId": kiosk.branch_id,
        "authenticatedAt": kiosk.authenticated_at,
        "expiresAt": to_utc_z(kiosk_service.kiosk_expires_at(kiosk)),
    }), 200
