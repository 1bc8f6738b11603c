# Overview: Flask API routes for dashboard sessions; login, silent refresh, logout and identity.

"""
Authentication API routes

Tokens are returned in the JSON body and also set as HttpOnly cookies
(c-space-auth, c-space-refresh) so that browser clients never handle them
in script. API clients may instead send Authorization: Bearer <token> and
POST the refresh token in the body.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..errors import AuthError
from ..services import session_service
from ..services.permission_service import get_principal_permissions
from ..services.session_service import REFRESH_COOKIE_NAME, SESSION_COOKIE_NAME


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _set_session_cookies(response, tokens):
    secure = current_app.config.get("SESSION_COOKIE_SECURE", False)
    response.set_cookie(
        SESSION_COOKIE_NAME,
        tokens.access_token,
        max_age=current_app.config["SESSION_TOKEN_TTL_SECONDS"],
        httponly=True,
        secure=secure,
        samesite="Lax",
        path="/",
    )
    response.set_cookie(
        REFRESH_COOKIE_NAME,
        tokens.refresh_token,
        max_age=current_app.config["REFRESH_TOKEN_TTL_SECONDS"],
        httponly=True,
        secure=secure,
        samesite="Lax",
        path="/api/auth",
    )
    return response


def _clear_session_cookies(response):
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")
    response.delete_cookie(REFRESH_COOKIE_NAME, path="/api/auth")
    return response


def _refresh_token_from_request() -> str | None:
    data = request.get_json(silent=True) or {}
    return data.get("refreshToken") or request.cookies.get(REFRESH_COOKIE_NAME)


@auth_bp.post("/login")
def login_route():
    """
    Authenticate an employee by email and password.

    SECURITY:
    - Checks the per-email login throttle before verifying the password
    - Records failed attempts for throttling
    - Records successful logins for the audit trail
    """
    try:
        data = request.get_json(silent=True) or {}
        tokens = session_service.login(
            data.get("email"),
            data.get("password"),
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        response = jsonify({**tokens.to_dict(), "message": "Login successful"})
        return _set_session_cookies(response, tokens), 200
    except AuthError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "internal_server_error"}), 500


@auth_bp.post("/refresh")
def refresh_route():
    """
    Silent renewal: exchange the refresh token for a new session token.

    The refresh token is rotated on every call. A concurrent duplicate
    submission inside the grace window receives the same successor.
    """
    try:
        tokens = session_service.refresh_session(
            _refresh_token_from_request(),
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        return _set_session_cookies(jsonify(tokens.to_dict()), tokens), 200
    except AuthError as e:
        response = jsonify(e.to_dict())
        if e.status_code == 401:
            _clear_session_cookies(response)
        return response, e.status_code
    except Exception:
        current_app.logger.exception("Failed to refresh session")
        return jsonify({"error": "internal_server_error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """Revoke the refresh token (if any) and clear cookies. Always 200."""
    try:
        session_service.end_session(_refresh_token_from_request())
    except AuthError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to end session")
        return jsonify({"error": "internal_server_error"}), 500

    response = jsonify({"message": "Logged out"})
    return _clear_session_cookies(response), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    principal = g.current_user
    return jsonify({
        "user": principal.to_dict(),
        "permissions": sorted(get_principal_permissions(principal)),
    }), 200
