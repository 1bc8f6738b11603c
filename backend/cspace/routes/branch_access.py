# Overview: Flask API routes for administering cross-branch reception access grants and assignments.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import with_auth
from ..errors import AuthError, InvalidCredentialFormat
from ..services import branch_access_service
from cspace.time_utils import parse_iso_datetime


branch_access_bp = Blueprint("branch_access", __name__, url_prefix="/api/reception/admin/branch-access")


def _bad_request(message: str):
    err = InvalidCredentialFormat(message)
    return jsonify(err.to_dict()), err.status_code


@branch_access_bp.get("")
@with_auth(permission="reception:manage_access")
def list_branch_access_route():
    """
    List grants, newest first.

    Query: branchId, userId, includeExpired=true
    """
    try:
        user_id = request.args.get("userId", type=int)
        grants = branch_access_service.list_grants(
            user_id=user_id,
            branch_id=request.args.get("branchId") or None,
            include_expired=request.args.get("includeExpired") == "true",
        )
    except Exception:
        current_app.logger.exception("Failed to list branch access")
        return jsonify({"error": "internal_server_error"}), 500

    return jsonify({"users": [grant.to_dict() for grant in grants], "canManage": True}), 200


@branch_access_bp.post("")
@with_auth(permission="reception:manage_access")
def grant_branch_access_route():
    """
    Grant a user reception access to another branch.

    Body: {userId, branchId, expiresAt?: ISO-8601, notes?}
    """
    data = request.get_json(silent=True) or {}
    user_id = data.get("userId")
    branch_id = data.get("branchId")
    if not user_id or not branch_id:
        return _bad_request("userId and branchId are required")

    try:
        expires_at = parse_iso_datetime(data.get("expiresAt"))
    except (TypeError, ValueError, AttributeError):
        return _bad_request("expiresAt must be an ISO-8601 datetime")

    try:
        grant = branch_access_service.grant_access(
            user_id=int(user_id),
            branch_id=str(branch_id),
            granted_by_id=g.current_user.id,
            expires_at=expires_at,
            notes=data.get("notes") or None,
        )
    except ValueError as e:
        return _bad_request(str(e))
    except AuthError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to grant branch access")
        return jsonify({"error": "internal_server_error"}), 500

    return jsonify(grant.to_dict()), 201


@branch_access_bp.delete("/<int:user_id>/<branch_id>")
@with_auth(permission="reception:manage_access")
def revoke_branch_access_route(user_id: int, branch_id: str):
    try:
        branch_access_service.revoke_access(
            user_id=user_id,
            branch_id=branch_id,
            revoked_by_id=g.current_user.id,
        )
    except AuthError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to revoke branch access")
        return jsonify({"error": "internal_server_error"}), 500

    return jsonify({"success": True}), 200


branch_assignments_bp = Blueprint(
    "branch_assignments", __name__, url_prefix="/api/reception/admin/branch-assignments"
)


@branch_assignments_bp.get("/search")
@with_auth(permission="reception:manage_access")
def search_assignment_employees_route():
    """
    Employee picker for setting up cross-branch assignments.

    Query: q (at least 2 characters; shorter returns {employees: []})
    """
    try:
        employees = branch_access_service.search_employees_for_assignment(request.args.get("q"))
    except AuthError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Assignment employee search failed")
        return jsonify({"error": "internal_server_error"}), 500

    return jsonify({"employees": employees}), 200
