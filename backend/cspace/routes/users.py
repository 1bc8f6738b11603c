# Overview: Flask API routes for employee accounts and role assignment.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_permission
from ..errors import AuthError, InvalidCredentialFormat
from ..extensions import db
from ..models import Employee
from ..services import auth_service, permission_service


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_permission("users:view")
def list_users_route():
    """Query: branchId, includeInactive=true"""
    try:
        employees = auth_service.list_employees(
            branch_id=request.args.get("branchId") or None,
            include_inactive=request.args.get("includeInactive") == "true",
        )
    except Exception:
        current_app.logger.exception("Failed to list users")
        return jsonify({"error": "internal_server_error"}), 500

    return jsonify({"users": [e.to_dict() for e in employees]}), 200


@users_bp.put("/<int:employee_id>/role")
@require_permission("users:assign_roles")
def assign_role_route(employee_id: int):
    """
    Change an employee's role.

    SECURITY: The caller must sit strictly above both the employee's current
    role and the new role in the hierarchy. The new role reaches the
    employee's session at its next refresh.
    """
    data = request.get_json(silent=True) or {}
    new_role = data.get("role")
    if not new_role:
        err = InvalidCredentialFormat("role is required")
        return jsonify(err.to_dict()), err.status_code

    try:
        employee = db.session.get(Employee, employee_id)
        if employee is None:
            return jsonify({"error": "not_found", "message": "Employee not found"}), 404

        permission_service.require_can_manage(g.current_user, employee.role)
        permission_service.require_can_manage(g.current_user, new_role)

        employee = auth_service.assign_role(employee_id, new_role)
    except ValueError as e:
        err = InvalidCredentialFormat(str(e))
        return jsonify(err.to_dict()), err.status_code
    except AuthError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to assign role")
        return jsonify({"error": "internal_server_error"}), 500

    return jsonify({"user": employee.to_dict()}), 200
