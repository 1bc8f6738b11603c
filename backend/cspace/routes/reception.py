# Overview: Flask API routes for reception; operator switching, operator PINs and branch scope.

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from ..decorators import current_principal, with_auth
from ..errors import AuthError, DependencyUnavailable, InvalidCredentialFormat
from ..extensions import db
from ..services import auth_service, branch_access_service, operator_switch_service
from ..services.operator_switch_service import SWITCH_LOCKED, SWITCH_SUCCESS


reception_bp = Blueprint("reception", __name__, url_prefix="/api/reception")


def _store_unavailable(log_message: str):
    db.session.rollback()
    current_app.logger.exception(log_message)
    err = DependencyUnavailable("Credential store unavailable")
    return jsonify(err.to_dict()), err.status_code


@reception_bp.post("/operator-switch")
@with_auth(permission="reception:view", allow_kiosk=True)
def operator_switch_route():
    """
    Identify the operator at a reception terminal by 6-digit PIN.

    Responses:
    - 200 {success, operator}
    - 400 malformed PIN or missing branchId (no attempt consumed)
    - 401 {error: invalid_pin, attemptsRemaining}
    - 423 {error: too_many_attempts, lockoutRemainingSeconds}
    - 503 credential store unavailable
    """
    principal = current_principal()
    try:
        data = request.get_json(silent=True) or {}
        pin = data.get("pin")
        auth_service.validate_pin_format(pin)

        branch_id = data.get("branchId")
        if branch_id:
            branch_access_service.require_branch_access(principal, branch_id)

        result = operator_switch_service.switch_operator(
            branch_id,
            principal.session_key,
            pin,
            session_user_id=principal.session_key,
        )
    except AuthError as e:
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError:
        return _store_unavailable("Credential store error during operator switch")
    except Exception:
        current_app.logger.exception("Operator switch failed")
        return jsonify({"success": False, "error": "internal_server_error"}), 500

    if result.status == SWITCH_SUCCESS:
        return jsonify(result.to_dict()), 200
    if result.status == SWITCH_LOCKED:
        return jsonify(result.to_dict()), 423
    return jsonify(result.to_dict()), 401


@reception_bp.get("/operator-switch/assigned")
@with_auth(allow_kiosk=True)
def assigned_operators_route():
    """Employees assigned into ?branchId= from other branches (PIN overlay shortcut list)."""
    branch_id = request.args.get("branchId")
    if not branch_id:
        err = InvalidCredentialFormat("branchId is required")
        return jsonify(err.to_dict()), err.status_code

    try:
        branch_access_service.require_branch_access(current_principal(), branch_id)
        operators = operator_switch_service.get_assigned_operators(branch_id)
    except AuthError as e:
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError:
        return _store_unavailable("Credential store error listing assigned operators")
    except Exception:
        current_app.logger.exception("Failed to list assigned operators")
        return jsonify({"error": "internal_server_error"}), 500

    return jsonify({"operators": operators}), 200


@reception_bp.post("/operator-pin/bulk-assign")
@with_auth(permission="operator_pin:manage")
def bulk_assign_pins_route():
    """
    Assign random 6-digit PINs to active employees.

    Body: {branchId?: str, overwrite?: bool}. By default only employees
    without a PIN are assigned. The plaintext PINs are in this response
    only; distribute them out of band.
    """
    try:
        data = request.get_json(silent=True) or {}
        outcome = operator_switch_service.bulk_assign_pins(
            branch_id=data.get("branchId"),
            overwrite=data.get("overwrite") is True,
        )
    except AuthError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Bulk PIN assignment failed")
        return jsonify({"error": "internal_server_error"}), 500

    assigned = outcome["assigned"]
    if not assigned and not outcome["skipped"]:
        message = "No employees need PIN assignment"
    else:
        message = f"Assigned PINs to {len(assigned)} employees"

    return jsonify({
        "success": True,
        "message": message,
        "assigned": assigned,
        "skipped": outcome["skipped"],
        "count": len(assigned),
    }), 200


@reception_bp.get("/branches")
@with_auth(permission="reception:view", allow_kiosk=True)
def accessible_branches_route():
    """Branches the caller may operate at reception."""
    try:
        branches = branch_access_service.list_accessible_branches(current_principal())
    except AuthError as e:
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError:
        return _store_unavailable("Credential store error listing accessible branches")
    except Exception:
        current_app.logger.exception("Failed to list accessible branches")
        return jsonify({"error": "internal_server_error"}), 500

    return jsonify({"branches": [b.to_dict() for b in branches]}), 200
