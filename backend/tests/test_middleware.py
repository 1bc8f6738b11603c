"""
Route authorization tests (with_auth and friends).

Verifies:
- No credential => 401 missing_token; expired session => 401 refreshable
- Valid session lacking permission => 403, recorded as PERMISSION_DENIED
- A valid but under-privileged session never falls back to a kiosk token
- Kiosk tokens are accepted only on routes that allow them
- Session cookie is accepted in place of the Authorization header
"""

from datetime import timedelta

import pytest

from cspace.decorators import (
    AuthRequirement,
    require_all_permissions,
    require_any_permission,
    require_permission,
    require_roles,
    with_auth,
)
from cspace.models import SecurityEvent
from cspace.services.kiosk_service import KioskPrincipal
from cspace.services.session_service import SESSION_COOKIE_NAME, issue_session_token, principal_for_employee
from cspace.time_utils import utcnow

from conftest import kiosk_headers, session_headers


ME_URL = "/api/auth/me"
USERS_URL = "/api/users"
RECEPTION_BRANCHES_URL = "/api/reception/branches"


class TestUnauthenticated:

    def test_missing_token(self, client, db_session):
        resp = client.get(ME_URL)

        assert resp.status_code == 401
        assert resp.json["error"] == "unauthenticated"
        assert resp.json["reason"] == "missing_token"
        assert "refreshable" not in resp.json

    def test_expired_session_is_refreshable(self, client, make_employee):
        employee = make_employee(branch_id=None)
        token, _ = issue_session_token(
            principal_for_employee(employee),
            ttl=timedelta(hours=1),
            now=utcnow() - timedelta(hours=2),
        )

        resp = client.get(ME_URL, headers={"Authorization": f"Bearer {token}"})

        assert resp.status_code == 401
        assert resp.json["reason"] == "expired"
        assert resp.json["refreshable"] is True

    def test_tampered_session(self, client, make_employee):
        token = session_headers(make_employee())["Authorization"]

        resp = client.get(ME_URL, headers={"Authorization": token[:-4] + "AAAA"})

        assert resp.status_code == 401
        assert resp.json["reason"] == "signature_mismatch"
        assert "refreshable" not in resp.json

    def test_non_bearer_scheme_ignored(self, client, db_session):
        resp = client.get(ME_URL, headers={"Authorization": "Basic dXNlcjpwYXNz"})
        assert resp.json["reason"] == "missing_token"

    def test_kiosk_token_on_session_only_route(self, client, yunusabad):
        resp = client.get(ME_URL, headers=kiosk_headers("yunusabad"))
        assert resp.status_code == 401

    def test_kiosk_token_on_session_header(self, client, yunusabad):
        kiosk_token = kiosk_headers("yunusabad")["X-Kiosk-Token"]
        resp = client.get(ME_URL, headers={"Authorization": f"Bearer {kiosk_token}"})

        assert resp.status_code == 401
        assert resp.json["reason"] == "wrong_type"


class TestSessionAccess:

    def test_me(self, client, make_employee):
        employee = make_employee("Dilnoza R", role="branch_manager")

        resp = client.get(ME_URL, headers=session_headers(employee))

        assert resp.status_code == 200
        assert resp.json["user"]["id"] == employee.id
        assert resp.json["user"]["role"] == "branch_manager"
        assert "reception:view" in resp.json["permissions"]

    def test_session_cookie(self, client, make_employee):
        employee = make_employee()
        token = session_headers(employee)["Authorization"].split(" ", 1)[1]
        client.set_cookie(SESSION_COOKIE_NAME, token)

        resp = client.get(ME_URL)
        assert resp.status_code == 200

    def test_permission_granted(self, client, make_employee):
        hr = make_employee(role="hr")
        assert client.get(USERS_URL, headers=session_headers(hr)).status_code == 200

    def test_permission_denied_is_logged(self, client, make_employee, db_session):
        employee = make_employee(role="employee")

        resp = client.get(USERS_URL, headers=session_headers(employee))

        assert resp.status_code == 403
        assert resp.json["reason"] == "insufficient_permissions"
        assert resp.json["required_permission"] == "users:view"

        event = db_session.query(SecurityEvent).filter_by(event_type="PERMISSION_DENIED").one()
        assert event.user_id == employee.id
        assert event.resource == USERS_URL
        assert event.success is False

    def test_unknown_role_gets_employee_permissions(self, client, make_employee):
        ghost = make_employee(role="superuser")

        me = client.get(ME_URL, headers=session_headers(ghost))
        assert me.json["user"]["role"] == "employee"
        assert client.get(USERS_URL, headers=session_headers(ghost)).status_code == 403


class TestKioskFallback:

    def test_kiosk_on_kiosk_route(self, client, yunusabad):
        resp = client.get(RECEPTION_BRANCHES_URL, headers=kiosk_headers("yunusabad"))

        assert resp.status_code == 200
        assert [b["id"] for b in resp.json["branches"]] == ["yunusabad"]

    def test_underprivileged_session_does_not_fall_back(self, client, yunusabad, make_employee):
        employee = make_employee(role="employee", branch_id="yunusabad")
        headers = {**session_headers(employee), **kiosk_headers("yunusabad")}

        resp = client.get(RECEPTION_BRANCHES_URL, headers=headers)
        assert resp.status_code == 403

    def test_invalid_session_falls_back_to_kiosk(self, client, yunusabad):
        headers = {"Authorization": "Bearer garbage", **kiosk_headers("yunusabad")}

        resp = client.get(RECEPTION_BRANCHES_URL, headers=headers)
        assert resp.status_code == 200

    def test_invalid_kiosk_token(self, client, yunusabad):
        resp = client.get(RECEPTION_BRANCHES_URL, headers={"X-Kiosk-Token": "garbage"})

        assert resp.status_code == 401
        assert resp.json["reason"] == "malformed"


class TestAuthRequirement:

    def test_unknown_permission_code_rejected_at_decoration(self):
        with pytest.raises(ValueError):
            with_auth(permission="reception:teleport")

    def test_unknown_role_rejected(self):
        with pytest.raises(ValueError):
            AuthRequirement(roles=("wizard",))

    def test_any_of(self, app, make_employee):
        requirement = AuthRequirement(permissions=("payroll:process", "shifts:view"))
        assert requirement.is_satisfied_by(principal_for_employee(make_employee(role="employee")))

    def test_all_of(self, app, make_employee):
        requirement = AuthRequirement(permissions=("payroll:process", "shifts:view"), require_all=True)
        assert not requirement.is_satisfied_by(principal_for_employee(make_employee(role="employee")))
        assert requirement.is_satisfied_by(principal_for_employee(make_employee(role="chief_accountant")))

    def test_roles(self, app, make_employee):
        requirement = AuthRequirement(roles=("hr", "general_manager"))
        assert requirement.is_satisfied_by(principal_for_employee(make_employee(role="hr")))
        assert not requirement.is_satisfied_by(principal_for_employee(make_employee(role="ceo")))

    def test_kiosk_needs_allow_kiosk(self):
        kiosk = KioskPrincipal(branch_id="yunusabad", authenticated_at=1_700_000_000)
        assert not AuthRequirement(permission="reception:view").is_satisfied_by(kiosk)
        assert AuthRequirement(permission="reception:view", allow_kiosk=True).is_satisfied_by(kiosk)

    def test_requirement_is_attached_to_route(self, app):
        view = app.view_functions["reception.operator_switch_route"]
        assert view.auth_requirement.permission == "reception:view"
        assert view.auth_requirement.allow_kiosk is True

    def test_describe(self):
        assert AuthRequirement().describe() == "authenticated"
        assert AuthRequirement(permissions=("shifts:view", "feedback:submit")).describe() == (
            "ANY_OF:shifts:view,feedback:submit"
        )

    def test_wrappers_build_requirements(self):
        def view():
            return "ok"

        assert require_permission("reception:view", allow_kiosk=True)(view).auth_requirement == AuthRequirement(
            permission="reception:view", allow_kiosk=True
        )
        assert require_any_permission("shifts:view", "payroll:process")(view).auth_requirement.require_all is False
        assert require_all_permissions("shifts:view", "payroll:process")(view).auth_requirement.require_all is True
        assert require_roles("hr")(view).auth_requirement.roles == ("hr",)
