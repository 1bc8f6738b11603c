"""
Operator switch tests.

Verifies:
- A stored PIN resolves to its employee and resets the lockout key
- A wrong 6-digit PIN consumes exactly one attempt and identifies nobody
- Malformed PINs are rejected before lockout accounting
- Cross-branch assignments and grants join the roster; expired ones do not
- The 5th wrong PIN locks, the 6th is refused without touching the roster
- A failed switch-log insert does not fail the switch
- An unreadable credential store is a 503, not a 500
"""

from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from cspace.errors import DependencyUnavailable
from cspace.models import BranchAccessGrant, BranchAssignment, OperatorSwitchLog
from cspace.services import branch_access_service, operator_switch_service
from cspace.services.lockout_service import get_guard, lockout_key
from cspace.services.operator_switch_service import SWITCH_INVALID, SWITCH_LOCKED, SWITCH_SUCCESS
from cspace.time_utils import utcnow

from conftest import kiosk_headers, session_headers


SWITCH_URL = "/api/reception/operator-switch"


class TestResolver:

    def test_matching_pin_resolves_employee(self, yunusabad, make_employee):
        aziza = make_employee("Aziza K", branch_id="yunusabad", pin="123456")
        make_employee("Bekzod T", branch_id="yunusabad", pin="482913")

        result = operator_switch_service.switch_operator("yunusabad", "session-1", "123456")

        assert result.status == SWITCH_SUCCESS
        assert result.operator.employee.id == aziza.id
        assert result.operator.is_cross_branch is False

    def test_success_resets_lockout(self, yunusabad, make_employee):
        make_employee(branch_id="yunusabad", pin="123456")
        key = lockout_key("yunusabad", "session-1")

        for _ in range(3):
            operator_switch_service.switch_operator("yunusabad", "session-1", "999111")
        assert get_guard().store.get(key).failure_count == 3

        operator_switch_service.switch_operator("yunusabad", "session-1", "123456")
        assert get_guard().store.get(key) is None

    def test_wrong_pin_counts_exactly_once(self, yunusabad, make_employee):
        make_employee(branch_id="yunusabad", pin="123456")

        result = operator_switch_service.switch_operator("yunusabad", "session-1", "654321")

        assert result.status == SWITCH_INVALID
        assert result.operator is None
        assert result.attempts_remaining == 4
        assert get_guard().store.get(lockout_key("yunusabad", "session-1")).failure_count == 1

    @pytest.mark.parametrize("pin", ["12345", "1234567", "abcdef", "12 456", "123456\n", 123456, None, "１" * 6])
    def test_malformed_pin_consumes_no_attempt(self, yunusabad, make_employee, pin):
        make_employee(branch_id="yunusabad", pin="123456")

        with pytest.raises(operator_switch_service.PinValidationError):
            operator_switch_service.switch_operator("yunusabad", "session-1", pin)

        assert get_guard().store.get(lockout_key("yunusabad", "session-1")) is None

    def test_unknown_branch(self, db_session):
        with pytest.raises(operator_switch_service.NotFound):
            operator_switch_service.switch_operator("atlantis", "session-1", "123456")

    def test_inactive_employee_not_on_roster(self, yunusabad, make_employee):
        make_employee(branch_id="yunusabad", pin="123456", status="inactive")

        result = operator_switch_service.switch_operator("yunusabad", "session-1", "123456")
        assert result.status == SWITCH_INVALID

    def test_switch_is_logged(self, yunusabad, make_employee, db_session):
        aziza = make_employee(branch_id="yunusabad", pin="123456")

        operator_switch_service.switch_operator("yunusabad", "kiosk:yunusabad:1", "123456")

        row = db_session.query(OperatorSwitchLog).one()
        assert row.branch_id == "yunusabad"
        assert row.session_user_id == "kiosk:yunusabad:1"
        assert row.switched_to_id == aziza.id
        assert row.is_cross_branch is False
        assert row.home_branch_id is None

    def test_log_failure_is_not_fatal(self, yunusabad, make_employee, db_session, monkeypatch):
        make_employee(branch_id="yunusabad", pin="123456")

        def broken_log(**kwargs):
            raise SQLAlchemyError("insert failed")

        monkeypatch.setattr(operator_switch_service, "OperatorSwitchLog", broken_log)

        result = operator_switch_service.switch_operator("yunusabad", "session-1", "123456")
        assert result.status == SWITCH_SUCCESS
        assert db_session.query(OperatorSwitchLog).count() == 0


class TestCrossBranchRoster:

    def test_active_assignment_joins_roster(self, yunusabad, chilanzar, make_employee, db_session):
        visitor = make_employee("Visitor", branch_id="chilanzar", pin="271828")
        db_session.add(BranchAssignment(
            employee_id=visitor.id,
            branch_id="yunusabad",
            assignment_type="temporary",
            start_date=utcnow().date() - timedelta(days=1),
            end_date=utcnow().date() + timedelta(days=1),
        ))
        db_session.commit()

        result = operator_switch_service.switch_operator("yunusabad", "session-1", "271828")

        assert result.status == SWITCH_SUCCESS
        assert result.operator.is_cross_branch is True
        assert result.to_dict()["operator"]["homeBranchId"] == "chilanzar"

        row = db_session.query(OperatorSwitchLog).one()
        assert row.is_cross_branch is True
        assert row.home_branch_id == "chilanzar"

    def test_ended_assignment_not_on_roster(self, yunusabad, chilanzar, make_employee, db_session):
        visitor = make_employee(branch_id="chilanzar", pin="271828")
        db_session.add(BranchAssignment(
            employee_id=visitor.id,
            branch_id="yunusabad",
            start_date=utcnow().date() - timedelta(days=10),
            end_date=utcnow().date() - timedelta(days=1),
        ))
        db_session.commit()

        result = operator_switch_service.switch_operator("yunusabad", "session-1", "271828")
        assert result.status == SWITCH_INVALID

    def test_unexpired_grant_joins_roster(self, yunusabad, chilanzar, make_employee, db_session):
        visitor = make_employee(branch_id="chilanzar", pin="314159")
        db_session.add(BranchAccessGrant(
            user_id=visitor.id,
            branch_id="yunusabad",
            expires_at=utcnow() + timedelta(hours=4),
        ))
        db_session.commit()

        result = operator_switch_service.switch_operator("yunusabad", "session-1", "314159")
        assert result.status == SWITCH_SUCCESS
        assert result.operator.employee.id == visitor.id

    def test_expired_grant_not_on_roster(self, yunusabad, chilanzar, make_employee, db_session):
        visitor = make_employee(branch_id="chilanzar", pin="314159")
        db_session.add(BranchAccessGrant(
            user_id=visitor.id,
            branch_id="yunusabad",
            expires_at=utcnow() - timedelta(minutes=1),
        ))
        db_session.commit()

        result = operator_switch_service.switch_operator("yunusabad", "session-1", "314159")
        assert result.status == SWITCH_INVALID

    def test_home_employee_wins_pin_collision(self, yunusabad, chilanzar, make_employee, db_session):
        visitor = make_employee("Visitor", branch_id="chilanzar", pin="555123")
        local = make_employee("Local", branch_id="yunusabad", pin="555123")
        db_session.add(BranchAssignment(employee_id=visitor.id, branch_id="yunusabad", start_date=utcnow().date()))
        db_session.commit()

        result = operator_switch_service.switch_operator("yunusabad", "session-1", "555123")
        assert result.operator.employee.id == local.id

    def test_roster_deduplicates(self, yunusabad, chilanzar, make_employee, db_session):
        visitor = make_employee(branch_id="chilanzar", pin="271828")
        db_session.add(BranchAssignment(employee_id=visitor.id, branch_id="yunusabad", start_date=utcnow().date()))
        db_session.add(BranchAccessGrant(user_id=visitor.id, branch_id="yunusabad"))
        db_session.commit()

        roster = operator_switch_service.get_branch_operators("yunusabad")
        assert [c.employee.id for c in roster] == [visitor.id]

    def test_assigned_operators_endpoint(self, client, yunusabad, chilanzar, make_employee, db_session):
        make_employee(branch_id="yunusabad", pin="123456")
        visitor = make_employee("Visitor", branch_id="chilanzar", pin="271828")
        db_session.add(BranchAssignment(
            employee_id=visitor.id, branch_id="yunusabad", assignment_type="cover", start_date=utcnow().date()
        ))
        db_session.commit()

        resp = client.get(
            "/api/reception/operator-switch/assigned?branchId=yunusabad",
            headers=kiosk_headers("yunusabad"),
        )

        assert resp.status_code == 200
        assert resp.json["operators"] == [{
            "id": visitor.id,
            "name": "Visitor",
            "homeBranchId": "chilanzar",
            "homeBranchName": "Chilanzar",
            "assignmentType": "cover",
        }]


class TestSwitchEndpoint:

    def test_kiosk_switch(self, client, yunusabad, make_employee):
        aziza = make_employee("Aziza K", branch_id="yunusabad", pin="123456")

        resp = client.post(
            SWITCH_URL,
            json={"branchId": "yunusabad", "pin": "123456"},
            headers=kiosk_headers("yunusabad"),
        )

        assert resp.status_code == 200
        assert resp.json["success"] is True
        assert resp.json["operator"] == {
            "id": aziza.id,
            "name": "Aziza K",
            "branchId": "yunusabad",
            "isCrossBranch": False,
        }

    def test_session_switch(self, client, yunusabad, make_employee):
        manager = make_employee(role="branch_manager", branch_id="yunusabad")
        make_employee(branch_id="yunusabad", pin="123456")

        resp = client.post(
            SWITCH_URL,
            json={"branchId": "yunusabad", "pin": "123456"},
            headers=session_headers(manager),
        )
        assert resp.status_code == 200

    def test_invalid_pin_response(self, client, yunusabad, make_employee):
        make_employee(branch_id="yunusabad", pin="123456")

        resp = client.post(
            SWITCH_URL,
            json={"branchId": "yunusabad", "pin": "000111"},
            headers=kiosk_headers("yunusabad"),
        )

        assert resp.status_code == 401
        assert resp.json["error"] == "invalid_pin"
        assert resp.json["attemptsRemaining"] == 4

    def test_malformed_pin_response(self, client, yunusabad):
        resp = client.post(
            SWITCH_URL,
            json={"branchId": "yunusabad", "pin": "12ab56"},
            headers=kiosk_headers("yunusabad"),
        )
        assert resp.status_code == 400
        assert resp.json["error"] == "invalid_pin_format"

    def test_missing_branch(self, client, yunusabad):
        resp = client.post(SWITCH_URL, json={"pin": "123456"}, headers=kiosk_headers("yunusabad"))
        assert resp.status_code == 400

    def test_kiosk_cannot_switch_at_other_branch(self, client, yunusabad, chilanzar, make_employee):
        make_employee(branch_id="chilanzar", pin="123456")

        resp = client.post(
            SWITCH_URL,
            json={"branchId": "chilanzar", "pin": "123456"},
            headers=kiosk_headers("yunusabad"),
        )
        assert resp.status_code == 403

    def test_employee_without_reception_permission(self, client, yunusabad, make_employee):
        plain = make_employee(role="employee", branch_id="yunusabad")

        resp = client.post(
            SWITCH_URL,
            json={"branchId": "yunusabad", "pin": "123456"},
            headers=session_headers(plain),
        )
        assert resp.status_code == 403

    @pytest.mark.parametrize("branch_id", ["chilanzar", "atlantis"])
    def test_malformed_pin_outside_scope_is_400(self, client, yunusabad, chilanzar, branch_id):
        resp = client.post(
            SWITCH_URL,
            json={"branchId": branch_id, "pin": "12ab"},
            headers=kiosk_headers("yunusabad"),
        )

        assert resp.status_code == 400
        assert resp.json["error"] == "invalid_pin_format"


class TestYunusabadLockoutScenario:
    """Threshold 5: the 5th wrong PIN locks, the 6th never reaches the roster."""

    def test_fifth_attempt_locks_and_sixth_is_refused(self, client, yunusabad, make_employee, monkeypatch):
        make_employee(branch_id="yunusabad", pin="123456")
        headers = kiosk_headers("yunusabad")

        responses = [
            client.post(SWITCH_URL, json={"branchId": "yunusabad", "pin": "999999"}, headers=headers)
            for _ in range(5)
        ]

        assert [r.status_code for r in responses[:4]] == [401, 401, 401, 401]
        assert [r.json["attemptsRemaining"] for r in responses[:4]] == [4, 3, 2, 1]
        assert responses[4].status_code == 423
        assert responses[4].json["locked"] is True
        assert responses[4].json["lockoutRemainingSeconds"] == 300

        def roster_must_not_be_read(*args, **kwargs):
            raise AssertionError("roster consulted while locked")

        monkeypatch.setattr(operator_switch_service, "get_branch_operators", roster_must_not_be_read)

        # Even the correct PIN is refused while locked
        sixth = client.post(SWITCH_URL, json={"branchId": "yunusabad", "pin": "123456"}, headers=headers)
        assert sixth.status_code == 423
        assert sixth.json["error"] == "too_many_attempts"

    def test_lock_is_per_session(self, client, yunusabad, make_employee):
        make_employee(branch_id="yunusabad", pin="123456")
        manager = make_employee(role="branch_manager", branch_id="yunusabad")
        kiosk = kiosk_headers("yunusabad")

        for _ in range(5):
            client.post(SWITCH_URL, json={"branchId": "yunusabad", "pin": "999999"}, headers=kiosk)

        resp = client.post(
            SWITCH_URL,
            json={"branchId": "yunusabad", "pin": "123456"},
            headers=session_headers(manager),
        )
        assert resp.status_code == 200

    def test_locked_result_from_service(self, yunusabad, make_employee):
        make_employee(branch_id="yunusabad", pin="123456")
        for _ in range(4):
            operator_switch_service.switch_operator("yunusabad", "s", "999999")

        result = operator_switch_service.switch_operator("yunusabad", "s", "999999")
        assert result.status == SWITCH_LOCKED
        assert result.to_dict()["locked"] is True


def _store_down(*args, **kwargs):
    raise OperationalError("SELECT employees", {}, Exception("database is locked"))


class TestCredentialStoreUnavailable:

    def test_roster_read_failure(self, yunusabad, make_employee, monkeypatch):
        make_employee(branch_id="yunusabad", pin="123456")
        monkeypatch.setattr(operator_switch_service, "_roster_rows", _store_down)

        with pytest.raises(DependencyUnavailable):
            operator_switch_service.switch_operator("yunusabad", "s", "123456")

    def test_switch_endpoint_returns_503(self, client, yunusabad, make_employee, monkeypatch):
        make_employee(branch_id="yunusabad", pin="123456")
        monkeypatch.setattr(operator_switch_service, "get_branch_operators", _store_down)

        resp = client.post(
            SWITCH_URL,
            json={"branchId": "yunusabad", "pin": "123456"},
            headers=kiosk_headers("yunusabad"),
        )

        assert resp.status_code == 503
        assert resp.json["error"] == "dependency_unavailable"

    def test_branch_scope_failure_on_switch(self, client, yunusabad, make_employee, monkeypatch):
        manager = make_employee(role="branch_manager", branch_id="yunusabad")
        monkeypatch.setattr(branch_access_service, "get_active_grants", _store_down)

        resp = client.post(
            SWITCH_URL,
            json={"branchId": "yunusabad", "pin": "123456"},
            headers=session_headers(manager),
        )
        assert resp.status_code == 503

    def test_assigned_operators_returns_503(self, client, yunusabad, monkeypatch):
        monkeypatch.setattr(operator_switch_service, "_roster_rows", _store_down)

        resp = client.get(
            "/api/reception/operator-switch/assigned?branchId=yunusabad",
            headers=kiosk_headers("yunusabad"),
        )
        assert resp.status_code == 503

    def test_accessible_branches_returns_503(self, client, yunusabad, monkeypatch):
        monkeypatch.setattr(branch_access_service, "get_accessible_branch_ids", _store_down)

        resp = client.get("/api/reception/branches", headers=kiosk_headers("yunusabad"))

        assert resp.status_code == 503
        assert resp.json["error"] == "dependency_unavailable"
