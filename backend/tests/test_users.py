"""
Employee account route tests.

Verifies:
- Listing requires users:view
- Role assignment requires users:assign_roles and strict hierarchy on
  both the current and the new role
"""

from conftest import session_headers


class TestListUsers:

    def test_list_active_by_branch(self, client, yunusabad, chilanzar, make_employee):
        hr = make_employee("Zarina H", role="hr", branch_id="yunusabad")
        make_employee("Bekzod T", branch_id="yunusabad")
        make_employee("Old Timer", branch_id="yunusabad", status="inactive")
        make_employee("Elsewhere", branch_id="chilanzar")

        resp = client.get("/api/users?branchId=yunusabad", headers=session_headers(hr))

        assert resp.status_code == 200
        assert [u["full_name"] for u in resp.json["users"]] == ["Bekzod T", "Zarina H"]
        assert "password_hash" not in resp.json["users"][0]

    def test_include_inactive(self, client, yunusabad, make_employee):
        hr = make_employee("Zarina H", role="hr", branch_id="yunusabad")
        make_employee("Old Timer", branch_id="yunusabad", status="inactive")

        resp = client.get("/api/users?branchId=yunusabad&includeInactive=true", headers=session_headers(hr))
        assert len(resp.json["users"]) == 2


class TestAssignRole:

    def test_general_manager_assigns_role(self, client, make_employee):
        gm = make_employee(role="general_manager")
        target = make_employee(role="employee")

        resp = client.put(f"/api/users/{target.id}/role", json={"role": "branch_manager"}, headers=session_headers(gm))

        assert resp.status_code == 200
        assert resp.json["user"]["role"] == "branch_manager"

    def test_cannot_promote_to_own_level(self, client, make_employee):
        gm = make_employee(role="general_manager")
        target = make_employee(role="employee")

        resp = client.put(f"/api/users/{target.id}/role", json={"role": "general_manager"}, headers=session_headers(gm))
        assert resp.status_code == 403

    def test_cannot_demote_a_peer(self, client, make_employee):
        gm = make_employee(role="general_manager")
        peer = make_employee(role="general_manager")

        resp = client.put(f"/api/users/{peer.id}/role", json={"role": "employee"}, headers=session_headers(gm))
        assert resp.status_code == 403

    def test_requires_assign_roles_permission(self, client, make_employee):
        ceo = make_employee(role="ceo")
        target = make_employee(role="employee")

        resp = client.put(f"/api/users/{target.id}/role", json={"role": "accountant"}, headers=session_headers(ceo))

        assert resp.status_code == 403
        assert resp.json["required_permission"] == "users:assign_roles"

    def test_bad_requests(self, client, make_employee):
        gm = make_employee(role="general_manager")
        target = make_employee(role="employee")
        headers = session_headers(gm)

        assert client.put(f"/api/users/{target.id}/role", json={}, headers=headers).status_code == 400
        assert client.put(f"/api/users/{target.id}/role", json={"role": "wizard"}, headers=headers).status_code == 400
        assert client.put("/api/users/999/role", json={"role": "hr"}, headers=headers).status_code == 404
