import pytest
from trustee_portal.models.role import Role
from tests.conftest import bearer


class TestTenantAuditLog:
    """Tests for GET /api/tenants/{tenant_id}/audit-logs"""

    def test_owner_reads_trail_newest_first(self, client, tenant, owner_headers, add_member):
        membership = add_member(Role.TRUSTEE)
        client.patch(
            f"/api/tenants/{tenant.id}/members/{membership.id}/role", headers=owner_headers, json={"role": "secretary"}
        )

        response = client.get(f"/api/tenants/{tenant.id}/audit-logs", headers=owner_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert data["entries"][0]["action"] == "member.role_change"
        assert data["entries"][0]["details"] == {
            "targetPrincipalId": membership.user_id,
            "previousRole": "trustee",
            "newRole": "secretary",
        }
        assert data["entries"][1]["action"] == "tenant.create"

    def test_filter_by_action(self, client, tenant, owner_headers):
        response = client.get(
            f"/api/tenants/{tenant.id}/audit-logs", headers=owner_headers, params={"action": "tenant.create"}
        )
        assert response.json()["total"] == 1

    def test_page_size_limit(self, client, tenant, owner_headers):
        response = client.get(f"/api/tenants/{tenant.id}/audit-logs", headers=owner_headers, params={"page_size": 500})
        assert response.status_code == 422

    def test_requires_audit_view(self, client, tenant, add_member):
        add_member(Role.TRUSTEE, auth_user_id="trustee")
        response = client.get(f"/api/tenants/{tenant.id}/audit-logs", headers=bearer("trustee"))
        assert response.status_code == 403

    def test_compliance_officer_can_read(self, client, tenant, add_member):
        add_member(Role.COMPLIANCE_OFFICER, auth_user_id="compliance")
        response = client.get(f"/api/tenants/{tenant.id}/audit-logs", headers=bearer("compliance"))
        assert response.status_code == 200

    def test_resource_history(self, client, tenant, owner_headers, add_member):
        membership = add_member(Role.TRUSTEE)
        client.delete(f"/api/tenants/{tenant.id}/members/{membership.id}", headers=owner_headers)

        response = client.get(
            f"/api/tenants/{tenant.id}/audit-logs/resources/membership/{membership.id}", headers=owner_headers
        )

        assert response.status_code == 200
        assert [e["action"] for e in response.json()] == ["member.remove"]


class TestActivityAndPurge:
    def test_my_activity(self, client, tenant, owner_headers, owner_user):
        response = client.get("/api/users/me/activity", headers=owner_headers)
        assert response.status_code == 200
        assert [e["principal_id"] for e in response.json()] == [owner_user.id]

    def test_purge_requires_super_admin(self, client, owner_headers, tenant):
        response = client.delete("/api/audit-logs", headers=owner_headers, params={"older_than_days": 0})
        assert response.status_code == 403

    def test_super_admin_purges(self, client, tenant):
        response = client.delete(
            "/api/audit-logs", headers=bearer("platform-admin", is_super_admin=True), params={"older_than_days": 0}
        )
        assert response.status_code == 200
        assert response.json() == {"deleted": 1, "retention_days": 0}
