import pytest
from trustee_portal.models.audit_entry import AuditAction, AuditEntry
from trustee_portal.models.role import Role
from trustee_portal.models.tenant_membership import TenantMembership
from tests.conftest import bearer


class TestCreateTenant:
    """Tests for POST /api/tenants"""

    def test_creator_becomes_owner(self, client, db_session):
        response = client.post(
            "/api/tenants",
            headers=bearer("founder", "founder@example.org"),
            json={"name": "Riverside Food Bank", "slug": "riverside-food-bank"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["slug"] == "riverside-food-bank"
        assert data["role"] == Role.OWNER
        membership = db_session.get(TenantMembership, data["membership_id"])
        assert membership.role == Role.OWNER
        assert (
            db_session.query(AuditEntry).filter(AuditEntry.action == AuditAction.TENANT_CREATE.value).count() == 1
        )

    def test_duplicate_slug_conflicts(self, client, tenant):
        response = client.post(
            "/api/tenants",
            headers=bearer("founder"),
            json={"name": "Another Hospice", "slug": "hillside-hospice"},
        )
        assert response.status_code == 409
        assert response.json()["code"] == "SLUG_TAKEN"

    def test_invalid_slug_rejected(self, client):
        response = client.post("/api/tenants", headers=bearer("founder"), json={"name": "X", "slug": "Not A Slug"})
        assert response.status_code == 422

    def test_requires_auth(self, client):
        response = client.post("/api/tenants", json={"name": "X", "slug": "x-org"})
        assert response.status_code == 401


class TestListUserTenants:
    """Tests for GET /api/tenants"""

    def test_lists_active_memberships_with_role(self, client, tenant, owner_headers):
        response = client.get("/api/tenants", headers=owner_headers)

        assert response.status_code == 200
        tenants = response.json()
        assert len(tenants) == 1
        assert tenants[0]["id"] == tenant.id
        assert tenants[0]["name"] == "Hillside Hospice"
        assert tenants[0]["role"] == Role.OWNER

    def test_user_without_memberships_gets_empty_list(self, client):
        response = client.get("/api/tenants", headers=bearer("loner"))
        assert response.status_code == 200
        assert response.json() == []


class TestMembers:
    """Tests for member listing, role changes and removal"""

    def test_list_members(self, client, tenant, owner_headers, add_member):
        add_member(Role.TREASURER)
        response = client.get(f"/api/tenants/{tenant.id}/members", headers=owner_headers)

        assert response.status_code == 200
        roles = {m["role"] for m in response.json()}
        assert roles == {Role.OWNER, Role.TREASURER}

    def test_removed_members_hidden_by_default(self, client, tenant, owner_headers, add_member):
        membership = add_member(Role.TREASURER)
        client.delete(f"/api/tenants/{tenant.id}/members/{membership.id}", headers=owner_headers)

        default = client.get(f"/api/tenants/{tenant.id}/members", headers=owner_headers).json()
        everyone = client.get(
            f"/api/tenants/{tenant.id}/members", headers=owner_headers, params={"include_inactive": True}
        ).json()
        assert len(default) == 1
        assert len(everyone) == 2

    def test_owner_changes_role(self, client, tenant, owner_headers, add_member):
        membership = add_member(Role.TRUSTEE)
        response = client.patch(
            f"/api/tenants/{tenant.id}/members/{membership.id}/role",
            headers=owner_headers,
            json={"role": "chair"},
        )

        assert response.status_code == 200
        assert response.json()["role"] == Role.CHAIR

    def test_own_role_change_forbidden(self, client, tenant, owner_headers, owner_membership):
        response = client.patch(
            f"/api/tenants/{tenant.id}/members/{owner_membership.id}/role",
            headers=owner_headers,
            json={"role": "admin"},
        )
        assert response.status_code == 403
        assert response.json()["code"] == "FORBIDDEN"

    def test_admin_cannot_promote_to_owner(self, client, tenant, add_member):
        add_member(Role.ADMIN, auth_user_id="admin")
        trustee = add_member(Role.TRUSTEE)
        response = client.patch(
            f"/api/tenants/{tenant.id}/members/{trustee.id}/role",
            headers=bearer("admin"),
            json={"role": "owner"},
        )
        assert response.status_code == 403

    def test_unknown_role_value_rejected(self, client, tenant, owner_headers, add_member):
        membership = add_member(Role.TRUSTEE)
        response = client.patch(
            f"/api/tenants/{tenant.id}/members/{membership.id}/role",
            headers=owner_headers,
            json={"role": "member"},
        )
        assert response.status_code == 422

    def test_member_of_other_tenant_not_found(self, client, db_session, tenant, owner_headers, owner_user):
        from trustee_portal.services.tenant_service import TenantService

        other, other_owner = TenantService(db_session).create_tenant("Second Charity", "second", owner_user)
        response = client.patch(
            f"/api/tenants/{tenant.id}/members/{other_owner.id}/role",
            headers=owner_headers,
            json={"role": "viewer"},
        )
        assert response.status_code == 404

    def test_remove_member(self, client, tenant, owner_headers, add_member):
        membership = add_member(Role.VOLUNTEER)
        response = client.delete(f"/api/tenants/{tenant.id}/members/{membership.id}", headers=owner_headers)

        assert response.status_code == 200
        assert response.json()["membership_id"] == membership.id

    def test_remove_self_forbidden(self, client, tenant, owner_headers, owner_membership):
        response = client.delete(f"/api/tenants/{tenant.id}/members/{owner_membership.id}", headers=owner_headers)
        assert response.status_code == 403

    def test_trustee_cannot_remove(self, client, tenant, add_member):
        add_member(Role.TRUSTEE, auth_user_id="trustee")
        viewer = add_member(Role.VIEWER)
        response = client.delete(f"/api/tenants/{tenant.id}/members/{viewer.id}", headers=bearer("trustee"))
        assert response.status_code == 403


class TestOwnershipTransfer:
    """Tests for POST /api/tenants/{tenant_id}/ownership-transfer"""

    def test_owner_transfers(self, client, db_session, tenant, owner_headers, owner_membership, add_member):
        chair = add_member(Role.CHAIR)
        response = client.post(
            f"/api/tenants/{tenant.id}/ownership-transfer",
            headers=owner_headers,
            json={"membership_id": chair.id},
        )

        assert response.status_code == 200
        assert response.json()["role"] == Role.OWNER
        db_session.refresh(owner_membership)
        assert owner_membership.role == Role.ADMIN

    def test_admin_cannot_transfer(self, client, tenant, add_member):
        add_member(Role.ADMIN, auth_user_id="admin")
        trustee = add_member(Role.TRUSTEE)
        response = client.post(
            f"/api/tenants/{tenant.id}/ownership-transfer",
            headers=bearer("admin"),
            json={"membership_id": trustee.id},
        )
        assert response.status_code == 403
