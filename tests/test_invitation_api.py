import pytest
from trustee_portal.models.role import Role
from trustee_portal.models.tenant_membership import TenantMembership
from trustee_portal.models.user import User
from tests.conftest import bearer

INVITEE_EMAIL = "treasurer.elect@example.org"


@pytest.fixture
def issued(client, tenant, owner_headers, notifier):
    """Invitation for INVITEE_EMAIL as TREASURER; returns (response body, plaintext token)"""
    response = client.post(
        f"/api/tenants/{tenant.id}/invitations",
        headers=owner_headers,
        json={"email": INVITEE_EMAIL, "role": "treasurer"},
    )
    assert response.status_code == 201
    return response.json(), notifier.last_token()


class TestIssueInvitation:
    """Tests for POST /api/tenants/{tenant_id}/invitations"""

    def test_response_never_contains_token(self, issued):
        body, token = issued
        assert body["status"] == "pending"
        assert body["email"] == INVITEE_EMAIL
        assert token not in str(body)
        assert "token" not in body
        assert "token_hash" not in body

    def test_duplicate_pending_conflicts(self, client, tenant, owner_headers, issued):
        response = client.post(
            f"/api/tenants/{tenant.id}/invitations",
            headers=owner_headers,
            json={"email": INVITEE_EMAIL.upper(), "role": "viewer"},
        )
        assert response.status_code == 409
        assert response.json()["code"] == "INVITATION_PENDING"

    def test_existing_member_conflicts(self, client, tenant, owner_headers, notifier):
        response = client.post(
            f"/api/tenants/{tenant.id}/invitations",
            headers=owner_headers,
            json={"email": "owner@hillside.example.org", "role": "viewer"},
        )
        assert response.status_code == 409
        assert response.json()["code"] == "ALREADY_MEMBER"
        assert notifier.messages == []

    def test_trustee_cannot_invite(self, client, tenant, add_member):
        add_member(Role.TRUSTEE, auth_user_id="trustee")
        response = client.post(
            f"/api/tenants/{tenant.id}/invitations",
            headers=bearer("trustee"),
            json={"email": "x@example.org", "role": "admin"},
        )
        assert response.status_code == 403
        assert response.json()["code"] == "FORBIDDEN"

    def test_secretary_cannot_invite_chair(self, client, tenant, add_member):
        add_member(Role.SECRETARY, auth_user_id="secretary")
        response = client.post(
            f"/api/tenants/{tenant.id}/invitations",
            headers=bearer("secretary"),
            json={"email": "x@example.org", "role": "chair"},
        )
        assert response.status_code == 403

    def test_invalid_email_rejected(self, client, tenant, owner_headers):
        response = client.post(
            f"/api/tenants/{tenant.id}/invitations",
            headers=owner_headers,
            json={"email": "not-an-email", "role": "viewer"},
        )
        assert response.status_code == 422

    def test_list_invitations(self, client, tenant, owner_headers, issued):
        response = client.get(f"/api/tenants/{tenant.id}/invitations", headers=owner_headers)
        assert response.status_code == 200
        assert [i["id"] for i in response.json()] == [issued[0]["id"]]


class TestValidateInvitation:
    """Tests for GET /api/invitations/validate (public)"""

    def test_valid_token_preview(self, client, tenant, issued):
        _, token = issued
        response = client.get("/api/invitations/validate", params={"token": token})

        assert response.status_code == 200
        data = response.json()
        assert data["email"] == INVITEE_EMAIL
        assert data["role"] == Role.TREASURER
        assert data["tenant_id"] == tenant.id
        assert data["tenant_name"] == "Hillside Hospice"

    def test_unknown_token(self, client):
        response = client.get("/api/invitations/validate", params={"token": "nope"})
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_INVITATION"


class TestAcceptInvitation:
    """Tests for POST /api/invitations/accept"""

    def test_accept_joins_tenant(self, client, db_session, tenant, issued):
        _, token = issued
        headers = bearer("treasurer-elect", INVITEE_EMAIL)

        response = client.post("/api/invitations/accept", headers=headers, json={"token": token})

        assert response.status_code == 200
        data = response.json()
        assert data["tenant_id"] == tenant.id
        assert data["role"] == Role.TREASURER
        tenants = client.get("/api/tenants", headers=headers).json()
        assert [t["id"] for t in tenants] == [tenant.id]

    def test_double_accept(self, client, db_session, tenant, issued):
        _, token = issued
        first = client.post("/api/invitations/accept", headers=bearer("first"), json={"token": token})
        second = client.post("/api/invitations/accept", headers=bearer("second"), json={"token": token})

        assert first.status_code == 200
        assert second.status_code == 409
        assert second.json()["code"] == "ALREADY_ACCEPTED"
        second_user = db_session.query(User).filter(User.auth_user_id == "second").one()
        assert db_session.query(TenantMembership).filter(TenantMembership.user_id == second_user.id).count() == 0

    def test_token_forwarded_to_other_address_rejected(self, client, db_session, tenant, issued):
        _, token = issued
        response = client.post(
            "/api/invitations/accept",
            headers=bearer("bystander", "bystander@example.org"),
            json={"token": token},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_INVITATION"
        assert client.get("/api/invitations/validate", params={"token": token}).status_code == 200
        bystander = db_session.query(User).filter(User.auth_user_id == "bystander").one()
        assert db_session.query(TenantMembership).filter(TenantMembership.user_id == bystander.id).count() == 0

    def test_accept_requires_auth(self, client, issued):
        response = client.post("/api/invitations/accept", json={"token": issued[1]})
        assert response.status_code == 401


class TestCancelAndResend:
    def test_cancel_then_validate_fails(self, client, tenant, owner_headers, issued):
        body, token = issued
        response = client.delete(f"/api/tenants/{tenant.id}/invitations/{body['id']}", headers=owner_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        assert client.get("/api/invitations/validate", params={"token": token}).status_code == 400

    def test_resend_rotates_token(self, client, tenant, owner_headers, issued, notifier):
        body, old_token = issued
        response = client.post(f"/api/tenants/{tenant.id}/invitations/{body['id']}/resend", headers=owner_headers)

        assert response.status_code == 200
        new_token = notifier.last_token()
        assert new_token != old_token
        assert client.get("/api/invitations/validate", params={"token": old_token}).status_code == 400
        assert client.get("/api/invitations/validate", params={"token": new_token}).status_code == 200

    def test_lower_rank_cannot_cancel(self, client, tenant, add_member, issued):
        add_member(Role.VIEWER, auth_user_id="viewer")
        response = client.delete(f"/api/tenants/{tenant.id}/invitations/{issued[0]['id']}", headers=bearer("viewer"))
        assert response.status_code == 403

    def test_invitation_of_other_tenant_not_found(self, client, db_session, owner_user, owner_headers, issued):
        from trustee_portal.services.tenant_service import TenantService

        other, _ = TenantService(db_session).create_tenant("Second Charity", "second", owner_user)
        response = client.delete(f"/api/tenants/{other.id}/invitations/{issued[0]['id']}", headers=owner_headers)
        assert response.status_code == 404
