"""
Integration tests for the HTTP surface
"""
from datetime import timedelta

import pytest


@pytest.fixture
def admin(make_user):
    return make_user(name="Ops Admin", role="admin")


@pytest.mark.integration
class TestAuth:
    """Tests for bearer token handling"""

    def test_missing_token(self, client):
        response = client.get("/deals")

        assert response.status_code == 401

    def test_expired_token(self, client, unlocker):
        from app.auth import create_access_token

        token = create_access_token(unlocker.id, timedelta(seconds=-5))
        response = client.get("/deals", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    def test_deactivated_user(self, client, db, unlocker, auth_headers):
        unlocker.is_deactivated = True
        db.commit()

        assert client.get("/deals", headers=auth_headers(unlocker)).status_code == 401

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}


@pytest.mark.integration
class TestParticipantEndpoints:
    """Tests for /deals as seen by the two parties"""

    def test_list_deals_by_role(self, client, deal, unlocker, author, auth_headers):
        as_unlocker = client.get("/deals", params={"role": "unlocker"}, headers=auth_headers(unlocker))
        as_author = client.get("/deals", params={"role": "unlocker"}, headers=auth_headers(author))

        assert [d["dealId"] for d in as_unlocker.json()["deals"]] == [deal.deal_id]
        assert as_author.json()["deals"] == []

    def test_invalid_role_filter(self, client, deal, unlocker, auth_headers):
        response = client.get("/deals", params={"role": "buyer"}, headers=auth_headers(unlocker))

        assert response.status_code == 400

    def test_get_deal_hidden_from_strangers(self, client, deal, make_user, auth_headers):
        stranger = make_user()

        response = client.get(f"/deals/{deal.id}", headers=auth_headers(stranger))

        assert response.status_code == 404

    def test_get_deal_shape(self, client, deal, author, auth_headers):
        body = client.get(f"/deals/{deal.id}", headers=auth_headers(author)).json()

        assert body["status"] == "Contacted"
        assert body["post"]["title"] == "Bulk steel pipes"
        assert body["maskedContacts"]["author"]["email"] == "a***@supplier.com"
        assert body["confirmations"]["success"]["unlocker"]["confirmed"] is False
        assert body["statusHistory"][0]["notes"] == "Deal initiated upon post unlock"

    def test_first_confirmation_waits_for_the_other_party(self, client, db, deal, unlocker, auth_headers):
        """
        GIVEN an Ongoing deal
        WHEN the unlocker marks it Success
        THEN the response says it is waiting for the author and the status is unchanged
        """
        headers = auth_headers(unlocker)
        client.put(f"/deals/{deal.id}/status", json={"status": "Ongoing"}, headers=headers)

        response = client.put(f"/deals/{deal.id}/status", json={"status": "Success"}, headers=headers)

        body = response.json()
        assert response.status_code == 200
        assert body["waitingForConfirmation"] is True
        assert body["waitingFor"] == "author"
        assert body["message"] == "Your confirmation recorded. Waiting for author to confirm"
        assert body["deal"]["status"] == "Ongoing"

    def test_invalid_status_value(self, client, deal, unlocker, auth_headers):
        response = client.put(f"/deals/{deal.id}/status", json={"status": "Won"}, headers=auth_headers(unlocker))

        assert response.status_code == 422

    def test_illegal_transition(self, client, deal, unlocker, auth_headers):
        response = client.put(f"/deals/{deal.id}/status", json={"status": "Success"}, headers=auth_headers(unlocker))

        assert response.status_code == 400
        assert response.json()["detail"] == "Cannot transition from Contacted to Success"

    def test_stats(self, client, deal, unlocker, auth_headers):
        body = client.get("/deals/stats", headers=auth_headers(unlocker)).json()

        assert body["stats"]["Contacted"] == 1
        assert body["stats"]["Success"] == 0
        assert body["avgResponseTime"] == 0

    def test_notifications_can_be_marked_read(self, client, deal, unlocker, auth_headers):
        headers = auth_headers(unlocker)
        client.put(f"/deals/{deal.id}/status", json={"status": "Ongoing"}, headers=headers)

        notifications = client.get("/deals/notifications", headers=headers).json()
        assert notifications[0]["type"] == "deal_status_changed"

        marked = client.put(f"/deals/notifications/{notifications[0]['id']}/read", headers=headers)
        assert marked.json()["success"] is True
        missing = client.put("/deals/notifications/999/read", headers=headers)
        assert missing.status_code == 404


@pytest.mark.integration
class TestAdminEndpoints:
    """Tests for /admin deal oversight"""

    def test_non_admin_is_forbidden(self, client, deal, unlocker, auth_headers):
        assert client.get("/admin/deals", headers=auth_headers(unlocker)).status_code == 403
        assert client.delete(f"/admin/deals/{deal.id}", headers=auth_headers(unlocker)).status_code == 403

    def test_list_and_search(self, client, deal, admin, auth_headers):
        headers = auth_headers(admin)

        everything = client.get("/admin/deals", headers=headers).json()
        by_name = client.get("/admin/deals", params={"search": "priya"}, headers=headers).json()
        nothing = client.get("/admin/deals", params={"search": "nobody"}, headers=headers).json()

        assert (everything["total"], everything["pages"]) == (1, 1)
        assert [d["dealId"] for d in by_name["deals"]] == [deal.deal_id]
        assert nothing["total"] == 0

    def test_override_is_tagged(self, client, deal, admin, auth_headers):
        response = client.put(
            f"/admin/deals/{deal.id}/status", json={"status": "Ongoing"}, headers=auth_headers(admin)
        )

        body = response.json()
        assert body["message"] == "Deal status updated by admin"
        last = body["deal"]["statusHistory"][-1]
        assert (last["status"], last["isAdminOverride"], last["initiator"]) == ("Ongoing", True, "admin")
        assert last["notes"] == "Status updated by admin"

    def test_force_close(self, client, deal, admin, auth_headers):
        headers = auth_headers(admin)

        closed = client.request(
            "DELETE", f"/admin/deals/{deal.id}", json={"reason": "Duplicate listing"}, headers=headers
        )
        again = client.delete(f"/admin/deals/{deal.id}", headers=headers)

        body = closed.json()
        assert body["message"] == "Deal force closed by admin"
        assert body["deal"]["status"] == "Closed"
        assert body["deal"]["isActive"] is False
        assert body["deal"]["statusHistory"][-1]["notes"] == "Duplicate listing"
        assert again.status_code == 400

    def test_missing_deal(self, client, admin, auth_headers):
        assert client.get("/admin/deals/999", headers=auth_headers(admin)).status_code == 404

    def test_analytics(self, client, deal, admin, auth_headers):
        analytics = client.get("/admin/analytics/deals", headers=auth_headers(admin)).json()["analytics"]

        assert analytics["totalDeals"] == 1
        assert analytics["statusCounts"]["Contacted"] == 1
        assert analytics["successRate"] == 0
        assert analytics["chronicNonUpdateCount"] == 0
        assert [d["dealId"] for d in analytics["recentDeals"]] == [deal.deal_id]


@pytest.mark.integration
class TestPostAndCreditEndpoints:
    """Tests for /posts and /credits"""

    def test_unlock_then_balances(self, client, post, unlocker, auth_headers):
        headers = auth_headers(unlocker)

        unlocked = client.post(f"/posts/{post.id}/unlock", headers=headers)
        duplicate = client.post(f"/posts/{post.id}/unlock", headers=headers)
        balances = client.get("/credits", headers=headers).json()
        history = client.get("/credits/history", headers=headers).json()

        assert unlocked.status_code == 200
        assert unlocked.json()["author"]["email"] == "arjun@supplier.com"
        assert duplicate.status_code == 409
        assert balances["unlockCredits"] == 4
        assert [(h["type"], h["creditType"]) for h in history] == [("used", "unlock")]

    def test_toggle_by_non_owner(self, client, post, unlocker, auth_headers):
        response = client.put(
            f"/posts/{post.id}/deal-toggle", json={"dealToggleStatus": "Success"}, headers=auth_headers(unlocker)
        )

        assert response.status_code == 403
