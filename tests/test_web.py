from __future__ import annotations

from pathlib import Path

from fastapi.testclient import TestClient

from rentify.backend import ListQuery
from rentify.dashboard import LOAD_FAILED_MESSAGE
from rentify.database import Database
from rentify.errors import QueryError
from rentify.models import Role
from rentify.web import create_app

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-password"


def _client(database: Database) -> TestClient:
    app = create_app(backend=database, session_secret="not-so-secret", secure_cookies=False)
    return TestClient(app)


def _login(client: TestClient, email: str, password: str):
    return client.post("/login", data={"email": email, "password": password}, follow_redirects=False)


def test_landing_page_links_to_auth_forms(database: Database) -> None:
    with _client(database) as client:
        response = client.get("/")

    assert response.status_code == 200
    assert "Find Your Perfect" in response.text
    assert 'href="http://testserver/login"' in response.text
    assert 'href="http://testserver/signup"' in response.text


def test_admin_login_redirects_to_dashboard(database: Database, admin) -> None:
    with _client(database) as client:
        response = _login(client, ADMIN_EMAIL, ADMIN_PASSWORD)

        assert response.status_code == 303
        assert response.headers["location"].endswith("/admin/dashboard")

        dashboard = client.get("/admin/dashboard")
        assert dashboard.status_code == 200
        assert "Admin Dashboard" in dashboard.text
        assert "Login successful!" in dashboard.text


def test_invalid_credentials_render_inline_error(database: Database, admin) -> None:
    with _client(database) as client:
        response = _login(client, ADMIN_EMAIL, "wrong-password")

    assert response.status_code == 400
    assert "Invalid login credentials" in response.text
    assert ADMIN_EMAIL in response.text


def test_dashboard_requires_authentication(database: Database) -> None:
    with _client(database) as client:
        response = client.get("/admin/dashboard", follow_redirects=False)
        snapshot = client.get("/admin/dashboard/snapshot")

    assert response.status_code == 303
    assert response.headers["location"].endswith("/login")
    assert snapshot.status_code == 401


def test_non_admin_is_sent_home_with_notice(database: Database) -> None:
    database.create_user("Ana", "ana@example.com", "tenant-pass", Role.TENANT)

    with _client(database) as client:
        login = _login(client, "ana@example.com", "tenant-pass")
        assert login.headers["location"].endswith("/")

        response = client.get("/admin/dashboard", follow_redirects=False)
        assert response.status_code == 303
        assert response.headers["location"] == "http://testserver/"

        landing = client.get("/")
        assert "Access denied. Admin only." in landing.text

        assert client.get("/admin/dashboard/snapshot").status_code == 403


def test_signup_validates_and_creates_account(database: Database) -> None:
    form = {
        "full_name": "Paolo Garcia",
        "email": "paolo@example.com",
        "password": "tenant-pass",
        "confirm_password": "different",
        "role": "landlord",
    }
    with _client(database) as client:
        mismatch = client.post("/signup", data=form, follow_redirects=False)
        assert mismatch.status_code == 400
        assert "Passwords do not match" in mismatch.text

        short = client.post(
            "/signup",
            data={**form, "password": "123", "confirm_password": "123"},
            follow_redirects=False,
        )
        assert "Password must be at least 6 characters" in short.text

        created = client.post(
            "/signup",
            data={**form, "confirm_password": "tenant-pass"},
            follow_redirects=False,
        )
        assert created.status_code == 303
        assert created.headers["location"] == "http://testserver/"
        assert "Account created successfully!" in client.get("/").text

    user = database.get_user_by_email("paolo@example.com")
    assert user is not None
    assert user.role is Role.LANDLORD


def test_logout_clears_session(database: Database, admin) -> None:
    with _client(database) as client:
        _login(client, ADMIN_EMAIL, ADMIN_PASSWORD)

        response = client.get("/logout", follow_redirects=False)
        assert response.status_code == 303
        assert "Signed out successfully" in client.get("/").text

        again = client.get("/admin/dashboard", follow_redirects=False)
        assert again.headers["location"].endswith("/login")


def test_snapshot_endpoint_returns_counts_and_lists(database: Database, admin) -> None:
    landlord = database.create_user("Maria", "maria@example.com", "secret1", Role.LANDLORD)
    database.create_apartment(landlord.id, title="Loft", monthly_rent=12000, is_published=True)

    with _client(database) as client:
        _login(client, ADMIN_EMAIL, ADMIN_PASSWORD)
        response = client.get("/admin/dashboard/snapshot")

    assert response.status_code == 200
    payload = response.json()
    assert payload["stats"]["total_users"] == 2
    assert payload["stats"]["total_landlords"] == 1
    assert payload["apartments"][0]["landlord"] == {"full_name": "Maria", "email": "maria@example.com"}
    assert {user["role"] for user in payload["users"]} == {"admin", "landlord"}


def test_toggle_user_from_dashboard(database: Database, admin) -> None:
    tenant = database.create_user("Ana", "ana@example.com", "tenant-pass", Role.TENANT)

    with _client(database) as client:
        _login(client, ADMIN_EMAIL, ADMIN_PASSWORD)

        response = client.post(
            f"/admin/users/{tenant.id}/active",
            data={"active": "false"},
            follow_redirects=False,
        )
        assert response.status_code == 303
        assert response.headers["location"].endswith("/admin/dashboard?tab=users")

        page = client.get("/admin/dashboard?tab=users")
        assert "User deactivated successfully" in page.text
        assert "Inactive" in page.text

    assert database.get_user(tenant.id).is_active is False


def test_complaint_status_workflow_from_dashboard(database: Database, admin) -> None:
    complaint_id = database.create_complaint(admin.id, subject="Leaky roof", description="Water everywhere")

    with _client(database) as client:
        _login(client, ADMIN_EMAIL, ADMIN_PASSWORD)

        page = client.get("/admin/dashboard?tab=complaints")
        assert f"/admin/complaints/{complaint_id}/status" in page.text

        client.post(f"/admin/complaints/{complaint_id}/status", data={"status": "resolved"}, follow_redirects=False)
        page = client.get("/admin/dashboard?tab=complaints")
        assert "Complaint status updated" in page.text
        assert f"/admin/complaints/{complaint_id}/status" not in page.text

        client.post(f"/admin/complaints/{complaint_id}/status", data={"status": "bogus"}, follow_redirects=False)
        page = client.get("/admin/dashboard?tab=complaints")
        assert "Failed to update complaint" in page.text

    row = database.list_rows("complaints", ListQuery())[0]
    assert row["status"] == "resolved"
    assert row["resolved_at"] is not None


def test_revoked_backend_session_logs_user_out(database: Database, admin) -> None:
    with _client(database) as client:
        _login(client, ADMIN_EMAIL, ADMIN_PASSWORD)
        assert client.get("/admin/dashboard").status_code == 200

        with database._connect() as conn:
            conn.execute("DELETE FROM auth_sessions")

        response = client.get("/admin/dashboard", follow_redirects=False)
        assert response.status_code == 303
        assert response.headers["location"].endswith("/login")

        login_page = client.get("/login")
        assert login_page.status_code == 200
        assert "Session expired" in login_page.text


class CountFailingDatabase(Database):
    async def count(self, table, filters=None, *, access_token=None):
        raise QueryError(f"count unavailable for {table}", table=table)


def test_mutation_with_failing_backend_reports_one_load_failure(tmp_path: Path) -> None:
    database = CountFailingDatabase(tmp_path / "failing.sqlite3")
    database.initialize()
    database.create_user("Site Admin", ADMIN_EMAIL, ADMIN_PASSWORD, Role.ADMIN)
    tenant = database.create_user("Ana", "ana@example.com", "tenant-pass", Role.TENANT)

    with _client(database) as client:
        _login(client, ADMIN_EMAIL, ADMIN_PASSWORD)
        client.get("/admin/dashboard")

        page = client.post(f"/admin/users/{tenant.id}/active", data={"active": "false"})

    assert page.status_code == 200
    assert "User deactivated successfully" in page.text
    assert page.text.count(LOAD_FAILED_MESSAGE) == 1
    assert database.get_user(tenant.id).is_active is False
