import pytest

from app.models.user import Profile, UserRole
from app.services.access_guard import (
    Allow,
    Anonymous,
    Authenticated,
    Loading,
    Redirect,
    Wait,
    match_route,
    resolve_access,
    state_from_profile,
)

ADMIN = Authenticated(user_id="u1", role=UserRole.ADMIN)
OPERATOR = Authenticated(user_id="u2", role=UserRole.OPERATOR)


@pytest.mark.parametrize(
    "state, path, expected",
    [
        (Loading(), "/dashboard", Wait()),
        (Anonymous(), "/dashboard", Redirect("/login")),
        (Anonymous(), "/orders/abc", Redirect("/login")),
        (Anonymous(), "/login", Allow()),
        (Loading(), "/reset-password", Allow()),
        (OPERATOR, "/products/42", Allow()),
        (OPERATOR, "/users", Redirect("/dashboard")),
        (OPERATOR, "/settings", Redirect("/dashboard")),
        (ADMIN, "/users/42", Allow()),
        (Loading(), "/users", Wait()),
    ],
)
def test_resolve_access(state, path, expected):
    assert resolve_access(state, match_route(path)) == expected


def test_unknown_paths_have_no_route():
    assert match_route("/nowhere") is None
    assert match_route("/products/1/extra") is None


def test_state_from_profile():
    assert state_from_profile(None) == Anonymous()
    assert state_from_profile(Profile(id="u1", role=UserRole.ADMIN, is_active=False)) == Anonymous()
    assert state_from_profile(Profile(id="u1", role=UserRole.ADMIN, is_active=True)) == ADMIN


def test_anonymous_page_request_redirects_to_login(client):
    resp = client.get("/dashboard", follow_redirects=False)
    assert resp.status_code == 302
    assert resp.headers["location"] == "/login"


def test_root_redirects_to_dashboard(client):
    resp = client.get("/", follow_redirects=False)
    assert resp.headers["location"] == "/dashboard"


def test_login_page_is_public(client):
    resp = client.get("/login")
    assert resp.status_code == 200
    assert "text/html" in resp.headers["content-type"]


def test_operator_is_sent_home_from_admin_pages(operator_client):
    resp = operator_client.get("/users", follow_redirects=False)
    assert resp.status_code == 302
    assert resp.headers["location"] == "/dashboard"
    assert operator_client.get("/orders/new", follow_redirects=False).status_code == 200


def test_admin_reaches_admin_pages(admin_client):
    assert admin_client.get("/settings", follow_redirects=False).status_code == 200


def test_unknown_page_is_404(operator_client):
    assert operator_client.get("/nowhere").status_code == 404


def test_admin_api_routes_forbidden_for_operator(operator_client):
    assert operator_client.get("/api/v1/users").status_code == 403


def test_api_without_session_is_401(client):
    assert client.get("/api/v1/products").status_code == 401


def test_demoted_admin_loses_admin_pages_at_once(admin_client, admin, db):
    admin.role = UserRole.OPERATOR
    db.commit()
    resp = admin_client.get("/users", follow_redirects=False)
    assert resp.status_code == 302
    assert resp.headers["location"] == "/dashboard"


def test_disabled_user_is_sent_to_login(operator_client, operator, db):
    operator.is_active = False
    db.commit()
    resp = operator_client.get("/dashboard", follow_redirects=False)
    assert resp.status_code == 302
    assert resp.headers["location"] == "/login"
