"""Which pages a visitor may open.

The session is modelled as an explicit sum type so that "still resolving"
can never be mistaken for "signed out".
"""

import re
from dataclasses import dataclass

from app.models.user import Profile, UserRole


# --- Session state ---

@dataclass(frozen=True)
class Loading:
    pass


@dataclass(frozen=True)
class Authenticated:
    user_id: str
    role: UserRole


@dataclass(frozen=True)
class Anonymous:
    pass


AuthState = Loading | Authenticated | Anonymous


# --- Decisions ---

@dataclass(frozen=True)
class Wait:
    pass


@dataclass(frozen=True)
class Redirect:
    to: str


@dataclass(frozen=True)
class Allow:
    pass


Decision = Wait | Redirect | Allow


@dataclass(frozen=True)
class PageRoute:
    pattern: str
    public: bool = False
    required_role: UserRole | None = None

    @property
    def regex(self) -> re.Pattern:
        return re.compile("^" + re.sub(r"\{[^/]+\}", "[^/]+", self.pattern) + "/?$")


PAGE_ROUTES = [
    PageRoute("/login", public=True),
    PageRoute("/forgot-password", public=True),
    PageRoute("/reset-password", public=True),
    PageRoute("/dashboard"),
    PageRoute("/products"),
    PageRoute("/products/{id}"),
    PageRoute("/inventory"),
    PageRoute("/locations"),
    PageRoute("/locations/{id}"),
    PageRoute("/orders"),
    PageRoute("/orders/new"),
    PageRoute("/orders/{id}"),
    PageRoute("/suppliers"),
    PageRoute("/suppliers/{id}"),
    PageRoute("/reports"),
    PageRoute("/alerts"),
    PageRoute("/users", required_role=UserRole.ADMIN),
    PageRoute("/users/{id}", required_role=UserRole.ADMIN),
    PageRoute("/settings", required_role=UserRole.ADMIN),
]

LOGIN_PATH = "/login"
HOME_PATH = "/dashboard"


def match_route(path: str) -> PageRoute | None:
    for route in PAGE_ROUTES:
        if route.regex.match(path):
            return route
    return None


def resolve_access(state: AuthState, route: PageRoute) -> Decision:
    if route.public:
        return Allow()
    if isinstance(state, Loading):
        return Wait()
    if isinstance(state, Anonymous):
        return Redirect(LOGIN_PATH)
    if route.required_role and state.role != route.required_role:
        return Redirect(HOME_PATH)
    return Allow()


def state_from_profile(profile: Profile | None) -> AuthState:
    """Session state from the stored profile behind a token (None when there is none)."""
    if profile is None or not profile.is_active:
        return Anonymous()
    return Authenticated(user_id=profile.id, role=profile.role)
