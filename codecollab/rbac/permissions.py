"""
Permission catalog & role bundles.

Permissions are *immutable codes* that map to a single action in the
system (e.g. `projects.moderate`).  Route guards check codes, never
role names, except for the coarse admin/moderator gates.

Role bundles are applied explicitly by whoever changes a role (see
`user_service.change_role`): `default_permissions_for_role` is a pure
function so the rule can be tested on its own and nothing happens
implicitly on save.

Governance rules enforced here:
    • Moderators may moderate content and read users but never
      mutate or delete accounts
    • Only ADMIN holds the admin.* codes
"""

from codecollab.models.user import UserRole

# ────────────────────────────────────────────────────────────────────
# 1.  CANONICAL PERMISSION LIST
# ────────────────────────────────────────────────────────────────────
PERMISSIONS: list[dict[str, str]] = [
    # User management
    {"code": "users.read", "description": "View user accounts"},
    {"code": "users.create", "description": "Create user accounts"},
    {"code": "users.update", "description": "Update user accounts"},
    {"code": "users.delete", "description": "Delete user accounts"},
    # Projects
    {"code": "projects.read", "description": "View projects"},
    {"code": "projects.create", "description": "Post new projects"},
    {"code": "projects.update", "description": "Edit any project"},
    {"code": "projects.delete", "description": "Delete any project"},
    {"code": "projects.moderate", "description": "Moderate projects"},
    # Comments
    {"code": "comments.read", "description": "View comments"},
    {"code": "comments.create", "description": "Post comments"},
    {"code": "comments.update", "description": "Edit any comment"},
    {"code": "comments.delete", "description": "Delete any comment"},
    {"code": "comments.moderate", "description": "Moderate comments"},
    # Admin functions
    {"code": "admin.dashboard", "description": "View the admin dashboard"},
    {"code": "admin.users", "description": "Manage users from the admin panel"},
    {"code": "admin.analytics", "description": "View analytics"},
    {"code": "admin.system", "description": "Run system maintenance"},
    # Moderation
    {"code": "moderate.content", "description": "Moderate user content"},
    {"code": "moderate.users", "description": "Moderate user accounts"},
    {"code": "moderate.reports", "description": "Handle abuse reports"},
]

PERMISSION_CODES: frozenset[str] = frozenset(p["code"] for p in PERMISSIONS)

# ────────────────────────────────────────────────────────────────────
# 2.  ROLE → PERMISSION MAPPING
# ────────────────────────────────────────────────────────────────────
ROLE_PERMISSIONS: dict[UserRole, list[str]] = {
    UserRole.USER: [
        "projects.read",
        "projects.create",
        "comments.read",
        "comments.create",
    ],
    UserRole.MODERATOR: [
        "projects.read",
        "projects.create",
        "projects.moderate",
        "comments.read",
        "comments.create",
        "comments.moderate",
        "moderate.content",
        "users.read",
        # NOTE: No users.update / users.delete here (governance rule)
    ],
    UserRole.ADMIN: [p["code"] for p in PERMISSIONS],  # full access
}


def default_permissions_for_role(role: UserRole | str) -> list[str]:
    """Return a fresh copy of the permission bundle for `role`.

    Unknown roles get the plain `user` bundle.
    """
    try:
        role = UserRole(role)
    except ValueError:
        role = UserRole.USER
    return list(ROLE_PERMISSIONS[role])


def unknown_permissions(codes: list[str]) -> list[str]:
    """Codes not present in the catalog, in input order."""
    return [code for code in codes if code not in PERMISSION_CODES]
