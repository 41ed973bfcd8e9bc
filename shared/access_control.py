from dataclasses import dataclass, field

from sqlalchemy import bindparam, text

ACTION_TEAMS_READ = "teams:read"
ACTION_TEAMS_CREATE = "teams:create"
ACTION_TEAMS_WRITE = "teams:write"
ACTION_TEAMS_DELETE = "teams:delete"
ACTION_TEAMS_PERMISSIONS_READ = "teams.permissions:read"
ACTION_TEAMS_PERMISSIONS_WRITE = "teams.permissions:write"
ACTION_ORG_USERS_READ = "org.users:read"

ADMIN_ROLES = ("Admin",)

# Grants every basic org role carries on top of the token's own permissions.
BASIC_ROLE_PERMISSIONS = {
    "Viewer": {ACTION_ORG_USERS_READ: ["users:*"]},
    "Editor": {ACTION_ORG_USERS_READ: ["users:*"]},
    "Admin": {ACTION_ORG_USERS_READ: ["users:*"]},
}


@dataclass
class SQLFilter:
    """
    WHERE fragment restricting visible rows, plus its bound parameters.

    List values are bound as expanding parameters, so ``id IN :ids`` works
    with any number of ids.
    """

    where: str
    args: dict = field(default_factory=dict)

    def clause(self):
        params = [
            bindparam(name, value, expanding=isinstance(value, (list, tuple)))
            for name, value in self.args.items()
        ]
        return text(self.where).bindparams(*params)


def team_scope(team_id) -> str:
    return f"teams:id:{team_id}"


def is_org_admin(current_user: dict | None) -> bool:
    if not current_user:
        return False
    return bool(current_user.get("is_server_admin")) or current_user.get("org_role") in ADMIN_ROLES


def scopes_for(current_user: dict | None, action: str) -> list[str]:
    if not current_user:
        return []
    scopes = list((current_user.get("permissions") or {}).get(action, []))
    scopes.extend(BASIC_ROLE_PERMISSIONS.get(current_user.get("org_role"), {}).get(action, []))
    return scopes


def _is_wildcard(scope: str, prefix: str) -> bool:
    if scope == "*":
        return True
    kind = prefix.split(":", 1)[0]
    return scope in (f"{kind}:*", f"{prefix}*")


def has_wildcard_scope(current_user: dict | None, action: str, prefix: str) -> bool:
    if is_org_admin(current_user):
        return True
    return any(_is_wildcard(scope, prefix) for scope in scopes_for(current_user, action))


def build_filter(current_user: dict | None, sql_id: str, prefix: str, action: str) -> SQLFilter:
    """
    Build the filter restricting ``sql_id`` to the ids the user may ``action``.

    Admins and wildcard scopes see everything, users with no matching scope
    see nothing.
    """
    if has_wildcard_scope(current_user, action, prefix):
        return SQLFilter(" 1 = 1")

    ids = []
    for scope in scopes_for(current_user, action):
        if not scope.startswith(prefix):
            continue
        value = scope[len(prefix):]
        if value.isdigit():
            ids.append(int(value))

    if not ids:
        return SQLFilter(" 1 = 0")

    return SQLFilter(f" {sql_id} IN :ac_ids", {"ac_ids": sorted(set(ids))})
