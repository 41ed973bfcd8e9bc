"""
Tests for services/invariants.py: permission normalization and the
last-admin check.
"""

import pytest

from conftest import ADMIN, MEMBER, ORG_ID
from services.invariants import ensure_not_last_admin, is_last_admin
from services.membership_store import add_team_member
from shared.exceptions import LastAdminProtected, TeamErrorKind
from teams.models.team_member import PermissionType, normalize_permission


class TestNormalizePermission:

    def test_admin_is_kept(self):
        assert normalize_permission(PermissionType.ADMIN) is PermissionType.ADMIN
        assert normalize_permission(4) is PermissionType.ADMIN

    @pytest.mark.parametrize("value", ["admin", " Admin ", "ADMIN", "4"])
    def test_admin_by_name_or_numeric_string(self, value):
        assert normalize_permission(value) is PermissionType.ADMIN

    @pytest.mark.parametrize("value", [0, 1, 2, 3, 5, 99, -1, None, "admin-ish", "7"])
    def test_everything_else_becomes_member(self, value):
        assert normalize_permission(value) is PermissionType.MEMBER


class TestIsLastAdmin:

    def test_sole_admin(self, db, team, users):
        add_team_member(db, ORG_ID, team.id, users["ana"].id, permission=ADMIN)
        add_team_member(db, ORG_ID, team.id, users["bruno"].id, permission=MEMBER)

        assert is_last_admin(db, ORG_ID, team.id, users["ana"].id) is True

    def test_member_next_to_sole_admin_is_not_last_admin(self, db, team, users):
        add_team_member(db, ORG_ID, team.id, users["ana"].id, permission=ADMIN)
        add_team_member(db, ORG_ID, team.id, users["bruno"].id, permission=MEMBER)

        assert is_last_admin(db, ORG_ID, team.id, users["bruno"].id) is False

    def test_one_of_two_admins(self, db, team, users):
        add_team_member(db, ORG_ID, team.id, users["ana"].id, permission=ADMIN)
        add_team_member(db, ORG_ID, team.id, users["bruno"].id, permission=ADMIN)

        assert is_last_admin(db, ORG_ID, team.id, users["ana"].id) is False

    def test_team_without_admins(self, db, team, users):
        add_team_member(db, ORG_ID, team.id, users["ana"].id)

        assert is_last_admin(db, ORG_ID, team.id, users["ana"].id) is False

    def test_admins_of_other_teams_are_ignored(self, db, team, users):
        from services.team_store import create_team

        other = create_team(db, ORG_ID, "Frontend")
        add_team_member(db, ORG_ID, team.id, users["ana"].id, permission=ADMIN)
        add_team_member(db, ORG_ID, other.id, users["bruno"].id, permission=ADMIN)

        assert is_last_admin(db, ORG_ID, team.id, users["ana"].id) is True

    def test_ensure_not_last_admin_raises_tagged_error(self, db, team, users):
        add_team_member(db, ORG_ID, team.id, users["ana"].id, permission=ADMIN)

        with pytest.raises(LastAdminProtected) as exc_info:
            ensure_not_last_admin(db, ORG_ID, team.id, users["ana"].id)

        assert exc_info.value.kind is TeamErrorKind.LAST_ADMIN_PROTECTED
