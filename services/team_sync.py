import logging

from sqlalchemy.orm import Session

from services.membership_store import (add_or_update_team_member, get_user_team_memberships,
                                       is_team_member, remove_team_member_in_transaction, team_exists)
from shared.database import transaction
from shared.exceptions import TeamError, TeamErrorKind
from teams.models.team_member import normalize_permission

logger = logging.getLogger(__name__)


def sync_external_memberships(db: Session, message_data: dict) -> dict:
    """
    Reconcile a user's external memberships with the team list sent by the
    external identity source.

    Teams that are listed but not joined are joined as external members.
    External memberships of teams no longer listed are removed, unless the
    user is their last admin, in which case the removal is skipped.
    Memberships added by hand are never touched.

    ``permission`` is optional. New memberships default to MEMBER, and the
    permission of existing external memberships only changes when the
    message carries one.
    """
    org_id = message_data.get("org_id")
    user_id = message_data.get("user_id")
    team_ids = message_data.get("team_ids")

    if org_id is None:
        raise ValueError("'org_id' is required")
    if user_id is None:
        raise ValueError("'user_id' is required")
    if team_ids is None:
        raise ValueError("'team_ids' is required")

    org_id = int(org_id)
    user_id = int(user_id)
    wanted = {int(team_id) for team_id in team_ids}
    permission_given = message_data.get("permission") is not None
    permission = normalize_permission(message_data.get("permission"))

    added, updated, unchanged, removed, skipped = [], [], [], [], []

    with transaction(db):
        current = {
            m.team_id for m in get_user_team_memberships(db, org_id, user_id, external_only=True)
        }

        for team_id in sorted(wanted):
            if team_id in current:
                if not permission_given:
                    unchanged.append(team_id)
                elif _guarded(db, add_or_update_team_member, org_id, team_id, user_id, True, permission):
                    updated.append(team_id)
                else:
                    skipped.append(team_id)
                continue

            if is_team_member(db, org_id, team_id, user_id):
                logger.info("Team sync: user %s joined team %s by hand, leaving it alone", user_id, team_id)
                skipped.append(team_id)
                continue

            if not team_exists(db, org_id, team_id):
                logger.warning("Team sync: team %s does not exist in org %s, skipping", team_id, org_id)
                skipped.append(team_id)
                continue

            add_or_update_team_member(db, org_id, team_id, user_id, True, permission)
            added.append(team_id)

        for team_id in sorted(current - wanted):
            if _guarded(db, remove_team_member_in_transaction, org_id, team_id, user_id):
                removed.append(team_id)
            else:
                skipped.append(team_id)

    logger.info("Team sync for user %s in org %s: added=%s updated=%s unchanged=%s removed=%s skipped=%s",
                user_id, org_id, added, updated, unchanged, removed, skipped)

    return {
        "org_id": org_id,
        "user_id": user_id,
        "added": added,
        "updated": updated,
        "unchanged": unchanged,
        "removed": removed,
        "skipped": skipped
    }


def _guarded(db: Session, operation, org_id: int, team_id: int, user_id: int, *args) -> bool:
    """Run ``operation`` in a savepoint; False when it would drop the team's last admin."""
    try:
        with db.begin_nested():
            operation(db, org_id, team_id, user_id, *args)
    except TeamError as e:
        if e.kind is not TeamErrorKind.LAST_ADMIN_PROTECTED:
            raise
        logger.warning("Team sync: user %s is the last admin of team %s, keeping it", user_id, team_id)
        return False

    return True
