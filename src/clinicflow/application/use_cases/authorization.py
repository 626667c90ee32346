"""Role checks applied by the workflow services."""

from clinicflow.domain.enums.workflow import ActorRole
from clinicflow.domain.errors import ForbiddenActionError
from clinicflow.domain.value_objects.actor import Actor

FRONT_DESK_ROLES = (ActorRole.ADMIN, ActorRole.STAFF, ActorRole.NURSE)
CLINICIAN_ROLES = (ActorRole.ADMIN, ActorRole.DOCTOR)
CARE_TEAM_ROLES = (ActorRole.ADMIN, ActorRole.STAFF, ActorRole.NURSE, ActorRole.DOCTOR)


def require_role(actor: Actor, action: str, *roles: ActorRole) -> None:
    if not actor.has_role(*roles):
        raise ForbiddenActionError(action, actor.role.value)


def require_self_or_role(actor: Actor, subject_id: str, action: str, *roles: ActorRole) -> None:
    """Allow the subject acting on themselves, or any of ``roles``."""
    if actor.user_id == subject_id or actor.has_role(*roles):
        return
    raise ForbiddenActionError(
        action,
        actor.role.value,
        reason=f"User '{actor.user_id}' may not {action} on behalf of '{subject_id}'",
    )
