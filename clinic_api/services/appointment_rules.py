"""Appointment status machine and access rules."""

from clinic_api.core.dependencies import ActingUser
from clinic_api.core.errors import Forbidden, IllegalTransition
from clinic_api.models.appointment import Appointment, AppointmentStatus
from clinic_api.models.user import UserRole

S = AppointmentStatus

VALID_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    S.SCHEDULED: frozenset({S.CONFIRMED, S.CANCELLED}),
    S.CONFIRMED: frozenset({S.COMPLETED, S.CANCELLED, S.NO_SHOW}),
    S.COMPLETED: frozenset(),
    S.CANCELLED: frozenset(),
    S.NO_SHOW: frozenset(),
}

TERMINAL_STATUSES = frozenset({S.COMPLETED, S.CANCELLED, S.NO_SHOW})

# Which target statuses each role may request
ROLE_STATUS_PERMISSIONS: dict[str, frozenset[AppointmentStatus]] = {
    UserRole.ADMIN.value: frozenset({S.SCHEDULED, S.CONFIRMED, S.COMPLETED, S.CANCELLED, S.NO_SHOW}),
    UserRole.RECEPTIONIST.value: frozenset({S.SCHEDULED, S.CONFIRMED, S.CANCELLED}),
    UserRole.DOCTOR.value: frozenset({S.CONFIRMED, S.COMPLETED, S.NO_SHOW}),
    UserRole.PATIENT.value: frozenset({S.CANCELLED}),
}

STAFF_ROLES = frozenset({UserRole.ADMIN.value, UserRole.RECEPTIONIST.value})


def is_transition_allowed(current: AppointmentStatus, new: AppointmentStatus) -> bool:
    # Statuses missing from the table (Rescheduled) have no outgoing transitions
    return new in VALID_TRANSITIONS.get(AppointmentStatus(current), frozenset())


def can_request_status(role: str, new: AppointmentStatus) -> bool:
    return new in ROLE_STATUS_PERMISSIONS.get(role, frozenset())


def can_access(appointment: Appointment, user: ActingUser) -> bool:
    """Same clinic, and either staff or the assigned doctor or the patient."""
    if appointment is None or user is None:
        return False
    if appointment.clinic_id != user.clinic_id:
        return False
    if user.role in STAFF_ROLES:
        return True
    if user.role == UserRole.DOCTOR.value and appointment.doctor_id == user.id:
        return True
    if user.role == UserRole.PATIENT.value and appointment.patient_id == user.id:
        return True
    return False


def can_delete(appointment: Appointment, user: ActingUser) -> bool:
    """Admins may delete any appointment of their clinic.

    Receptionists may delete appointments they booked or are handling, i.e.
    the ones they created or last modified.
    """
    if not can_access(appointment, user):
        return False
    if user.role == UserRole.ADMIN.value:
        return True
    if user.role == UserRole.RECEPTIONIST.value:
        return user.id in (appointment.created_by, appointment.modified_by)
    return False


def check_access(appointment: Appointment, user: ActingUser, action: str = "access") -> None:
    if not can_access(appointment, user):
        raise Forbidden(f"You do not have permission to {action} this appointment")


def check_status_change(appointment: Appointment, user: ActingUser, new_status: AppointmentStatus) -> None:
    """Raise unless ``user`` may move ``appointment`` to ``new_status``.

    The role check runs first, so a caller lacking permission is told so even
    when the transition would also be structurally illegal.
    """
    new_status = AppointmentStatus(new_status)
    if not can_request_status(user.role, new_status):
        raise Forbidden(
            f"You do not have permission to change appointment status to {new_status.value}"
        )
    current = AppointmentStatus(appointment.status)
    if not is_transition_allowed(current, new_status):
        raise IllegalTransition(
            f"Cannot change status from {current.value} to {new_status.value}"
        )
