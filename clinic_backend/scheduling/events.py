from dataclasses import dataclass, field

APPOINTMENT_CREATED = 'appointment_created'
APPOINTMENT_RESCHEDULED = 'appointment_rescheduled'
APPOINTMENT_CANCELLED = 'appointment_cancelled'
APPOINTMENT_CONFIRMED = 'appointment_confirmed'
APPOINTMENT_COMPLETED = 'appointment_completed'
APPOINTMENT_REMINDER = 'appointment_reminder'


@dataclass(frozen=True)
class AppointmentEvent:
    """Something that happened to an appointment, dispatched after commit."""

    type: str
    appointment_id: int
    title: str
    body: str | None = None


@dataclass
class BookingResult:
    appointment: object
    events: list[AppointmentEvent] = field(default_factory=list)
