from deskflow.models.contact import Contact
from deskflow.models.payment_reminder import PaymentReminder
from deskflow.models.project import Project, Task
from deskflow.models.reservation import Reservation
from deskflow.models.staff_request import StaffRequest
from deskflow.models.ticket import Ticket

__all__ = [
    "Contact",
    "Ticket",
    "Reservation",
    "StaffRequest",
    "Project",
    "Task",
    "PaymentReminder",
]
