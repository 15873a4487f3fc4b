from campushub.models.notification import Notification, NotificationPriority, NotificationType  # noqa: F401
from campushub.models.reservation import RecurrenceFrequency, Reservation, ReservationStatus  # noqa: F401
from campushub.models.resource import Resource, ResourceType  # noqa: F401
from campushub.models.user import User, UserRole  # noqa: F401
