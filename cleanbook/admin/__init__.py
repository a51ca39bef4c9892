from cleanbook.admin.notifications import AdminNotification, NotificationCenter
from cleanbook.admin.reservation_manager import ReservationDetail, ReservationManager
from cleanbook.admin.schedule_editor import AdminScheduleEditor

__all__ = [
    "AdminNotification",
    "AdminScheduleEditor",
    "NotificationCenter",
    "ReservationDetail",
    "ReservationManager",
]
