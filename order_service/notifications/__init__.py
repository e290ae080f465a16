from order_service.notifications.notifications_service import NotificationService

__all__ = ["NotificationService"]
