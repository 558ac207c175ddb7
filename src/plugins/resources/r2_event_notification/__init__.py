from plugins.resources.r2_event_notification.resource import R2EventNotificationPlugin

__all__ = ["R2EventNotificationPlugin"]
