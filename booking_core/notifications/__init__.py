from booking_core.notifications.bridge import ChangeBridge, ChangeStream, Subscription

__all__ = ["ChangeBridge", "ChangeStream", "Subscription"]
