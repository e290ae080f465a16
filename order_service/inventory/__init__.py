from order_service.inventory.inventory_publisher import InventoryPublisher, PendingEvent

__all__ = ["InventoryPublisher", "PendingEvent"]
