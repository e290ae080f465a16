from order_service.config.settings import Settings

__all__ = ["Settings"]
