from order_service.pricing.pricing_gateway import BrokerPricingGateway, PricingGateway, decode_price

__all__ = ["BrokerPricingGateway", "PricingGateway", "decode_price"]
