"""External collaborators: commerce platform, shipping provider, QR codes"""
from app.integrations.shopify import ShopifyClient
from app.integrations.bosta import BostaClient
from app.integrations.qr import QRCodeGenerator

__all__ = ["ShopifyClient", "BostaClient", "QRCodeGenerator"]
