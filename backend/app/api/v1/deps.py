"""
API Dependencies

Database session and the production service wired with the external
clients. Tests override get_production_service to inject fakes.
"""
from fastapi import Depends, Query
from sqlalchemy.orm import Session

from app.core.settings import get_settings
from app.db.session import get_db
from app.integrations import BostaClient, QRCodeGenerator, ShopifyClient
from app.services.production_service import ProductionService


def get_production_service(db: Session = Depends(get_db)) -> ProductionService:
    """
    Dependency building a ProductionService for the request's session.

    Returns:
        ProductionService using the Shopify, Bosta and QR clients
    """
    settings = get_settings()
    return ProductionService(
        db,
        commerce=ShopifyClient(settings),
        shipping=BostaClient(settings),
        qr=QRCodeGenerator(),
        settings=settings,
    )


def get_scan_stage(
    stage: str = Query(
        default="printer",
        description="Scan station (designer, printer, cutter, fulfillment, shipping) or target status",
    )
) -> str:
    """Dependency for the scan stage query parameter."""
    return stage


__all__ = ["get_db", "get_production_service", "get_scan_stage"]
