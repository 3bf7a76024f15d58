"""Catalog endpoint listing the SKUs /checkout accepts."""

from fastapi import APIRouter, Depends

from ticketing.services.catalog import Catalog
from ticketing_api.dependencies import get_ticket_catalog
from ticketing_api.models.checkout import CatalogResponse

router = APIRouter(tags=["catalog"])


@router.get(
    "/catalog",
    summary="List sellable SKUs",
    response_model=CatalogResponse,
)
async def list_catalog(catalog: Catalog = Depends(get_ticket_catalog)) -> CatalogResponse:
    return CatalogResponse(skus=catalog.skus())
