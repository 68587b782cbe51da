"""
Endpoints para matching y asociacion de categorias.
"""
from fastapi import APIRouter, Depends

from catalog_sync.application.use_cases.category_use_cases import CategoryUseCases
from catalog_sync.application.dto.category_dto import (
    CategoryMatchRequestDTO,
    CategoryMatchResponseDTO,
    CategoryApplyRequestDTO,
    CategoryApplyResponseDTO
)
from catalog_sync.api.v1.dependencies.use_case_deps import get_category_use_cases


router = APIRouter(prefix="/categories", tags=["Categories"])


@router.post(
    "/match",
    response_model=CategoryMatchResponseDTO,
    summary="Resolver una etiqueta contra el catalogo"
)
async def match_category(
    dto: CategoryMatchRequestDTO,
    use_cases: CategoryUseCases = Depends(get_category_use_cases)
) -> CategoryMatchResponseDTO:
    """
    Devuelve `best` (etiqueta principal) y `all` (todas las etiquetas).
    """
    result = await use_cases.match(dto.profile_id, dto.label, dto.labels, prefix=dto.prefix)
    return CategoryMatchResponseDTO(**result)


@router.post(
    "/apply",
    response_model=CategoryApplyResponseDTO,
    summary="Asociar categorias a productos existentes"
)
async def apply_categories(
    dto: CategoryApplyRequestDTO,
    use_cases: CategoryUseCases = Depends(get_category_use_cases)
) -> CategoryApplyResponseDTO:
    """
    Inserta asociaciones (insert-ignore) y fija la categoria por defecto
    en el producto y en cada tienda.
    """
    result = await use_cases.apply(
        [item.model_dump() for item in dto.items],
        profile_id=dto.profile_id,
        prefix=dto.prefix,
        id_shops=dto.id_shops,
        domain=dto.domain,
        page_type=dto.page_type,
    )
    return CategoryApplyResponseDTO(**result)
