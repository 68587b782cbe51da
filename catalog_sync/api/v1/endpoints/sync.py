"""
Endpoints para pasadas de sincronizacion hacia el catalogo destino.
"""
from fastapi import APIRouter, Depends, status

from catalog_sync.application.use_cases.sync_use_cases import SyncUseCases
from catalog_sync.application.dto.sync_dto import SyncRequestDTO, SyncResponseDTO
from catalog_sync.api.v1.dependencies.use_case_deps import get_sync_use_cases


router = APIRouter(prefix="/sync", tags=["Sync"])


@router.post(
    "/preview",
    response_model=SyncResponseDTO,
    status_code=status.HTTP_200_OK,
    summary="Planificar una pasada sin escribir"
)
async def preview_sync(
    dto: SyncRequestDTO,
    use_cases: SyncUseCases = Depends(get_sync_use_cases)
) -> SyncResponseDTO:
    """
    Devuelve el plan de filas que produciria el registro.
    
    No escribe en el destino: solo consulta el esquema y el catalogo.
    Los ids aun no generados aparecen como placeholders ({{id_product}}).
    """
    summary = await use_cases.preview(
        dto.domain, dto.page_type, dto.record, version=dto.version, product_id=dto.product_id
    )
    return SyncResponseDTO(**summary)


@router.post(
    "/apply",
    response_model=SyncResponseDTO,
    status_code=status.HTTP_200_OK,
    summary="Aplicar una pasada al catalogo destino"
)
async def apply_sync(
    dto: SyncRequestDTO,
    use_cases: SyncUseCases = Depends(get_sync_use_cases)
) -> SyncResponseDTO:
    """
    Ejecuta la pasada: cada fila es un upsert independiente.
    
    Los fallos de fila se cuentan en `failed` sin abortar el resto;
    los errores de configuracion responden 422 antes de escribir nada.
    """
    summary = await use_cases.apply(
        dto.domain, dto.page_type, dto.record, version=dto.version, product_id=dto.product_id
    )
    return SyncResponseDTO(**summary)
