"""
Endpoints para documentos de mapeo versionados.
"""
from fastapi import APIRouter, Depends

from catalog_sync.application.use_cases.mapping_use_cases import MappingUseCases
from catalog_sync.application.dto.mapping_dto import (
    MappingSaveDTO,
    MappingResponseDTO,
    MappingVersionDTO,
    MappingVersionsResponseDTO,
    MappingRebuildResponseDTO
)
from catalog_sync.api.v1.dependencies.use_case_deps import get_mapping_use_cases
from catalog_sync.domain.entities.mapping import normalize_domain


router = APIRouter(prefix="/mappings", tags=["Mappings"])


@router.get(
    "/{domain}/{page_type}",
    response_model=MappingResponseDTO,
    summary="Obtener el mapeo vigente"
)
async def get_mapping(
    domain: str,
    page_type: str,
    use_cases: MappingUseCases = Depends(get_mapping_use_cases)
) -> MappingResponseDTO:
    """
    Version vigente: mayor version, desempate por ultima actualizacion.
    """
    row = await use_cases.get(domain, page_type)
    return MappingResponseDTO.model_validate(row)


@router.get(
    "/{domain}/{page_type}/versions",
    response_model=MappingVersionsResponseDTO,
    summary="Listar versiones del mapeo"
)
async def list_mapping_versions(
    domain: str,
    page_type: str,
    use_cases: MappingUseCases = Depends(get_mapping_use_cases)
) -> MappingVersionsResponseDTO:
    rows = await use_cases.versions(domain, page_type)
    return MappingVersionsResponseDTO(
        domain=normalize_domain(domain),
        page_type=page_type.strip().lower(),
        versions=[MappingVersionDTO.model_validate(r) for r in rows],
    )


@router.get(
    "/{domain}/{page_type}/versions/{version}",
    response_model=MappingResponseDTO,
    summary="Obtener una version concreta del mapeo"
)
async def get_mapping_version(
    domain: str,
    page_type: str,
    version: int,
    use_cases: MappingUseCases = Depends(get_mapping_use_cases)
) -> MappingResponseDTO:
    row = await use_cases.get(domain, page_type, version)
    return MappingResponseDTO.model_validate(row)


@router.put(
    "/{domain}/{page_type}",
    response_model=MappingResponseDTO,
    summary="Guardar el mapeo"
)
async def save_mapping(
    domain: str,
    page_type: str,
    dto: MappingSaveDTO,
    use_cases: MappingUseCases = Depends(get_mapping_use_cases)
) -> MappingResponseDTO:
    """
    Guarda el documento (fusionado con el vigente).
    
    Args:
        domain: Dominio de origen
        page_type: Tipo de pagina
        dto: Documento y flag `bump` (nueva version)
        use_cases: Casos de uso de mapeos (inyectado)
        
    Returns:
        MappingResponseDTO: Version guardada
    """
    row = await use_cases.save(domain, page_type, dto.config, bump=dto.bump, name=dto.name)
    return MappingResponseDTO.model_validate(row)


@router.post(
    "/{domain}/{page_type}/rebuild",
    response_model=MappingRebuildResponseDTO,
    summary="Reconstruir el mapeo desde los settings por tabla"
)
async def rebuild_mapping(
    domain: str,
    page_type: str,
    use_cases: MappingUseCases = Depends(get_mapping_use_cases)
) -> MappingRebuildResponseDTO:
    row = await use_cases.rebuild(domain, page_type)
    tables = row.config.get("tables") if isinstance(row.config, dict) else None
    return MappingRebuildResponseDTO(
        domain=row.domain,
        page_type=row.page_type,
        version=row.version,
        tables=sorted(tables) if isinstance(tables, dict) else [],
    )
