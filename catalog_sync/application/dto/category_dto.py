"""
DTOs para matching y asociacion de categorias.
"""
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field


class CategoryMatchRequestDTO(BaseModel):
    """Matching de una etiqueta contra el catalogo vivo."""

    profile_id: int = Field(..., ge=1)
    prefix: Optional[str] = Field(None, description="Prefijo de tablas; por defecto DEFAULT_TABLE_PREFIX")
    label: str = Field(..., description="Etiqueta principal")
    labels: List[str] = Field(default_factory=list, description="Etiquetas adicionales")


class CategoryMatchResponseDTO(BaseModel):
    label: str
    best: Optional[int] = None
    all: List[int] = Field(default_factory=list)
    tier: Optional[int] = None
    catalog_size: int = 0


class CategoryItemDTO(BaseModel):
    product_id: int = Field(..., ge=1)
    category: str = Field(default="")
    categories: List[str] = Field(default_factory=list)


class CategoryApplyRequestDTO(BaseModel):
    """
    Asociacion de categorias para productos existentes.

    Con `domain` (y page_type) se usa el mapeo vigente para perfil y tiendas.
    """

    profile_id: Optional[int] = Field(None, ge=1)
    prefix: Optional[str] = None
    items: List[CategoryItemDTO] = Field(default_factory=list)
    id_shops: List[int] = Field(default_factory=list)
    domain: Optional[str] = None
    page_type: str = Field(default="product")


class CategoryApplyResponseDTO(BaseModel):
    linked: int = 0
    defaultsSet: int = 0
    missing: int = 0
    failed: int = 0
    id_shops: List[int] = Field(default_factory=list)
    items: List[Dict[str, Any]] = Field(default_factory=list)
