"""
DTOs para documentos de mapeo versionados.
"""
from typing import Optional, List, Dict, Any
from datetime import datetime
from pydantic import BaseModel, Field


class MappingSaveDTO(BaseModel):
    """Documento entrante para guardar (se normaliza y se fusiona con el vigente)."""

    config: Dict[str, Any] = Field(..., description="Documento de mapeo")
    bump: bool = Field(default=False, description="Crear una version nueva en lugar de actualizar la vigente")
    name: Optional[str] = Field(None, max_length=255)


class MappingResponseDTO(BaseModel):
    id: int
    domain: str
    page_type: str
    version: int
    name: Optional[str] = None
    config: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MappingVersionDTO(BaseModel):
    """Entrada del listado de versiones (sin documento)."""

    id: int
    version: int
    name: Optional[str] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MappingVersionsResponseDTO(BaseModel):
    domain: str
    page_type: str
    versions: List[MappingVersionDTO] = Field(default_factory=list)


class MappingRebuildResponseDTO(BaseModel):
    domain: str
    page_type: str
    version: int
    tables: List[str] = Field(default_factory=list)
