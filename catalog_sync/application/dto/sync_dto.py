"""
DTOs para pasadas de sincronizacion (preview / apply).
"""
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field


class SyncRequestDTO(BaseModel):
    """Solicitud de una pasada para un registro fuente."""

    domain: str = Field(..., min_length=1, description="Dominio de origen del registro")
    page_type: str = Field(default="product", description="Tipo de pagina (product, category, article)")
    record: Dict[str, Any] = Field(..., description="Registro fuente (JSON scrapeado)")
    version: Optional[int] = Field(None, ge=1, description="Version del mapeo; por defecto la vigente")
    product_id: Optional[int] = Field(None, ge=1, description="Id de entidad ya existente en el destino")


class TableCountersDTO(BaseModel):
    applied: int = 0
    failed: int = 0
    skipped: int = 0


class SkippedTableDTO(BaseModel):
    table: str
    reason: str

    class Config:
        extra = "allow"


class SyncResponseDTO(BaseModel):
    """
    Resumen estructurado de una pasada.

    En preview `applied` es 0 y `plan` lleva las filas planificadas.
    """

    mode: str
    domain: str
    page_type: str
    version: Optional[int] = None
    candidates: int = 0
    applied: int = 0
    failed: int = 0
    skipped: int = 0
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    tables: Dict[str, TableCountersDTO] = Field(default_factory=dict)
    generated_ids: Dict[str, Any] = Field(default_factory=dict)
    categories: Dict[str, Any] = Field(default_factory=dict)
    dimensions: Dict[str, Any] = Field(default_factory=dict)
    skipped_tables: List[SkippedTableDTO] = Field(default_factory=list)
    probe_failures: List[str] = Field(default_factory=list)
    errors: List[Dict[str, Any]] = Field(default_factory=list)
    plan: Optional[Dict[str, Any]] = None
