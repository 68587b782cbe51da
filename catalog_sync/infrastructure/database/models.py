"""
Modelos de base de datos (ORM) del config store.
"""
from sqlalchemy import Column, String, Integer, DateTime, JSON, Boolean, UniqueConstraint, Index
from sqlalchemy.sql import func

from catalog_sync.infrastructure.database.session import Base


class MappingToolModel(Base):
    """
    Documento de mapeo versionado por (domain, page_type).

    La version vigente es la de mayor `version` (desempate por updated_at).
    """

    __tablename__ = "mapping_tools"
    __table_args__ = (
        UniqueConstraint("domain", "page_type", "version", name="uq_mapping_tools_domain_type_version"),
        Index("ix_mapping_tools_domain_type", "domain", "page_type"),
    )

    id = Column(Integer, primary_key=True, index=True)
    domain = Column(String(255), nullable=False)
    page_type = Column(String(64), nullable=False, default="product")
    version = Column(Integer, nullable=False, default=1)
    name = Column(String(255), nullable=True)
    config = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<MappingTool(id={self.id}, domain={self.domain}, page_type={self.page_type}, v={self.version})>"


class TableSettingsModel(Base):
    """
    Overrides persistidos por tabla (settings + mapping.fields/defaults).

    El Config Rebuilder los vuelca en config.tables.
    """

    __tablename__ = "mapping_table_settings"
    __table_args__ = (
        UniqueConstraint("domain", "page_type", "table_name", name="uq_table_settings_domain_type_table"),
    )

    id = Column(Integer, primary_key=True, index=True)
    domain = Column(String(255), nullable=False, index=True)
    page_type = Column(String(64), nullable=False, default="product")
    table_name = Column(String(128), nullable=False)
    settings = Column(JSON, nullable=True)
    mapping = Column(JSON, nullable=True)  # {fields, defaults}
    columns = Column(JSON, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<TableSettings(domain={self.domain}, page_type={self.page_type}, table={self.table_name})>"


class DbProfileModel(Base):
    """Perfil de conexion al catalogo destino."""

    __tablename__ = "db_profiles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    host = Column(String(255), nullable=False, default="localhost")
    port = Column(Integer, nullable=False, default=3306)
    database = Column(String(255), nullable=False)
    user = Column(String(255), nullable=False, default="")
    password = Column(String(255), nullable=False, default="")
    ssl = Column(Boolean, default=False)
    driver = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<DbProfile(id={self.id}, name={self.name}, host={self.host}, database={self.database})>"
