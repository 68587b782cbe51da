"""
Dependencias para recursos compartidos de la aplicacion.
"""
from fastapi import Request

from catalog_sync.infrastructure.external.catalog_store.connection import TargetStoreFactory


def get_target_factory(request: Request) -> TargetStoreFactory:
    """
    Fabrica de engines del catalogo destino (una por proceso, en app.state).
    """
    return request.app.state.target_factory
