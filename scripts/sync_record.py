"""
CLI: registro fuente (JSON) -> catalogo destino.

Ejecuta una pasada para un registro usando el mapeo vigente (o una version
concreta) del config store. Por defecto solo planifica (preview).

Variables de entorno:
  - DATABASE_URL (o DATABASE_HOST/PORT/USER/PASSWORD/NAME) del config store
  - TARGET_DRIVER, TARGET_CONNECT_TIMEOUT, TARGET_OPERATION_TIMEOUT (opcionales)

Ejecución:
  python scripts/sync_record.py --domain shop.example.com record.json
  python scripts/sync_record.py --domain shop.example.com --apply record.json
  python scripts/sync_record.py --domain shop.example.com --page-type category --version 3 record.json

Codigos de salida: 0 ok, 1 filas fallidas, 2 error de configuracion.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from loguru import logger
from dotenv import load_dotenv

# Permite ejecutar este script desde cualquier cwd sin configurar PYTHONPATH.
_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

# Cargar variables desde .env si existe (antes de importar settings).
load_dotenv(_ROOT / ".env", override=False)

from catalog_sync.application.use_cases.sync_use_cases import SyncUseCases
from catalog_sync.core.config import settings
from catalog_sync.infrastructure.database.session import AsyncSessionLocal, close_db
from catalog_sync.infrastructure.external.catalog_store.connection import TargetStoreFactory
from catalog_sync.shared.exceptions.base import AppException


def _read_record(path: str) -> dict[str, Any]:
    raw = sys.stdin.read() if path == "-" else Path(path).read_text(encoding="utf-8")
    record = json.loads(raw)
    if not isinstance(record, dict):
        raise SystemExit("El registro fuente debe ser un objeto JSON")
    return record


async def _run(args: argparse.Namespace, record: dict[str, Any]) -> dict[str, Any]:
    factory = TargetStoreFactory(
        default_driver=settings.TARGET_DRIVER,
        connect_timeout=settings.TARGET_CONNECT_TIMEOUT,
        operation_timeout=settings.TARGET_OPERATION_TIMEOUT,
    )
    try:
        async with AsyncSessionLocal() as session:
            use_cases = SyncUseCases(session, factory)
            mode = "apply" if args.apply else "preview"
            return await use_cases.run(
                mode,
                args.domain,
                args.page_type,
                record,
                version=args.version,
                product_id=args.product_id,
            )
    finally:
        factory.dispose_all()
        await close_db()


def main() -> int:
    parser = argparse.ArgumentParser(description="Sincroniza un registro fuente con el catalogo destino.")
    parser.add_argument("record", help="Ruta al JSON del registro ('-' para stdin).")
    parser.add_argument("--domain", required=True, help="Dominio de origen del registro.")
    parser.add_argument("--page-type", default="product", help="Tipo de pagina (product, category, article).")
    parser.add_argument("--version", type=int, default=None, help="Version del mapeo (por defecto la vigente).")
    parser.add_argument("--product-id", type=int, default=None, help="Id de entidad ya existente en el destino.")
    parser.add_argument("--apply", action="store_true", help="Escribir en el destino (por defecto: preview).")
    args = parser.parse_args()

    record = _read_record(args.record)

    try:
        summary = asyncio.run(_run(args, record))
    except AppException as e:
        logger.error(f"{e.error_code}: {e.message}")
        print(json.dumps(e.to_payload(), ensure_ascii=False, indent=2, default=str))
        return 2

    print(json.dumps(summary, ensure_ascii=False, indent=2, default=str))
    return 1 if summary.get("failed") else 0


if __name__ == "__main__":
    raise SystemExit(main())
