"""
Registra un perfil de conexion al catalogo destino en db_profiles.

Uso:
    python -m scripts.seed_profile --name tienda --host db.local --database prestashop --user ps
    python -m scripts.seed_profile --name tienda --database prestashop --dry-run

La contrasena se lee de TARGET_PASSWORD si no se pasa --password.
"""
import asyncio
import argparse
import os
import sys

from loguru import logger
from dotenv import load_dotenv

from catalog_sync.infrastructure.database.session import AsyncSessionLocal, close_db, init_db
from catalog_sync.infrastructure.repositories.db_profile_repository import DbProfileRepository


async def seed_profile(values: dict, dry_run: bool = False) -> int:
    """
    Crea el perfil y devuelve su id (0 en dry-run).
    """
    if dry_run:
        safe = {k: ("***" if k == "password" and v else v) for k, v in values.items()}
        logger.info(f"[DRY-RUN] Se crearia el perfil: {safe}")
        return 0

    await init_db()
    async with AsyncSessionLocal() as session:
        profile = await DbProfileRepository(session).create(**values)
        await session.commit()
        logger.success(f"Perfil creado: {profile.id} ({profile.name} -> {profile.host}/{profile.database})")
        return profile.id


async def main():
    load_dotenv(override=False)

    parser = argparse.ArgumentParser(description="Registra un perfil de catalogo destino")
    parser.add_argument("--name", required=True)
    parser.add_argument("--host", default="localhost")
    parser.add_argument("--port", type=int, default=3306)
    parser.add_argument("--database", required=True)
    parser.add_argument("--user", default="")
    parser.add_argument("--password", default=None)
    parser.add_argument("--ssl", action="store_true")
    parser.add_argument("--driver", default=None, help="Driver SQLAlchemy (por defecto TARGET_DRIVER)")
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args()

    values = {
        "name": args.name,
        "host": args.host,
        "port": args.port,
        "database": args.database,
        "user": args.user,
        "password": args.password if args.password is not None else os.getenv("TARGET_PASSWORD", ""),
        "ssl": args.ssl,
        "driver": args.driver,
    }

    try:
        profile_id = await seed_profile(values, dry_run=args.dry_run)
    except Exception as e:
        logger.error(f"No se pudo crear el perfil: {e}")
        sys.exit(1)
    finally:
        await close_db()

    if profile_id:
        print(profile_id)


if __name__ == "__main__":
    asyncio.run(main())
