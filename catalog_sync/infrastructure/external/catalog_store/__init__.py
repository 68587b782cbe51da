"""
Motor de sincronizacion hacia el catalogo destino (esquema tipo PrestaShop).

Piezas:
- connection: perfiles de conexion y una conexion por pasada
- schema_probe: existencia de tablas/columnas (memo por pasada)
- catalog_reader: lectura de entradas {id, label} para matching difuso
- plan_executor: aplica (apply) o devuelve (preview) las filas del plan
- sync_service: orquesta una pasada completa para un registro fuente

Objetivos de diseño:
- Idempotencia: cada fila es un upsert independiente por clave.
- Tolerancia parcial: un fallo de fila se cuenta, no aborta la pasada.
- Esquema descubierto en runtime: columnas inexistentes se omiten.
"""
