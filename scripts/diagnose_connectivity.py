#!/usr/bin/env python3
"""
Diagnóstico de conectividad del orquestador.
Comprueba: API de jobs reachable, base origen (SELECT 1) y monitored_tables_config.json.

Uso:
  python scripts/diagnose_connectivity.py
  python scripts/diagnose_connectivity.py --api-url http://localhost:8000/api/v1 --json
"""
from __future__ import annotations

import argparse
import json
import os
import sys

import httpx
from dotenv import load_dotenv
from sqlalchemy import text

_PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
_BACKEND = os.path.join(_PROJECT_ROOT, 'backend')
if _BACKEND not in sys.path:
    sys.path.insert(0, _BACKEND)

from orchestrator.core.config import Settings  # noqa: E402
from orchestrator.core.errors import ConfigurationError  # noqa: E402
from orchestrator.db.session import build_source_engine  # noqa: E402
from orchestrator.repositories.connections_config import load_connections_from_settings  # noqa: E402


def check_api(base_url: str, client: httpx.Client | None = None) -> dict:
    """Verifica que la API de jobs responda en {base}/health."""
    result = {'ok': False, 'url': f'{base_url.rstrip("/")}/health', 'status_code': None, 'error': None}
    owned = client is None
    client = client or httpx.Client(timeout=10)
    try:
        res = client.get(result['url'], headers={'Accept': 'application/json'})
        result['status_code'] = res.status_code
        result['ok'] = res.is_success
        if not res.is_success:
            result['error'] = f'HTTP {res.status_code}'
    except httpx.HTTPError as e:
        result['error'] = str(e) or e.__class__.__name__
    finally:
        if owned:
            client.close()
    return result


def check_source_db(cfg: Settings) -> dict:
    result = {'ok': False, 'error': None}
    engine = None
    try:
        engine = build_source_engine(cfg)
        with engine.connect() as conn:
            conn.execute(text('SELECT 1')).scalar()
        result['ok'] = True
    except Exception as e:
        result['error'] = str(e)
    finally:
        if engine is not None:
            engine.dispose()
    return result


def check_connections_config(cfg: Settings) -> dict:
    result = {'ok': False, 'path': str(cfg.monitored_tables_config_path), 'connections': 0, 'tables': 0, 'error': None}
    try:
        connections = load_connections_from_settings(cfg)
        result['connections'] = len(connections)
        result['tables'] = sum(len(c.monitored_tables) for c in connections)
        result['ok'] = True
    except ConfigurationError as e:
        result['error'] = str(e)
    return result


def main(argv: list[str] | None = None, cfg: Settings | None = None) -> int:
    load_dotenv()
    cfg = cfg or Settings()
    parser = argparse.ArgumentParser(description='Diagnóstico de conectividad del orquestador')
    parser.add_argument('--api-url', default=cfg.airbyte_api_url, help='URL base de la API de jobs')
    parser.add_argument('--json', action='store_true', help='Salida JSON')
    args = parser.parse_args(argv)

    api_result = check_api(args.api_url)
    db_result = check_source_db(cfg)
    config_result = check_connections_config(cfg)

    if args.json:
        out = {
            'api': api_result,
            'source_db': db_result,
            'connections_config': config_result,
            'env_check': {
                'SOURCE_DB_HOST': bool(cfg.source_db_host),
                'SOURCE_DB_USER': bool(cfg.source_db_user),
                'SOURCE_DB_NAME': bool(cfg.source_db_name),
                'AIRBYTE_API_URL': cfg.airbyte_api_url,
            },
        }
        print(json.dumps(out, ensure_ascii=False, indent=2))
    else:
        print('=== Diagnóstico de conectividad del orquestador ===\n')
        print('1. API de jobs:')
        if api_result['ok']:
            print(f'   OK - {api_result["url"]}')
        else:
            print(f'   FALLO - {api_result["url"]}')
            print(f'   Error: {api_result.get("error") or "?"}')
            print('   Sugerencia: Verifique AIRBYTE_API_URL y que el servidor de jobs esté corriendo.')

        print('\n2. Base origen:')
        if db_result['ok']:
            print('   OK - Conexión verificada')
        else:
            print('   FALLO')
            print(f'   Error: {db_result.get("error")}')

        print('\n3. monitored_tables_config.json:')
        if config_result['ok']:
            print(f'   OK - {config_result["connections"]} conexiones, {config_result["tables"]} tablas ({config_result["path"]})')
        else:
            print(f'   FALLO - {config_result["path"]}')
            print(f'   Error: {config_result.get("error")}')

        print('\n4. Variables .env:')
        for k, v in [('SOURCE_DB_HOST', cfg.source_db_host), ('SOURCE_DB_USER', cfg.source_db_user), ('SOURCE_DB_NAME', cfg.source_db_name)]:
            status = 'OK' if v else 'FALTA'
            print(f'   {k}={v or "(vacío)"} [{status}]')

    all_ok = api_result['ok'] and db_result['ok'] and config_result['ok']
    return 0 if all_ok else 1


if __name__ == '__main__':
    sys.exit(main())
