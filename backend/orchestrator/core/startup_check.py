"""
Validaciones de configuracion en arranque.
Si alguna falla se lanza ConfigurationError y el worker no inicia.
"""
from orchestrator.core.config import settings
from orchestrator.core.errors import ConfigurationError

# Valores considerados "por defecto" inseguros en produccion
INSECURE_DEFAULTS = {
    'SOURCE_DB_PASSWORD': 'change_me',
}


def validate_startup_config(cfg=None) -> None:
    """Comprueba host de la base origen, URL de la API de jobs y, en prod, la password."""
    cfg = cfg or settings
    errors: list[str] = []

    has_url = bool((cfg.source_db_url or '').strip())
    if not has_url and not (cfg.source_db_host or '').strip():
        errors.append('SOURCE_DB_HOST debe estar definido (o SOURCE_DB_URL).')

    api_url = (cfg.airbyte_api_url or '').strip().lower()
    if not api_url.startswith(('http://', 'https://')):
        errors.append(f'AIRBYTE_API_URL invalida: {cfg.airbyte_api_url!r} (se espera http:// o https://).')

    if (cfg.app_env or 'dev').strip().lower() == 'prod' and not has_url:
        password = (cfg.source_db_password or '').strip()
        if not password or INSECURE_DEFAULTS['SOURCE_DB_PASSWORD'] in password:
            errors.append('SOURCE_DB_PASSWORD debe estar definido y no usar valor por defecto en produccion.')

    if errors:
        raise ConfigurationError(
            'Configuracion invalida:\n  - ' + '\n  - '.join(errors)
        )
