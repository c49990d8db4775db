from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    app_name: str = 'sync-orchestrator'
    app_env: str = Field(default='dev', alias='APP_ENV')
    log_level: str = Field(default='info', alias='LOG_LEVEL')

    source_db_url: str | None = Field(default=None, alias='SOURCE_DB_URL')
    source_db_host: str | None = Field(default=None, alias='SOURCE_DB_HOST')
    source_db_port: int = Field(default=5432, alias='SOURCE_DB_PORT')
    source_db_user: str | None = Field(default=None, alias='SOURCE_DB_USER')
    source_db_password: str | None = Field(default=None, alias='SOURCE_DB_PASSWORD')
    source_db_name: str | None = Field(default=None, alias='SOURCE_DB_NAME')
    source_db_pool_size: int = Field(default=5, alias='SOURCE_DB_POOL_SIZE')
    source_db_pool_timeout: int = Field(default=30, alias='SOURCE_DB_POOL_TIMEOUT')

    airbyte_api_url: str = Field(default='http://localhost:8000/api/v1', alias='AIRBYTE_API_URL')
    job_api_timeout_seconds: float = Field(default=30.0, alias='JOB_API_TIMEOUT_SECONDS')

    cron_schedule: str = Field(default='0 * * * *', alias='ORCHESTRATOR_CRON_SCHEDULE')
    default_updated_at_column: str = Field(default='updated_at', alias='DEFAULT_UPDATED_AT_COLUMN')
    default_schema_name: str = Field(default='public', alias='DEFAULT_SCHEMA_NAME')
    state_dir: str = Field(default='./state', alias='ORCHESTRATOR_STATE_DIR')
    monitored_tables_config: str = Field(default='./monitored_tables_config.json', alias='MONITORED_TABLES_CONFIG')

    @property
    def state_path(self) -> Path:
        return Path(self.state_dir).resolve()

    @property
    def last_sync_timestamps_file(self) -> Path:
        return self.state_path / 'last_sync_timestamps.json'

    @property
    def active_jobs_file(self) -> Path:
        return self.state_path / 'active_jobs.json'

    @property
    def monitored_tables_config_path(self) -> Path:
        return Path(self.monitored_tables_config).resolve()

    def source_database_url(self) -> str | URL:
        """SOURCE_DB_URL gana sobre los parametros sueltos (SOURCE_DB_HOST, ...)."""
        if self.source_db_url:
            return self.source_db_url
        return URL.create(
            'postgresql+psycopg2',
            username=self.source_db_user or None,
            password=self.source_db_password or None,
            host=self.source_db_host or None,
            port=self.source_db_port,
            database=self.source_db_name or None,
        )


settings = Settings()
