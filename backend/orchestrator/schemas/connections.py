from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class MonitoredTable(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    schema_name: str = Field(min_length=1, alias='schemaName')
    table_name: str = Field(min_length=1, alias='tableName')
    updated_at_column: str = Field(min_length=1, alias='updatedAtColumn')

    @field_validator('schema_name', 'table_name', 'updated_at_column')
    @classmethod
    def strip_identifier(cls, value: str) -> str:
        text = str(value or '').strip()
        if not text:
            raise ValueError('identificador vacio')
        return text

    @property
    def qualified_name(self) -> str:
        return f'{self.schema_name}.{self.table_name}'


class ConnectionConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    connection_id: str = Field(min_length=1, alias='connectionId')
    description: str = ''
    monitored_tables: tuple[MonitoredTable, ...] = Field(alias='monitoredTables')

    @field_validator('connection_id')
    @classmethod
    def validate_connection_id(cls, value: str) -> str:
        text = str(value or '').strip()
        if not text:
            raise ValueError('connectionId vacio')
        return text

    @model_validator(mode='before')
    @classmethod
    def default_description(cls, data):
        if isinstance(data, dict) and not str(data.get('description') or '').strip():
            data = dict(data)
            data['description'] = str(data.get('connectionId') or data.get('connection_id') or '').strip()
        return data
