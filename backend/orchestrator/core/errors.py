class OrchestratorError(RuntimeError):
    pass


class ConfigurationError(OrchestratorError):
    """Missing or malformed settings / connections file. Fatal at startup."""


class StateStoreError(OrchestratorError):
    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class StateCorruptedError(StateStoreError):
    """The persisted document exists but cannot be trusted; history must not be reset."""


class StatePersistenceError(StateStoreError):
    pass


class JobApiError(OrchestratorError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TriggerError(JobApiError):
    pass


class StatusQueryError(JobApiError):
    pass


class TableQueryError(OrchestratorError):
    def __init__(self, message: str, qualified_name: str):
        super().__init__(message)
        self.qualified_name = qualified_name
