"""
Error taxonomy for strategy battle sessions.
"""


class ConfigurationError(ValueError):
    """Session configuration is unusable (fatal before start)"""
    pass


class LLMCallError(RuntimeError):
    """A completion request failed (transport, HTTP status or payload)"""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class DirectorCallError(RuntimeError):
    """Every configured director failed to answer"""
    pass


class AgentNotFound(LookupError):
    """No agent with the given id"""
    pass
