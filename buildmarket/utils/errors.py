"""
Domain error taxonomy

Services raise these; main.py maps them onto HTTP responses.
"""


class BuildMarketError(Exception):
    """Base class for structured failures returned to the caller"""

    kind = "error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BuildMarketError):
    """Missing or malformed input field"""

    kind = "validation_error"
    status_code = 400

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field


class NotFoundError(BuildMarketError):
    """Referenced project or milestone does not exist"""

    kind = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class GenerationError(BuildMarketError):
    """Timeline generator returned nothing usable or timed out"""

    kind = "generation_error"
    status_code = 502

    def __init__(self, reason: str):
        super().__init__("Timeline generation failed. Please try again.")
        self.reason = reason


class StorageError(BuildMarketError):
    """Underlying persistence failure"""

    kind = "storage_error"
    status_code = 500

    def __init__(self, reason: str):
        super().__init__("A storage error occurred. Please try again.")
        self.reason = reason
