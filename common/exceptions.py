class CommonError(Exception):
    """Base exception for common app errors"""

    default_message = ""

    def __init__(self, message: str | None = None):
        if message is None:
            message = self.default_message
        super().__init__(message)


class ServiceNotInjectedError(CommonError):
    def __init__(self, service_name: str):
        super().__init__(f"{service_name} wasn't injected. Please add it to the container.")
