from __future__ import annotations


class BridgeError(RuntimeError):
    pass


class TransportTimeout(BridgeError):
    """A chat or backend call exceeded its deadline."""


class ConnectionLost(BridgeError):
    """The persistent socket dropped while a request was in flight."""


class RemoteRpcError(BridgeError):
    def __init__(self, remote_message: str, *, code: int | None = None) -> None:
        super().__init__(remote_message)
        self.remote_message = remote_message
        self.code = code


class BackendHttpError(BridgeError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SendFailed(BridgeError):
    pass


class EntityNotFound(BridgeError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Entity not found: {name}")
        self.name = name


class Unauthorized(BridgeError):
    pass


class UnsupportedOperation(BridgeError):
    def __init__(self, operation: str, transport: str) -> None:
        super().__init__(f"{operation} is not supported by the {transport} transport")
        self.operation = operation
        self.transport = transport
