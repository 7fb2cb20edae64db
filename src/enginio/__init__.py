"""Qt client for the Enginio object-store backend."""

from .client import EnginioClient
from .errors import BackendError, EnginioError, LocalValidationError, PayloadError, TransportError
from .identity import EnginioIdentity, PasswordIdentity
from .models import EnginioModel, EnginioObject, JsonObject, ObjectFactory, ObjectFactoryRegistry, Roles
from .network import (
    Area,
    EnginioReply,
    JsonSerializer,
    OperationDispatcher,
    OperationKind,
    QtNetworkTransport,
    ReplyState,
    RequestBuilder,
    RequestDescriptor,
    Transport,
    TransportOutcome,
)
from .session import Session

__version__ = "0.3.0"

__all__ = [
    "Area",
    "BackendError",
    "EnginioClient",
    "EnginioError",
    "EnginioIdentity",
    "EnginioModel",
    "EnginioObject",
    "EnginioReply",
    "JsonObject",
    "JsonSerializer",
    "LocalValidationError",
    "ObjectFactory",
    "ObjectFactoryRegistry",
    "OperationDispatcher",
    "OperationKind",
    "PasswordIdentity",
    "PayloadError",
    "QtNetworkTransport",
    "ReplyState",
    "RequestBuilder",
    "RequestDescriptor",
    "Roles",
    "Session",
    "Transport",
    "TransportError",
    "TransportOutcome",
]
