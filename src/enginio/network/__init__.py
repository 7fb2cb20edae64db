"""Request building, transport binding and reply routing."""

from .dispatcher import OperationDispatcher
from .reply import EnginioReply, ReplyState
from .request_builder import Area, OperationKind, RequestBuilder, RequestDescriptor
from .serializer import JsonSerializer, Serializer
from .transport import QtNetworkTransport, Transport, TransportOutcome

__all__ = [
    "Area",
    "EnginioReply",
    "JsonSerializer",
    "OperationDispatcher",
    "OperationKind",
    "QtNetworkTransport",
    "ReplyState",
    "RequestBuilder",
    "RequestDescriptor",
    "Serializer",
    "Transport",
    "TransportOutcome",
]
