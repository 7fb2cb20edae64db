"""Result objects, the factory chain and the Qt list model."""

from .objects import EnginioObject, JsonObject, JsonObjectFactory, ObjectFactory, ObjectFactoryRegistry
from .roles import Roles
from .list_model import EnginioModel

__all__ = [
    "EnginioModel",
    "EnginioObject",
    "JsonObject",
    "JsonObjectFactory",
    "ObjectFactory",
    "ObjectFactoryRegistry",
    "Roles",
]
