"""Tests for the object factory chain."""

from enginio.models.objects import EnginioObject, JsonObject, ObjectFactoryRegistry


class Book(EnginioObject):
    pass


class BookFactory:
    def __init__(self, object_type="objects.Book", cls=Book):
        self.object_type = object_type
        self.cls = cls
        self.calls = []

    def create_object_for_type(self, object_type, object_id=None):
        self.calls.append((object_type, object_id))
        if object_type == self.object_type:
            return self.cls(object_type, object_id)
        return None


class Novel(Book):
    pass


def test_empty_registry_falls_back_to_json_object():
    registry = ObjectFactoryRegistry()

    obj = registry.create_for_type("objects.Anything", "42")

    assert isinstance(obj, JsonObject)
    assert obj.object_type == "objects.Anything"
    assert obj.id == "42"


def test_registered_factory_claims_its_type():
    registry = ObjectFactoryRegistry()
    registry.register(BookFactory())

    assert isinstance(registry.create_for_type("objects.Book"), Book)
    assert isinstance(registry.create_for_type("objects.Note"), JsonObject)


def test_most_recent_registration_wins():
    registry = ObjectFactoryRegistry()
    registry.register(BookFactory())
    registry.register(BookFactory(cls=Novel))

    assert type(registry.create_for_type("objects.Book")) is Novel


def test_ids_ascend_and_unregister_keeps_order():
    registry = ObjectFactoryRegistry()
    first = BookFactory(cls=Book)
    second = BookFactory(cls=Novel)
    third = BookFactory(object_type="objects.Note")
    ids = [registry.register(f) for f in (first, second, third)]

    assert ids == sorted(ids)
    assert len(set(ids)) == 3

    registry.unregister(ids[1])
    assert list(registry.factories()) == [third, first]
    assert type(registry.create_for_type("objects.Book")) is Book


def test_unregister_unknown_id_is_ignored():
    registry = ObjectFactoryRegistry()
    factory_id = registry.register(BookFactory())

    registry.unregister(factory_id + 1000)

    assert len(registry) == 1


def test_create_from_json_populates_fields():
    registry = ObjectFactoryRegistry()
    registry.register(BookFactory())

    obj = registry.create_from_json({"objectType": "objects.Book", "id": "b1", "title": "X"})

    assert isinstance(obj, Book)
    assert obj.id == "b1"
    assert obj.value("title") == "X"
    assert obj.to_json() == {"objectType": "objects.Book", "id": "b1", "title": "X"}


def test_to_json_returns_a_copy():
    obj = JsonObject("objects.Note")
    obj.set_value("tags", ["a"])

    exported = obj.to_json()
    exported["tags"].append("b")

    assert obj.value("tags") == ["a"]
