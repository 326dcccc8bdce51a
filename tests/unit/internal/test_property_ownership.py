from __future__ import annotations

from typing import Annotated, Any, ClassVar

from annowire._internal.properties import (
    MISSING,
    PropertyIntrospector,
    PropertyOwnershipTable,
    own_properties,
    read_instance_value,
    type_chain,
)
from annowire.markers import Inject, Value


class Base:
    region: Annotated[str, Value("app.region", default="eu")]
    retries: Annotated[int, Value("app.retries")]
    registry: ClassVar[dict[str, int]] = {}


class Child(Base):
    client: Annotated[Any, Inject(name="http.client", lazy=True)]
    retries: Annotated[int | None, Value("child.retries", default=3)]
    note: str = "class default"


class GrandChild(Child):
    pass


class Slotted:
    __slots__ = ("token",)

    token: str


def test_own_properties_skip_inherited_and_class_vars() -> None:
    names = [declared.name for declared in own_properties(Child)]

    assert names == ["client", "retries", "note"]
    assert [declared.name for declared in own_properties(Base)] == ["region", "retries"]
    assert own_properties(GrandChild) == ()


def test_declared_property_splits_markers_from_the_type() -> None:
    retries = next(declared for declared in own_properties(Child) if declared.name == "retries")

    assert retries.owner is Child
    assert retries.value_type is int
    assert retries.allows_none
    assert retries.is_scalar
    assert retries.marker(Value) == Value("child.retries", default=3)
    assert retries.marker(Inject) is None


def test_untyped_property_allows_none() -> None:
    client = own_properties(Child)[0]

    assert not client.is_typed
    assert client.allows_none
    assert not client.has_zero


def test_type_chain_is_root_first_without_object() -> None:
    assert type_chain(GrandChild) == (Base, Child, GrandChild)


def test_table_orders_ancestors_first_and_keeps_most_derived_declaration() -> None:
    table = PropertyOwnershipTable(GrandChild)

    assert [(declared.owner, declared.name) for declared in table] == [
        (Base, "region"),
        (Child, "client"),
        (Child, "retries"),
        (Child, "note"),
    ]
    assert len(table) == 4


def test_table_bound_yields_only_marked_properties() -> None:
    bound = [(declared.name, marker.key) for declared, marker in PropertyOwnershipTable(Child).bound(Value)]

    assert bound == [("region", "app.region"), ("retries", "child.retries")]


def test_introspector_memoizes_tables() -> None:
    introspector = PropertyIntrospector()

    first = introspector.table(Child)

    assert introspector.table(Child) is first
    introspector.clear()
    assert introspector.table(Child) is not first


def test_class_defaults_are_not_instance_state() -> None:
    child = Child()

    assert read_instance_value(child, "note") is MISSING
    child.note = "set"
    assert read_instance_value(child, "note") == "set"


def test_slotted_attributes_are_read_through_their_descriptor() -> None:
    slotted = Slotted()

    assert read_instance_value(slotted, "token") is MISSING
    slotted.token = "abc"
    assert read_instance_value(slotted, "token") == "abc"
