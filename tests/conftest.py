import sys
from collections.abc import Callable
from pathlib import Path

import pytest

GENERATOR_DIR = Path(__file__).resolve().parent.parent
if str(GENERATOR_DIR) not in sys.path:
    sys.path.insert(0, str(GENERATOR_DIR))

import objcgen  # noqa: E402


@pytest.fixture
def make_attribute() -> Callable[..., objcgen.Attribute]:
    def _make_attribute(
        *,
        type_name: str,
        reference: str | None = None,
        name: str = "value",
        underlying_type: str | None = None,
        library_type_is_defined_in: str | None = None,
        file_type_is_defined_in: str | None = None,
        conforming_protocol: str | None = None,
    ) -> objcgen.Attribute:
        return objcgen.Attribute(
            name=name,
            type=objcgen.AttributeType(
                name=type_name,
                reference=reference if reference is not None else type_name,
                underlying_type=underlying_type,
                library_type_is_defined_in=library_type_is_defined_in,
                file_type_is_defined_in=file_type_is_defined_in,
                conforming_protocol=conforming_protocol,
            ),
        )

    return _make_attribute


@pytest.fixture
def make_object_type() -> Callable[..., objcgen.ObjectType]:
    def _make_object_type(
        *,
        type_name: str = "RMPerson",
        attributes: tuple[objcgen.Attribute, ...] = (),
        type_lookups: tuple[objcgen.TypeLookup, ...] = (),
        library_name: str | None = None,
        includes: tuple[str, ...] = (),
        excludes: tuple[str, ...] = (),
    ) -> objcgen.ObjectType:
        return objcgen.ObjectType(
            type_name=type_name,
            attributes=attributes,
            type_lookups=type_lookups,
            library_name=library_name,
            includes=includes,
            excludes=excludes,
        )

    return _make_object_type


@pytest.fixture
def object_pointer_attribute(
    make_attribute: Callable[..., objcgen.Attribute],
) -> objcgen.Attribute:
    return make_attribute(name="owner", type_name="RMUser", reference="RMUser *")
