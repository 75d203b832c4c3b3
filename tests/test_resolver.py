from __future__ import annotations

from collections.abc import Callable

import pytest

import objcgen


def test_lookup_suppresses_automatic_import() -> None:
    lookups = [objcgen.TypeLookup(name="Foo")]

    assert objcgen.is_import_required_for_type_with_name("Foo") is True
    assert objcgen.should_include_import_for_type(lookups, "Foo") is False


def test_lookup_for_other_name_does_not_suppress_import() -> None:
    lookups = [objcgen.TypeLookup(name="Bar")]

    assert objcgen.should_include_import_for_type(lookups, "Foo") is True


def test_should_include_import_rejects_import_free_types() -> None:
    assert objcgen.should_include_import_for_type([], "NSString") is False
    assert objcgen.should_include_import_for_type([], "BOOL") is False


def test_file_for_import_follows_convention_and_override() -> None:
    assert objcgen.file_for_import(None, "Bar") == "Bar.h"
    assert objcgen.file_for_import("Custom", "Bar") == "Custom.h"


def test_library_for_import_prefers_override() -> None:
    assert objcgen.library_for_import("MyLib", "Default") == "MyLib"
    assert objcgen.library_for_import(None, "Default") == "Default"
    assert objcgen.library_for_import(None, None) is None


def test_struct_requires_public_import() -> None:
    cg_rect = objcgen.ObjCType(name="CGRect", reference="CGRect")

    assert objcgen.requires_public_import_for_type("CGRect", cg_rect) is True


def test_forward_declarable_object_does_not_require_public_import() -> None:
    model = objcgen.ObjCType(name="MyModel", reference="MyModel *")

    assert objcgen.requires_public_import_for_type("MyModel", model) is False


def test_unknown_value_type_requires_public_import() -> None:
    status = objcgen.ObjCType(name="RMStatus", reference="RMStatus")

    assert objcgen.requires_public_import_for_type("RMStatus", status) is True


def test_import_free_type_never_requires_public_import() -> None:
    boolean = objcgen.ObjCType(name="BOOL", reference="BOOL")

    assert objcgen.requires_public_import_for_type("BOOL", boolean) is False


def test_attribute_forward_declaration_needs_required_import(
    make_attribute: Callable[..., objcgen.Attribute],
    object_pointer_attribute: objcgen.Attribute,
) -> None:
    foundation = make_attribute(type_name="NSString", reference="NSString *")
    struct = make_attribute(type_name="CGRect")

    assert objcgen.can_forward_declare_type_for_attribute(object_pointer_attribute)
    assert objcgen.can_forward_declare_type_for_attribute(foundation) is False
    assert objcgen.can_forward_declare_type_for_attribute(struct) is False


@pytest.mark.parametrize("protocol", [None, ""])
def test_no_protocol_yields_no_forward_protocol_declaration(
    make_attribute: Callable[..., objcgen.Attribute], protocol: str | None
) -> None:
    attribute = make_attribute(type_name="id", conforming_protocol=protocol)

    assert objcgen.should_forward_protocol_declare_attribute(attribute) is False
    assert objcgen.forward_protocol_declaration_for_attribute(attribute) is None


def test_protocol_yields_one_forward_protocol_declaration(
    make_attribute: Callable[..., objcgen.Attribute],
) -> None:
    attribute = make_attribute(
        type_name="id", reference="id<RMDelegate>", conforming_protocol="RMDelegate"
    )

    assert objcgen.should_forward_protocol_declare_attribute(attribute) is True
    assert objcgen.forward_protocol_declaration_for_attribute(
        attribute
    ) == objcgen.ForwardProtocolDeclaration("RMDelegate")


def test_import_for_type_lookup_uses_lookup_fields() -> None:
    lookup = objcgen.TypeLookup(name="RMUser", file="RMModels", library="RMKit")

    imp = objcgen.import_for_type_lookup("Default", True, lookup)

    assert imp == objcgen.Import(
        file="RMModels.h", is_public=True, requires_cplusplus=False, library="RMKit"
    )


def test_import_for_type_lookup_falls_back_to_convention_and_default_library() -> None:
    imp = objcgen.import_for_type_lookup(
        "Default", False, objcgen.TypeLookup(name="RMUser")
    )

    assert imp == objcgen.Import(file="RMUser.h", is_public=False, library="Default")


def test_import_for_attribute_uses_registry_for_system_struct(
    make_attribute: Callable[..., objcgen.Attribute],
) -> None:
    imp = objcgen.import_for_attribute("RMKit", False, make_attribute(type_name="CGRect"))

    assert imp == objcgen.Import(
        file="CGGeometry.h", is_public=True, library="CoreGraphics"
    )


def test_import_for_attribute_override_beats_registry(
    make_attribute: Callable[..., objcgen.Attribute],
) -> None:
    attribute = make_attribute(
        type_name="CGRect",
        file_type_is_defined_in="RMGeometry",
        library_type_is_defined_in="RMKit",
    )

    imp = objcgen.import_for_attribute(None, False, attribute)

    assert imp == objcgen.Import(file="RMGeometry.h", is_public=True, library="RMKit")


def test_import_for_attribute_object_pointer_is_private(
    object_pointer_attribute: objcgen.Attribute,
) -> None:
    imp = objcgen.import_for_attribute("RMKit", False, object_pointer_attribute)

    assert imp == objcgen.Import(file="RMUser.h", is_public=False, library="RMKit")


def test_import_for_attribute_honours_explicit_public_request(
    object_pointer_attribute: objcgen.Attribute,
) -> None:
    imp = objcgen.import_for_attribute(None, True, object_pointer_attribute)

    assert imp.is_public is True
    assert imp.library is None


def test_unique_imports_merges_visibility_in_first_seen_order() -> None:
    private_user = objcgen.Import(file="RMUser.h", is_public=False, library="RMKit")
    geometry = objcgen.Import(file="CGGeometry.h", is_public=True, library="CoreGraphics")
    public_user = objcgen.Import(file="RMUser.h", is_public=True, library="RMKit")

    result = objcgen.unique_imports([private_user, geometry, public_user, geometry])

    assert result == (public_user, geometry)


def test_partition_imports_splits_by_visibility() -> None:
    header = objcgen.Import(file="A.h", is_public=True)
    implementation = objcgen.Import(file="B.h", is_public=False)

    assert objcgen.partition_imports([implementation, header]) == (
        (header,),
        (implementation,),
    )


def test_imports_and_forward_declarations_for_object_type(
    make_attribute: Callable[..., objcgen.Attribute],
    make_object_type: Callable[..., objcgen.ObjectType],
) -> None:
    object_type = make_object_type(
        library_name="RMKit",
        attributes=(
            make_attribute(name="name", type_name="NSString", reference="NSString *"),
            make_attribute(name="frame", type_name="CGRect"),
            make_attribute(name="owner", type_name="RMUser", reference="RMUser *"),
            make_attribute(name="friend", type_name="RMUser", reference="RMUser *"),
            make_attribute(name="account", type_name="RMAccount", reference="RMAccount *"),
            make_attribute(
                name="delegate",
                type_name="id",
                reference="id<RMPersonDelegate>",
                conforming_protocol="RMPersonDelegate",
            ),
        ),
        type_lookups=(objcgen.TypeLookup(name="RMAccount", library="RMBilling"),),
    )

    imports = objcgen.imports_for_object_type(object_type)
    declarations = objcgen.forward_declarations_for_object_type(object_type)

    assert imports == (
        objcgen.Import(file="CGGeometry.h", is_public=True, library="CoreGraphics"),
        objcgen.Import(file="RMUser.h", is_public=False, library="RMKit"),
        objcgen.Import(file="RMAccount.h", is_public=True, library="RMBilling"),
    )
    assert declarations == (
        objcgen.ForwardClassDeclaration("RMUser"),
        objcgen.ForwardProtocolDeclaration("RMPersonDelegate"),
    )


def test_unnamed_attribute_type_contributes_nothing(
    make_attribute: Callable[..., objcgen.Attribute],
    make_object_type: Callable[..., objcgen.ObjectType],
) -> None:
    object_type = make_object_type(
        attributes=(make_attribute(name="broken", type_name="", reference="Foo *"),)
    )

    assert objcgen.forward_declarations_for_object_type(object_type) == ()
    assert objcgen.imports_for_object_type(object_type) == ()


def test_resolver_is_total_over_odd_names() -> None:
    for name in ["", "_", "123", "NS", "id<>"]:
        objcgen.is_import_required_for_type_with_name(name)
        objcgen.should_include_import_for_type([], name)
        objcgen.can_forward_declare_type(objcgen.ObjCType(name=name, reference=name))


def test_format_import_line() -> None:
    assert (
        objcgen.format_import_line(
            objcgen.Import(file="CGGeometry.h", is_public=True, library="CoreGraphics")
        )
        == "#import <CoreGraphics/CGGeometry.h>"
    )
    assert (
        objcgen.format_import_line(objcgen.Import(file="RMUser.h", is_public=False))
        == '#import "RMUser.h"'
    )


def test_format_forward_declaration() -> None:
    assert objcgen.format_forward_declaration(
        objcgen.ForwardClassDeclaration("RMUser")
    ) == "@class RMUser;"
    assert objcgen.format_forward_declaration(
        objcgen.ForwardProtocolDeclaration("RMDelegate")
    ) == "@protocol RMDelegate;"
