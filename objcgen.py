"""Import and declaration resolution for the Objective-C code generator.

Classifies type references used by generated Objective-C files: whether a
header import is needed, whether a forward declaration is enough, which
header and library an import belongs to, and how an ordered chain of plugins
contributes pieces of one generated file.

Usage:
    objcgen --type CGRect --type "MyModel *" --library MyLib
    objcgen --list-known-types
"""

import argparse
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, replace
from enum import Enum
from types import MappingProxyType
from typing import TypeVar, Union

TypeName = str


# ===--- CLI config contracts ---=== #


@dataclass(frozen=True)
class ResolveConfig:
    type_names: tuple[str, ...]
    type_lookups: tuple["TypeLookup", ...]
    default_library: str | None


@dataclass(frozen=True)
class DiscoveryConfig:
    command: str


VALID_ERROR_CODES = {
    "MISSING_TYPE",
    "INVALID_TYPE_NAME",
    "INVALID_LOOKUP",
    "CONFLICT_RESOLVE_DISCOVERY",
}
_TYPE_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\s*\*)?$")
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class ConfigError(Exception):
    def __init__(self, code: str, message: str, suggestion: str | None = None):
        if code not in VALID_ERROR_CODES:
            raise ValueError(f"Unknown config error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion


def validate_type_argument(raw: str) -> str:
    text = raw.strip()
    name, separator, reference = text.partition("=")
    if separator:
        if _IDENTIFIER_RE.match(name.strip()) and reference.strip():
            return text
    elif (
        _TYPE_NAME_RE.match(text)
        or _PROTOCOL_ID_RE.match(text)
        or is_object_pointer_reference(strip_pointer_qualifiers(text))
    ):
        return text
    raise ConfigError(
        "INVALID_TYPE_NAME",
        f"Invalid type reference: {raw!r}",
        'Pass a type name (CGRect), an object pointer ("MyModel * _Nullable"), '
        '"id<Proto>", or NAME=REFERENCE ("RMCompletion=void (^)(BOOL)").',
    )


def parse_type_lookup(raw: str) -> "TypeLookup":
    parts = raw.split(":")
    if len(parts) > 3 or not _IDENTIFIER_RE.match(parts[0]):
        raise ConfigError(
            "INVALID_LOOKUP",
            f"Invalid type lookup: {raw!r}",
            "Use NAME, NAME:FILE or NAME:FILE:LIBRARY (FILE may be empty).",
        )
    file = parts[1] if len(parts) > 1 and parts[1] else None
    library = parts[2] if len(parts) > 2 and parts[2] else None
    return TypeLookup(name=parts[0], file=file, library=library)


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Resolve Objective-C imports and forward declarations"
    )

    parser.add_argument(
        "--type",
        dest="types",
        action="append",
        default=None,
        help='NAME, "Name *" (generics, nullability, __kindof allowed), '
        '"id<Proto>" or NAME=REFERENCE for blocks and function pointers',
    )
    parser.add_argument("--lookup", dest="lookups", action="append", default=None)
    parser.add_argument("--library", type=str, default=None)

    parser.add_argument("--list-known-types", action="store_true", default=False)

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_argument_parser()
    return parser.parse_args(argv)


def validate_config(args: argparse.Namespace) -> ResolveConfig | DiscoveryConfig:
    raw_types = tuple(args.types or ())
    raw_lookups = tuple(args.lookups or ())
    has_resolve_input = bool(raw_types or raw_lookups or args.library)

    if has_resolve_input and args.list_known_types:
        raise ConfigError(
            "CONFLICT_RESOLVE_DISCOVERY",
            "Resolve flags cannot be combined with --list-known-types.",
            "Choose either type resolution or the discovery command.",
        )

    if args.list_known_types:
        return DiscoveryConfig(command="list-known-types")

    if not raw_types:
        raise ConfigError(
            "MISSING_TYPE",
            "Resolve mode requires at least one --type.",
            'Pass --type CGRect or --type "MyModel *".',
        )

    return ResolveConfig(
        type_names=tuple(validate_type_argument(name) for name in raw_types),
        type_lookups=tuple(parse_type_lookup(raw) for raw in raw_lookups),
        default_library=args.library,
    )


def build_config(argv: list[str] | None = None) -> ResolveConfig | DiscoveryConfig:
    return validate_config(parse_args(argv))


# ===--- Data classes ---=== #


@dataclass(frozen=True)
class Import:
    """One `#import` the generated file needs.

    Attributes:
        file: Header filename including the `.h` extension. Must be non-empty.
        is_public: True places the import in the generated header, False in
            the implementation file.
        requires_cplusplus: True when the header can only be imported from
            Objective-C++ translation units.
        library: Framework/library the header lives in, or None for a
            project-local header.
    """

    file: str
    is_public: bool
    requires_cplusplus: bool = False
    library: str | None = None

    def __post_init__(self):
        if not self.file:
            raise ValueError("Import file must not be empty")


@dataclass(frozen=True)
class ForwardClassDeclaration:
    name: str

    def __post_init__(self):
        if not self.name:
            raise ValueError("Forward class declaration name must not be empty")


@dataclass(frozen=True)
class ForwardProtocolDeclaration:
    name: str

    def __post_init__(self):
        if not self.name:
            raise ValueError("Forward protocol declaration name must not be empty")


ForwardDeclaration = Union[ForwardClassDeclaration, ForwardProtocolDeclaration]


@dataclass(frozen=True)
class TypeLookup:
    """Caller-supplied override for where a named type is defined.

    A lookup for a name takes that name out of automatic import resolution;
    the import is built from the lookup itself by import_for_type_lookup.
    """

    name: str
    file: str | None = None
    library: str | None = None


@dataclass(frozen=True)
class ObjCType:
    name: str
    reference: str


@dataclass(frozen=True)
class AttributeType:
    """Type of one attribute as written in the object specification.

    Attributes:
        name: Type name, e.g. "NSString", "CGRect", "MyModel".
        reference: Type as written in declarations, e.g. "NSString *".
        underlying_type: Type the attribute is really stored as, when it
            differs from name (enums backed by NSUInteger, "NSObject" for
            custom classes declared as id-like objects).
        library_type_is_defined_in: Per-occurrence library override.
        file_type_is_defined_in: Per-occurrence header override, without ".h".
        conforming_protocol: Protocol the value conforms to, e.g. for
            `id<MyDelegate>`.
    """

    name: str
    reference: str
    underlying_type: str | None = None
    library_type_is_defined_in: str | None = None
    file_type_is_defined_in: str | None = None
    conforming_protocol: str | None = None


class ClassNullability(Enum):
    DEFAULT = "default"
    ASSUME_NONNULL = "assume_nonnull"


class FileType(Enum):
    OBJECTIVE_C = "objc"
    OBJECTIVE_CPP = "objc++"


@dataclass(frozen=True)
class Attribute:
    name: str
    type: AttributeType
    comments: tuple[str, ...] = ()
    nullability: str = "unspecified"


@dataclass(frozen=True)
class ObjectType:
    type_name: str
    attributes: tuple[Attribute, ...] = ()
    type_lookups: tuple[TypeLookup, ...] = ()
    library_name: str | None = None
    comments: tuple[str, ...] = ()
    includes: tuple[str, ...] = ()
    excludes: tuple[str, ...] = ()


@dataclass(frozen=True)
class AlgebraicSubtype:
    name: str
    attributes: tuple[Attribute, ...] = ()


@dataclass(frozen=True)
class AlgebraicType:
    name: str
    subtypes: tuple[AlgebraicSubtype, ...] = ()
    type_lookups: tuple[TypeLookup, ...] = ()
    library_name: str | None = None
    comments: tuple[str, ...] = ()
    includes: tuple[str, ...] = ()
    excludes: tuple[str, ...] = ()


TypeSpec = Union[ObjectType, AlgebraicType]


def spec_name(spec: TypeSpec) -> str:
    if isinstance(spec, AlgebraicType):
        return spec.name
    return spec.type_name


def attributes_of_spec(spec: TypeSpec) -> tuple[Attribute, ...]:
    """Attributes of an object type, or of every subtype of an algebraic type."""
    if isinstance(spec, AlgebraicType):
        return tuple(
            attribute for subtype in spec.subtypes for attribute in subtype.attributes
        )
    return spec.attributes


# ===--- Generated content ---=== #


@dataclass(frozen=True)
class Comment:
    content: str


@dataclass(frozen=True)
class KeywordArgument:
    name: str
    type: ObjCType
    modifiers: tuple[str, ...] = ()


@dataclass(frozen=True)
class Keyword:
    name: str
    argument: KeywordArgument | None = None


@dataclass(frozen=True)
class ReturnType:
    type: ObjCType | None
    modifiers: tuple[str, ...] = ()


@dataclass(frozen=True)
class Method:
    keywords: tuple[Keyword, ...]
    return_type: ReturnType
    belongs_to_protocol: str | None = None
    code: tuple[str, ...] = ()
    comments: tuple[Comment, ...] = ()
    compiler_attributes: tuple[str, ...] = ()
    preprocessors: tuple[str, ...] = ()


@dataclass(frozen=True)
class Property:
    name: str
    type: ObjCType
    modifiers: tuple[str, ...] = ()
    comments: tuple[Comment, ...] = ()


@dataclass(frozen=True)
class Function:
    name: str
    return_type: ReturnType
    parameters: tuple[KeywordArgument, ...] = ()
    code: tuple[str, ...] = ()
    is_public: bool = True
    comments: tuple[Comment, ...] = ()


@dataclass(frozen=True)
class Macro:
    name: str
    parameters: tuple[str, ...] = ()
    code: str = ""


@dataclass(frozen=True)
class Constant:
    name: str
    type: ObjCType
    value: str
    comments: tuple[Comment, ...] = ()


@dataclass(frozen=True)
class InstanceVariable:
    name: str
    type: ObjCType
    access: str = "private"


@dataclass(frozen=True)
class Enumeration:
    name: str
    values: tuple[str, ...]
    underlying_type: str = "NSUInteger"
    comments: tuple[Comment, ...] = ()


@dataclass(frozen=True)
class BlockType:
    name: str
    parameters: tuple[KeywordArgument, ...] = ()
    return_type: ReturnType | None = None
    is_public: bool = True


@dataclass(frozen=True)
class Protocol:
    name: str


@dataclass(frozen=True)
class ValidationError:
    """A plugin's structured complaint about a type specification.

    Not an exception: plugins return these from validation_errors and the
    host aggregates them. Any aggregate error blocks file emission.
    """

    reason: str


@dataclass(frozen=True)
class ObjCClass:
    name: str
    base_class_name: str = "NSObject"
    class_methods: tuple[Method, ...] = ()
    instance_methods: tuple[Method, ...] = ()
    properties: tuple[Property, ...] = ()
    instance_variables: tuple[InstanceVariable, ...] = ()
    implemented_protocols: tuple[Protocol, ...] = ()
    nullability: ClassNullability = ClassNullability.DEFAULT
    subclassing_restricted: bool = False


@dataclass(frozen=True)
class CodeFile:
    """Assembled model of one generated Objective-C file pair (.h/.m).

    Produced by build_file from the aggregated plugin hook outputs and handed
    to the external emitter. Imports are partitioned by is_public at emission
    time (see partition_imports).

    Attributes:
        name: Generated type name; also the base filename.
        type: Language flavour of the implementation file.
        comments: Header comments, in plugin order.
        imports: De-duplicated imports, in first-contributed order.
        forward_declarations: De-duplicated forward declarations, in
            first-contributed order.
        classes: The generated class (one per file).
    """

    name: str
    type: FileType = FileType.OBJECTIVE_C
    comments: tuple[Comment, ...] = ()
    imports: tuple[Import, ...] = ()
    forward_declarations: tuple[ForwardDeclaration, ...] = ()
    enumerations: tuple[Enumeration, ...] = ()
    block_types: tuple[BlockType, ...] = ()
    static_constants: tuple[Constant, ...] = ()
    functions: tuple[Function, ...] = ()
    macros: tuple[Macro, ...] = ()
    classes: tuple[ObjCClass, ...] = ()


@dataclass(frozen=True)
class FileRequest:
    name: str
    file: CodeFile
    log_entries: tuple[str, ...] = ()


# ===--- System type registry ---=== #


def _system_import(file: str, library: str) -> Import:
    return Import(file=file, is_public=True, requires_cplusplus=False, library=library)


KNOWN_SYSTEM_TYPE_IMPORTS: Mapping[TypeName, Import | None] = MappingProxyType(
    {
        "BOOL": None,
        "double": None,
        "float": None,
        "id": None,
        "CGFloat": _system_import("CGBase.h", "CoreGraphics"),
        "CGPoint": _system_import("CGGeometry.h", "CoreGraphics"),
        "CGRect": _system_import("CGGeometry.h", "CoreGraphics"),
        "CGSize": _system_import("CGGeometry.h", "CoreGraphics"),
        "int32_t": None,
        "int64_t": None,
        "SEL": None,
        "UIEdgeInsets": _system_import("UIGeometry.h", "UIKit"),
        "uint64_t": None,
        "uint32_t": None,
        "uintptr_t": None,
        "Class": None,
        "dispatch_block_t": None,
    }
)
"""Built-in exceptions to the `<TypeName>.h` naming convention.

A None value marks a primitive that needs no import. Names absent from the
table fall through to the general rules."""

FOUNDATION_PREFIX: str = "NS"


def is_known_system_type(type_name: TypeName) -> bool:
    return type_name in KNOWN_SYSTEM_TYPE_IMPORTS


def is_foundation_type(type_name: TypeName) -> bool:
    return type_name.startswith(FOUNDATION_PREFIX)


# ===--- Import necessity ---=== #


def is_import_required_for_type_with_name(type_name: TypeName) -> bool:
    """Return False for Foundation types and registered zero-import primitives.

    The Foundation prefix is checked before the registry, so a name that is
    both NS-prefixed and registered never requires an import.
    """
    if is_foundation_type(type_name):
        return False
    if is_known_system_type(type_name):
        return KNOWN_SYSTEM_TYPE_IMPORTS[type_name] is not None
    return True


# ===--- Forward declarability ---=== #


class TypeCategory(Enum):
    OBJECT = "object"
    ID = "id"
    PROTOCOL_ID = "id<protocol>"
    BOOL = "BOOL"
    NS_INTEGER = "NSInteger"
    NS_UINTEGER = "NSUInteger"
    DOUBLE = "double"
    FLOAT = "float"
    CG_FLOAT = "CGFloat"
    NS_TIME_INTERVAL = "NSTimeInterval"
    INT32 = "int32_t"
    INT64 = "int64_t"
    UINT32 = "uint32_t"
    UINT64 = "uint64_t"
    UINTPTR = "uintptr_t"
    SEL = "SEL"
    CLASS = "Class"
    DISPATCH_BLOCK = "dispatch_block_t"
    FUNCTION_POINTER = "function pointer"
    NS_RANGE = "NSRange"
    CG_RECT = "CGRect"
    CG_POINT = "CGPoint"
    CG_SIZE = "CGSize"
    UI_EDGE_INSETS = "UIEdgeInsets"
    UNMATCHED = "unmatched"


_CATEGORY_BY_TYPE_NAME: Mapping[TypeName, TypeCategory] = MappingProxyType(
    {
        "NSObject": TypeCategory.OBJECT,
        "id": TypeCategory.ID,
        "BOOL": TypeCategory.BOOL,
        "NSInteger": TypeCategory.NS_INTEGER,
        "NSUInteger": TypeCategory.NS_UINTEGER,
        "double": TypeCategory.DOUBLE,
        "float": TypeCategory.FLOAT,
        "CGFloat": TypeCategory.CG_FLOAT,
        "NSTimeInterval": TypeCategory.NS_TIME_INTERVAL,
        "int32_t": TypeCategory.INT32,
        "int64_t": TypeCategory.INT64,
        "uint32_t": TypeCategory.UINT32,
        "uint64_t": TypeCategory.UINT64,
        "uintptr_t": TypeCategory.UINTPTR,
        "SEL": TypeCategory.SEL,
        "Class": TypeCategory.CLASS,
        "dispatch_block_t": TypeCategory.DISPATCH_BLOCK,
        "NSRange": TypeCategory.NS_RANGE,
        "CGRect": TypeCategory.CG_RECT,
        "CGPoint": TypeCategory.CG_POINT,
        "CGSize": TypeCategory.CG_SIZE,
        "UIEdgeInsets": TypeCategory.UI_EDGE_INSETS,
    }
)

_CLASS_NAME_RE = re.compile(r"[A-Z][A-Za-z0-9_]*")
_LEADING_IDENTIFIER_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_PROTOCOL_ID_RE = re.compile(r"^id\s*<\s*([^<>]+?)\s*>$")
_NULLABILITY_QUALIFIER_RE = re.compile(
    r"\b(_Nullable|_Nonnull|_Null_unspecified|nullable|nonnull|null_unspecified)\b"
)
_KINDOF_PREFIX_RE = re.compile(r"^__kindof\s+")


def strip_pointer_qualifiers(reference: str) -> str:
    """Drop nullability qualifiers and a leading `__kindof` from a reference."""
    text = _NULLABILITY_QUALIFIER_RE.sub("", reference).strip()
    return _KINDOF_PREFIX_RE.sub("", text).strip()


def is_object_pointer_reference(reference: str) -> bool:
    """True for `Name *` where Name is capitalised and may carry a generic list.

    The generic list may nest (`RMCache<NSString *, NSArray<NSNumber *> *> *`);
    it must be balanced and be followed by exactly one `*`. Qualifiers are
    expected to be stripped already.
    """
    match = _CLASS_NAME_RE.match(reference)
    if match is None:
        return False
    rest = reference[match.end():].lstrip()
    if rest.startswith("<"):
        depth = 0
        for index, char in enumerate(rest):
            if char == "<":
                depth += 1
            elif char == ">":
                depth -= 1
                if depth == 0:
                    break
        else:
            return False
        rest = rest[index + 1:].lstrip()
    return rest == "*"

FORWARD_DECLARABLE_BY_CATEGORY: Mapping[TypeCategory, bool] = MappingProxyType(
    {
        TypeCategory.OBJECT: True,
        TypeCategory.ID: False,
        TypeCategory.PROTOCOL_ID: False,
        TypeCategory.BOOL: False,
        TypeCategory.NS_INTEGER: False,
        TypeCategory.NS_UINTEGER: False,
        TypeCategory.DOUBLE: False,
        TypeCategory.FLOAT: False,
        TypeCategory.CG_FLOAT: False,
        TypeCategory.NS_TIME_INTERVAL: False,
        TypeCategory.INT32: False,
        TypeCategory.INT64: False,
        TypeCategory.UINT32: False,
        TypeCategory.UINT64: False,
        TypeCategory.UINTPTR: False,
        TypeCategory.SEL: False,
        TypeCategory.CLASS: False,
        TypeCategory.DISPATCH_BLOCK: False,
        TypeCategory.FUNCTION_POINTER: False,
        TypeCategory.NS_RANGE: False,
        TypeCategory.CG_RECT: False,
        TypeCategory.CG_POINT: False,
        TypeCategory.CG_SIZE: False,
        TypeCategory.UI_EDGE_INSETS: False,
        TypeCategory.UNMATCHED: False,
    }
)
"""Whether a forward declaration can stand in for a full import, per category.

Only class pointers qualify. Value types and structs need their full
definition; opaque scalar aliases have nothing to forward-declare."""

if set(FORWARD_DECLARABLE_BY_CATEGORY) != set(TypeCategory):
    raise RuntimeError(
        "FORWARD_DECLARABLE_BY_CATEGORY must cover every TypeCategory: "
        f"{sorted(c.name for c in set(TypeCategory) - set(FORWARD_DECLARABLE_BY_CATEGORY))}"
    )


def classify_type(objc_type: ObjCType) -> TypeCategory:
    """Map a computed type onto its category.

    Exact built-in names win. `id` written as `id<Proto>` is PROTOCOL_ID.
    Otherwise the reference decides, once nullability qualifiers and
    `__kindof` are dropped: protocol-qualified id, blocks and function
    pointers, then class pointers. Anything else is UNMATCHED.
    """
    reference = strip_pointer_qualifiers(objc_type.reference)
    category = _CATEGORY_BY_TYPE_NAME.get(objc_type.name)
    if category is TypeCategory.ID and _PROTOCOL_ID_RE.match(reference):
        return TypeCategory.PROTOCOL_ID
    if category is not None:
        return category

    if _PROTOCOL_ID_RE.match(reference):
        return TypeCategory.PROTOCOL_ID
    if "^" in reference or "(*" in reference:
        return TypeCategory.FUNCTION_POINTER
    if is_object_pointer_reference(reference):
        return TypeCategory.OBJECT
    return TypeCategory.UNMATCHED


def can_forward_declare_type(objc_type: ObjCType) -> bool:
    return FORWARD_DECLARABLE_BY_CATEGORY[classify_type(objc_type)]


def compute_type_of_attribute(attribute: Attribute) -> ObjCType:
    underlying_type = attribute.type.underlying_type
    if underlying_type is not None:
        reference = "NSObject *" if underlying_type == "NSObject" else underlying_type
        return ObjCType(name=underlying_type, reference=reference)
    return ObjCType(name=attribute.type.name, reference=attribute.type.reference)


# ===--- Import resolution ---=== #


def should_include_import_for_type(
    type_lookups: tuple[TypeLookup, ...] | list[TypeLookup], type_name: TypeName
) -> bool:
    return is_import_required_for_type_with_name(type_name) and not any(
        lookup.name == type_name for lookup in type_lookups
    )


def library_for_import(
    library_type_is_defined_in: str | None, object_library: str | None
) -> str | None:
    if library_type_is_defined_in is not None:
        return library_type_is_defined_in
    return object_library


def file_for_import(file_type_is_defined_in: str | None, type_name: TypeName) -> str:
    if file_type_is_defined_in is not None:
        return file_type_is_defined_in + ".h"
    return type_name + ".h"


def type_definition_import_for_known_system_type(type_name: TypeName) -> Import | None:
    return KNOWN_SYSTEM_TYPE_IMPORTS.get(type_name)


def requires_public_import_for_type(type_name: TypeName, computed_type: ObjCType) -> bool:
    """True when the header must import the type instead of forward-declaring it."""
    return is_import_required_for_type_with_name(
        type_name
    ) and not can_forward_declare_type(computed_type)


def can_forward_declare_type_for_attribute(attribute: Attribute) -> bool:
    return is_import_required_for_type_with_name(
        attribute.type.name
    ) and can_forward_declare_type(compute_type_of_attribute(attribute))


def should_forward_protocol_declare_attribute(attribute: Attribute) -> bool:
    return bool(attribute.type.conforming_protocol)


def forward_protocol_declaration_for_attribute(
    attribute: Attribute,
) -> ForwardProtocolDeclaration | None:
    if not should_forward_protocol_declare_attribute(attribute):
        return None
    return ForwardProtocolDeclaration(attribute.type.conforming_protocol)


def import_for_type_lookup(
    default_library: str | None, is_public: bool, type_lookup: TypeLookup
) -> Import:
    return Import(
        file=file_for_import(type_lookup.file, type_lookup.name),
        is_public=is_public,
        requires_cplusplus=False,
        library=library_for_import(type_lookup.library, default_library),
    )


def import_for_attribute(
    object_library: str | None, is_public: bool, attribute: Attribute
) -> Import:
    """Build the import that makes an attribute's type visible.

    Per-attribute file/library overrides beat the system registry; without
    them a registered system type uses its registered import verbatim.
    Otherwise the import follows the `<TypeName>.h` convention in the
    object's library and is public when asked for or when the type cannot
    be forward-declared.
    """
    attribute_type = attribute.type
    has_override = (
        attribute_type.file_type_is_defined_in is not None
        or attribute_type.library_type_is_defined_in is not None
    )
    known_import = type_definition_import_for_known_system_type(attribute_type.name)
    if known_import is not None and not has_override:
        return known_import

    return Import(
        file=file_for_import(attribute_type.file_type_is_defined_in, attribute_type.name),
        is_public=is_public
        or requires_public_import_for_type(
            attribute_type.name, compute_type_of_attribute(attribute)
        ),
        requires_cplusplus=False,
        library=library_for_import(
            attribute_type.library_type_is_defined_in, object_library
        ),
    )


def unique_imports(imports: list[Import] | tuple[Import, ...]) -> tuple[Import, ...]:
    """Collapse imports of the same header, keeping first-seen order.

    Two imports are the same header when file, library and C++ requirement
    match. The merged import is public if any duplicate was public.
    """
    merged: dict[tuple[str, str | None, bool], Import] = {}
    for imp in imports:
        key = (imp.file, imp.library, imp.requires_cplusplus)
        seen = merged.get(key)
        if seen is None:
            merged[key] = imp
        elif imp.is_public and not seen.is_public:
            merged[key] = replace(seen, is_public=True)
    return tuple(merged.values())


def unique_forward_declarations(
    declarations: list[ForwardDeclaration] | tuple[ForwardDeclaration, ...],
) -> tuple[ForwardDeclaration, ...]:
    return tuple(dict.fromkeys(declarations))


def partition_imports(
    imports: list[Import] | tuple[Import, ...],
) -> tuple[tuple[Import, ...], tuple[Import, ...]]:
    """Split imports into (header, implementation) groups, preserving order."""
    public = tuple(imp for imp in imports if imp.is_public)
    private = tuple(imp for imp in imports if not imp.is_public)
    return public, private


def imports_for_attributes(
    attributes: tuple[Attribute, ...],
    type_lookups: tuple[TypeLookup, ...],
    default_library: str | None,
) -> tuple[Import, ...]:
    """Imports for a set of attributes plus one public import per lookup.

    Attributes whose type needs no import, whose type name has a lookup, or
    whose type name is empty contribute nothing of their own.
    """
    imports: list[Import] = []
    for attribute in attributes:
        if attribute.type.name and should_include_import_for_type(
            type_lookups, attribute.type.name
        ):
            imports.append(import_for_attribute(default_library, False, attribute))
    for lookup in type_lookups:
        imports.append(import_for_type_lookup(default_library, True, lookup))
    return unique_imports(imports)


def forward_declarations_for_attributes(
    attributes: tuple[Attribute, ...],
    type_lookups: tuple[TypeLookup, ...],
) -> tuple[ForwardDeclaration, ...]:
    lookup_names = {lookup.name for lookup in type_lookups}
    declarations: list[ForwardDeclaration] = []
    for attribute in attributes:
        # Unnamed types are reported by AttributeImportsPlugin.validation_errors.
        if (
            attribute.type.name
            and attribute.type.name not in lookup_names
            and can_forward_declare_type_for_attribute(attribute)
        ):
            declarations.append(ForwardClassDeclaration(attribute.type.name))
        protocol_declaration = forward_protocol_declaration_for_attribute(attribute)
        if protocol_declaration is not None:
            declarations.append(protocol_declaration)
    return unique_forward_declarations(declarations)


def imports_for_object_type(spec: TypeSpec) -> tuple[Import, ...]:
    return imports_for_attributes(
        attributes_of_spec(spec), spec.type_lookups, spec.library_name
    )


def forward_declarations_for_object_type(spec: TypeSpec) -> tuple[ForwardDeclaration, ...]:
    return forward_declarations_for_attributes(attributes_of_spec(spec), spec.type_lookups)


# ===--- Pure formatting functions ---=== #


def format_import_line(imp: Import) -> str:
    """Render `#import <Library/File.h>`, or `#import "File.h"` without a library."""
    if imp.library is not None:
        return f"#import <{imp.library}/{imp.file}>"
    return f'#import "{imp.file}"'


def format_forward_declaration(declaration: ForwardDeclaration) -> str:
    if isinstance(declaration, ForwardProtocolDeclaration):
        return f"@protocol {declaration.name};"
    return f"@class {declaration.name};"


# ===--- Plugin contract ---=== #


class Plugin:
    """Capability interface every generation plugin implements.

    One method per hook. Every default returns the empty or identity value,
    so a concrete plugin overrides only the hooks it contributes to. Hooks
    receive a single ObjectType or AlgebraicType and must not keep state
    between calls or have effects beyond their return value.

    Attributes:
        name: Human-readable plugin name for diagnostics.
        required_includes_to_run: Include names that must all be enabled
            for the spec before the plugin runs (see active_plugins).
    """

    name: str = "plugin"
    required_includes_to_run: tuple[str, ...] = ()

    def class_methods(self, spec: TypeSpec) -> list[Method]:
        return []

    def instance_methods(self, spec: TypeSpec) -> list[Method]:
        return []

    def properties(self, spec: TypeSpec) -> list[Property]:
        return []

    def imports(self, spec: TypeSpec) -> list[Import]:
        return []

    def forward_declarations(self, spec: TypeSpec) -> list[ForwardDeclaration]:
        return []

    def functions(self, spec: TypeSpec) -> list[Function]:
        return []

    def macros(self, spec: TypeSpec) -> list[Macro]:
        return []

    def static_constants(self, spec: TypeSpec) -> list[Constant]:
        return []

    def instance_variables(self, spec: TypeSpec) -> list[InstanceVariable]:
        return []

    def enumerations(self, spec: TypeSpec) -> list[Enumeration]:
        return []

    def block_types(self, spec: TypeSpec) -> list[BlockType]:
        return []

    def header_comments(self, spec: TypeSpec) -> list[Comment]:
        return []

    def implemented_protocols(self, spec: TypeSpec) -> list[Protocol]:
        return []

    def additional_files(self, spec: TypeSpec) -> list[CodeFile]:
        return []

    def additional_types(self, spec: TypeSpec) -> list[TypeSpec]:
        return []

    def validation_errors(self, spec: TypeSpec) -> list[ValidationError]:
        return []

    def file_type(self, spec: TypeSpec) -> FileType | None:
        return None

    def nullability(self, spec: TypeSpec) -> ClassNullability | None:
        return None

    def subclassing_restricted(self, spec: TypeSpec) -> bool:
        return False

    def transform_base_file(self, spec: TypeSpec, base_file: CodeFile) -> CodeFile:
        return base_file

    def transform_file_request(self, request: FileRequest) -> FileRequest:
        return request


# ===--- Plugin composition ---=== #


@dataclass(frozen=True)
class FileGenerationResult:
    """Outcome of running the plugin chain over one type specification.

    Attributes:
        request: The transformed file request, or None when validation failed.
        errors: Aggregated validation errors from every active plugin, in
            plugin order. Non-empty means the file must not be emitted.
        additional_files: Extra files contributed by plugins.
        additional_types: Extra type specs contributed by plugins, to be run
            through the pipeline by the caller.
    """

    request: FileRequest | None
    errors: tuple[ValidationError, ...] = ()
    additional_files: tuple[CodeFile, ...] = ()
    additional_types: tuple[TypeSpec, ...] = ()

    @property
    def succeeded(self) -> bool:
        return not self.errors and self.request is not None


def effective_includes(
    spec: TypeSpec, default_includes: tuple[str, ...] = ()
) -> frozenset[str]:
    return (frozenset(default_includes) | frozenset(spec.includes)) - frozenset(
        spec.excludes
    )


def active_plugins(
    spec: TypeSpec,
    plugins: list[Plugin] | tuple[Plugin, ...],
    default_includes: tuple[str, ...] = (),
) -> tuple[Plugin, ...]:
    """Plugins whose required includes are all enabled for spec, in order."""
    includes = effective_includes(spec, default_includes)
    return tuple(
        plugin
        for plugin in plugins
        if all(name in includes for name in plugin.required_includes_to_run)
    )


T = TypeVar("T")


def _first_value(values: Iterable[T | None], default: T) -> T:
    for value in values:
        if value is not None:
            return value
    return default


def build_file(
    spec: TypeSpec,
    plugins: list[Plugin] | tuple[Plugin, ...],
    default_includes: tuple[str, ...] = (),
) -> FileGenerationResult:
    """Fold the active plugins' hook outputs into one file request.

    Merge rules, applied in plugin registration order:
        - validation_errors: concatenated; any error stops generation and
          the result carries no request.
        - list hooks: concatenated. Imports and forward declarations are
          de-duplicated, keeping the first occurrence.
        - file_type / nullability: the first plugin returning a value wins.
          Defaults are FileType.OBJECTIVE_C and ClassNullability.DEFAULT.
        - subclassing_restricted: True if any plugin returns True.
        - transform_base_file, then transform_file_request: chained left to
          right, each plugin seeing the output of the previous one.

    Args:
        spec: Object or algebraic type to generate.
        plugins: Registered plugins, in registration order.
        default_includes: Includes enabled for every spec before the spec's
            own includes/excludes are applied.

    Returns:
        FileGenerationResult with either a request or the errors.
    """
    running = active_plugins(spec, plugins, default_includes)

    errors = tuple(error for plugin in running for error in plugin.validation_errors(spec))
    if errors:
        return FileGenerationResult(request=None, errors=errors)

    def collect(hook: Callable[[Plugin], list[T]]) -> tuple[T, ...]:
        return tuple(item for plugin in running for item in hook(plugin))

    name = spec_name(spec)
    objc_class = ObjCClass(
        name=name,
        class_methods=collect(lambda plugin: plugin.class_methods(spec)),
        instance_methods=collect(lambda plugin: plugin.instance_methods(spec)),
        properties=collect(lambda plugin: plugin.properties(spec)),
        instance_variables=collect(lambda plugin: plugin.instance_variables(spec)),
        implemented_protocols=collect(
            lambda plugin: plugin.implemented_protocols(spec)
        ),
        nullability=_first_value(
            (plugin.nullability(spec) for plugin in running), ClassNullability.DEFAULT
        ),
        subclassing_restricted=any(
            plugin.subclassing_restricted(spec) for plugin in running
        ),
    )
    base_file = CodeFile(
        name=name,
        type=_first_value(
            (plugin.file_type(spec) for plugin in running), FileType.OBJECTIVE_C
        ),
        comments=collect(lambda plugin: plugin.header_comments(spec)),
        imports=unique_imports(collect(lambda plugin: plugin.imports(spec))),
        forward_declarations=unique_forward_declarations(
            collect(lambda plugin: plugin.forward_declarations(spec))
        ),
        enumerations=collect(lambda plugin: plugin.enumerations(spec)),
        block_types=collect(lambda plugin: plugin.block_types(spec)),
        static_constants=collect(lambda plugin: plugin.static_constants(spec)),
        functions=collect(lambda plugin: plugin.functions(spec)),
        macros=collect(lambda plugin: plugin.macros(spec)),
        classes=(objc_class,),
    )

    for plugin in running:
        base_file = plugin.transform_base_file(spec, base_file)

    request = FileRequest(name=name, file=base_file)
    for plugin in running:
        request = plugin.transform_file_request(request)

    return FileGenerationResult(
        request=request,
        errors=(),
        additional_files=collect(lambda plugin: plugin.additional_files(spec)),
        additional_types=collect(lambda plugin: plugin.additional_types(spec)),
    )


# ===--- Plugins ---=== #


INSTANCETYPE = ObjCType(name="instancetype", reference="instancetype")


def _unavailable_method(keyword: str) -> Method:
    return Method(
        keywords=(Keyword(name=keyword),),
        return_type=ReturnType(type=INSTANCETYPE),
        belongs_to_protocol="NSObject",
        compiler_attributes=("NS_UNAVAILABLE",),
    )


class InitNewUnavailablePlugin(Plugin):
    """Marks `+new` and `-init` NS_UNAVAILABLE.

    Object types only need this once they carry attributes (an empty value
    object can still be created with -init). Algebraic types always get it:
    they are built through their subtype constructors.
    """

    name = "init-new-unavailable"
    required_includes_to_run = ("RMInitNewUnavailable",)

    def _applies_to(self, spec: TypeSpec) -> bool:
        return isinstance(spec, AlgebraicType) or len(spec.attributes) > 0

    def class_methods(self, spec: TypeSpec) -> list[Method]:
        if self._applies_to(spec):
            return [_unavailable_method("new")]
        return []

    def instance_methods(self, spec: TypeSpec) -> list[Method]:
        if self._applies_to(spec):
            return [_unavailable_method("init")]
        return []


class AttributeImportsPlugin(Plugin):
    """Contributes the imports and forward declarations attributes need."""

    name = "attribute-imports"
    required_includes_to_run = ("RMImports",)

    def imports(self, spec: TypeSpec) -> list[Import]:
        return list(imports_for_object_type(spec))

    def forward_declarations(self, spec: TypeSpec) -> list[ForwardDeclaration]:
        return list(forward_declarations_for_object_type(spec))

    def validation_errors(self, spec: TypeSpec) -> list[ValidationError]:
        return [
            ValidationError(
                f"Attribute '{attribute.name}' of {spec_name(spec)} has no type name"
            )
            for attribute in attributes_of_spec(spec)
            if not attribute.type.name
        ]


DEFAULT_PLUGINS: tuple[Plugin, ...] = (
    AttributeImportsPlugin(),
    InitNewUnavailablePlugin(),
)


# ===--- Type resolution report ---=== #


@dataclass(frozen=True)
class TypeResolution:
    """How one type reference resolves, for the --type report.

    Attributes:
        objc_type: Type name and reference as given.
        category: Forward-declarability category of the reference.
        import_required: Result of is_import_required_for_type_with_name.
        imports: Imports to emit (lookup or attribute import), possibly empty.
        forward_declarations: Forward declarations to emit, possibly empty.
    """

    objc_type: ObjCType
    category: TypeCategory
    import_required: bool
    imports: tuple[Import, ...]
    forward_declarations: tuple[ForwardDeclaration, ...]


def objc_type_from_argument(raw: str) -> ObjCType:
    """Build the type for one --type argument.

    `NAME=REFERENCE` names the reference explicitly; `id<Proto>` is named
    `id`; otherwise the name is the leading identifier once `__kindof` and
    nullability qualifiers are dropped (`"MyModel *"` -> "MyModel").
    """
    text = raw.strip()
    name, separator, reference = text.partition("=")
    if separator:
        return ObjCType(name=name.strip(), reference=reference.strip())
    if _PROTOCOL_ID_RE.match(text):
        return ObjCType(name="id", reference=text)
    match = _LEADING_IDENTIFIER_RE.match(strip_pointer_qualifiers(text))
    return ObjCType(name=match.group(0) if match else text, reference=text)


def resolve_type(
    objc_type: ObjCType,
    type_lookups: tuple[TypeLookup, ...] = (),
    default_library: str | None = None,
) -> TypeResolution:
    protocol_match = _PROTOCOL_ID_RE.match(
        strip_pointer_qualifiers(objc_type.reference)
    )
    conforming_protocol = None
    if protocol_match is not None and _IDENTIFIER_RE.match(protocol_match.group(1)):
        conforming_protocol = protocol_match.group(1)
    attribute = Attribute(
        name=objc_type.name,
        type=AttributeType(
            name=objc_type.name,
            reference=objc_type.reference,
            conforming_protocol=conforming_protocol,
        ),
    )
    lookups = tuple(lookup for lookup in type_lookups if lookup.name == objc_type.name)
    return TypeResolution(
        objc_type=objc_type,
        category=classify_type(objc_type),
        import_required=is_import_required_for_type_with_name(objc_type.name),
        imports=imports_for_attributes((attribute,), lookups, default_library),
        forward_declarations=forward_declarations_for_attributes((attribute,), lookups),
    )


def format_resolution_table(
    resolutions: list[TypeResolution], default_library: str | None
) -> str:
    """Return the complete --type report as a string.

    Output format:

        Type resolution (default library: MyLib):

          BOOL       BOOL              no import
          CGRect     CGRect            public   #import <CoreGraphics/CGGeometry.h>
          MyModel *  object            private  #import <MyLib/MyModel.h>  @class MyModel;

    Column widths: references are padded to the longest reference plus two,
    categories to 18 characters, visibility to 9.
    """
    library_label = default_library if default_library is not None else "none"
    lines = [f"Type resolution (default library: {library_label}):", ""]
    width = max((len(r.objc_type.reference) for r in resolutions), default=0) + 2
    for resolution in resolutions:
        prefix = f"  {resolution.objc_type.reference:<{width}}{resolution.category.value:<18}"
        if not resolution.imports and not resolution.forward_declarations:
            lines.append(f"{prefix}no import")
            continue
        declarations = " ".join(
            format_forward_declaration(d) for d in resolution.forward_declarations
        )
        if not resolution.imports:
            lines.append(f"{prefix}{'-':<9}{declarations}".rstrip())
        for imp in resolution.imports:
            visibility = "public" if imp.is_public else "private"
            lines.append(
                f"{prefix}{visibility:<9}{format_import_line(imp)}  {declarations}".rstrip()
            )
    lines.append("")
    return "\n".join(lines)


def format_known_types_table(
    registry: Mapping[TypeName, Import | None] = KNOWN_SYSTEM_TYPE_IMPORTS,
) -> str:
    lines = ["Known system types:", ""]
    width = max((len(name) for name in registry), default=0) + 2
    for name in sorted(registry, key=str.lower):
        imp = registry[name]
        target = "(no import)" if imp is None else format_import_line(imp)
        lines.append(f"  {name:<{width}}{target}")
    lines.append("")
    return "\n".join(lines)


def run_resolve(config: ResolveConfig) -> None:
    resolutions = [
        resolve_type(
            objc_type_from_argument(name), config.type_lookups, config.default_library
        )
        for name in config.type_names
    ]
    print(format_resolution_table(resolutions, config.default_library), end="")


def run_discovery(config: DiscoveryConfig) -> None:
    if config.command == "list-known-types":
        print(format_known_types_table(), end="")


# ===--- Main ---=== #


def main(argv: list[str] | None = None):
    try:
        config = build_config(argv)
    except ConfigError as err:
        print(f"Config error [{err.code}]: {err.message}")
        if err.suggestion:
            print(f"Hint: {err.suggestion}")
        raise SystemExit(1) from err

    if isinstance(config, DiscoveryConfig):
        run_discovery(config)
        return

    run_resolve(config)


if __name__ == "__main__":
    main()
