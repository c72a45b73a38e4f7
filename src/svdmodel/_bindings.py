# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

"""
Building blocks for the SVD element bindings: value converters, the element base classes
and the descriptors that expose XML children and attributes as Python properties.
"""

from __future__ import annotations

import enum
import inspect
from types import MappingProxyType
from typing import (
    Any,
    Dict,
    Generic,
    Iterator,
    List,
    Literal,
    Mapping,
    Optional,
    Type,
    TypeVar,
    Union,
    overload,
)

from lxml import objectify
from typing_extensions import Self


class CaseInsensitiveStrEnum(enum.Enum):
    """Enum with string values that is looked up ignoring case and surrounding whitespace."""

    @classmethod
    def _missing_(cls, value: object) -> Optional[Self]:
        if isinstance(value, str):
            folded = value.strip().casefold()
            for member in cls:
                if member.value.casefold() == folded:
                    return member
        return None


def to_int(number: str) -> int:
    """
    Decode an SVD scaledNonNegativeInteger.

    Hexadecimal ("0x"/"0X"), binary ("#") and octal (leading "0") prefixes are recognized,
    anything else is parsed as a decimal number.

    :param number: Text of the element.
    :raises ValueError: If the text is not a valid SVD integer.

    :return: Decoded integer.
    """
    text = number.strip()

    if text[:2] in ("0x", "0X"):
        return int(text[2:], base=16)
    if text[:1] == "#":
        return int(text[1:], base=2)
    if len(text) > 1 and text[0] == "0":
        return int(text[1:], base=8)
    return int(text, base=10)


def normalize_text(text: Optional[str]) -> Optional[str]:
    """Collapse the whitespace of a free-form SVD text element."""
    if text is None:
        return None
    return " ".join(text.split())


class SvdElement(objectify.ObjectifiedElement):
    """Base class of the SVD element bindings."""

    TAG: str

    def __repr__(self) -> str:
        return self._repr()

    def _repr(self, props: Mapping[str, Any] = MappingProxyType({})) -> str:
        """
        Describe the element by its tag, source line and any extra properties, followed by the
        description of its parent element.
        """
        line = f":{self.sourceline}" if self.sourceline is not None else ""
        extra = f" {dict(props)}" if props else ""
        parent = self.getparent()
        location = f" in {parent!r}" if parent is not None else ""

        return f"[{self.tag}{line}{extra}]{location}"


class SvdIntElement(objectify.IntElement):
    """Integer element that decodes its text with to_int()."""

    def _init(self) -> None:
        self._setValueParser(to_int)


class _Self:
    ...


# Placeholder element class for a child element that is bound to the class declaring it.
# Replaced by the actual class when the class is added to a BindingRegistry.
SELF_CLASS = _Self()


class _Missing:
    ...


# Default of descriptors for which an absent element or attribute is an error.
MISSING = _Missing()


O = TypeVar("O", bound=objectify.ObjectifiedElement)
T = TypeVar("T")


class _Descriptor(Generic[T]):
    """Common behavior of the element and attribute descriptors."""

    def __init__(self, name: str, /, *, default: Union[T, _Missing] = MISSING) -> None:
        """
        :param name: XML name of the child element or attribute.
        :param default: Value returned when the document does not contain it.
                        Inheritable properties use None so that an absent element can be told
                        apart from one that is explicitly set.
        """
        self.name: str = name
        self.default: Union[T, _Missing] = default

    @overload
    def __get__(self, node: Literal[None], owner: Optional[Type] = None) -> Self:
        ...

    @overload
    def __get__(self, node: O, owner: Optional[Type] = None) -> T:
        ...

    def __get__(self, node: Optional[O], owner: Any = None) -> Union[T, Self]:
        if node is None:
            # Accessed through the class
            return self
        return self._lookup(node)

    def _lookup(self, node: objectify.ObjectifiedElement) -> T:
        raise NotImplementedError

    def _absent(self, node: objectify.ObjectifiedElement) -> T:
        if isinstance(self.default, _Missing):
            raise AttributeError(f"<{node.tag}> has no '{self.name}'")
        return self.default


class Elem(_Descriptor[T]):
    """Descriptor for a child element. Data elements evaluate to their Python value."""

    def __init__(
        self,
        name: str,
        element_class: Union[Type[objectify.ObjectifiedElement], _Self],
        /,
        *,
        default: Union[T, _Missing] = MISSING,
    ) -> None:
        super().__init__(name, default=default)
        self.element_class: Type[objectify.ObjectifiedElement] = element_class  # type: ignore

    def _lookup(self, node: objectify.ObjectifiedElement) -> T:
        try:
            child = node.__getattr__(self.name)
        except AttributeError:
            return self._absent(node)

        if issubclass(self.element_class, objectify.ObjectifiedDataElement):
            return child.pyval  # type: ignore
        return child  # type: ignore


class Attr(_Descriptor[T]):
    """Descriptor for an XML attribute, evaluating to its whitespace-stripped text."""

    def _lookup(self, node: objectify.ObjectifiedElement) -> T:
        value = node.get(self.name)
        if value is None:
            return self._absent(node)
        return value.strip()  # type: ignore


C = TypeVar("C", bound=SvdElement)


class BindingRegistry:
    """The set of element classes making up the bindings, in registration order."""

    def __init__(self) -> None:
        self._element_classes: List[Type[SvdElement]] = []

    def add(self, element_class: Type[C], /) -> Type[C]:
        """
        Class decorator that registers an element class.

        The Elem descriptors of the class are recorded, so that the parser can map each child
        tag to its element class.
        """
        elem_props: Dict[str, Elem] = {}

        for name, prop in inspect.getmembers(element_class, lambda m: isinstance(m, Elem)):
            if prop.element_class is SELF_CLASS:
                prop.element_class = element_class
            elem_props[name] = prop

        element_class._xml_elem_props = elem_props  # type: ignore
        self._element_classes.append(element_class)

        return element_class

    @property
    def bindings(self) -> List[Type[SvdElement]]:
        return self._element_classes


def get_binding_elem_props(
    klass: Type[objectify.ObjectifiedElement],
) -> Mapping[str, Elem]:
    """Get the Elem descriptors recorded for a registered element class."""
    try:
        return klass._xml_elem_props  # type: ignore
    except AttributeError as e:
        raise ValueError(f"{klass.__name__} is not a registered binding") from e


def make_enum_wrapper(enum_cls: Type[CaseInsensitiveStrEnum]) -> Type[SvdElement]:
    """Create a data element class whose value is a member of the given enum."""

    class EnumElement(SvdElement, objectify.ObjectifiedDataElement):
        @property
        def pyval(self) -> CaseInsensitiveStrEnum:
            return enum_cls(self.text)

        def __repr__(self) -> str:
            return self._repr(props={"text": self.text})

    EnumElement.__name__ = f"{enum_cls.__name__}Element"
    EnumElement.__qualname__ = EnumElement.__name__

    return EnumElement


def iter_element_children(
    element: Optional[objectify.ObjectifiedElement], *tags: str
) -> Iterator[objectify.ObjectifiedElement]:
    """Iterate over the children of an element with the given tags. None has no children."""
    if element is None:
        return iter(())
    return element.iterchildren(*tags)  # type: ignore
