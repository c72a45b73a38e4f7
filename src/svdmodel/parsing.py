# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from time import perf_counter_ns
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
    Type,
    TypeVar,
    Union,
)

import lxml.etree as ET
from lxml import objectify

from . import bindings
from .addresses import calculate_addresses, freeze_device
from .alternates import resolve_alternates
from .arrays import expand_arrays
from .bitband import BitBandRegion, apply_bitband, to_regions, validate_regions
from .builder import build_device
from .derivation import exclude_peripherals, resolve_derivations
from .device import Device
from .errors import SvdSchemaError, SvdXmlError

if TYPE_CHECKING:
    from ._bindings import SvdElement

log = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Config:
    """Options to configure the SVD parsing behavior."""

    # Generate bit-band alias addresses for registers in the bit-band regions.
    enable_bitband: bool = False

    # Bit-band regions of the device, as BitBandRegion objects or as plain
    # (addressable_base, addressable_size, alias_base) tuples. There is no default region,
    # since the location of the regions differs between device families.
    # Only used if enable_bitband is True.
    bitband_regions: Sequence[Union[BitBandRegion, Tuple[int, int, int]]] = ()

    # Ignore overlapping peripherals/clusters/registers described in the SVD file.
    # If set to False, an exception is raised when structures overlap.
    ignore_overlapping_structures: bool = False

    # Names of peripherals to remove from the device after 'derivedFrom' references are resolved.
    # Other peripherals can still be derived from the removed peripherals.
    # Instances of a peripheral array match by their own name or by the declared array name.
    exclude_peripherals: Sequence[str] = ()


def parse(content: Union[bytes, str], config: Config = Config()) -> Device:
    """
    Parse a device described by a SVD document.

    :param content: Contents of the SVD document.
    :param config: Parsing configuration.

    :raises SvdBitBandConfigError: If a configured bit-band region is invalid.
    :raises SvdXmlError: If the document is not well-formed XML.
    :raises SvdSchemaError: If the document is missing required information.
    :raises SvdResolutionError: If a 'derivedFrom' or alternate reference can not be resolved.
    :raises SvdValidationError: If the resolved device is invalid.

    :return: Fully resolved `Device` representation of the SVD document.
    """

    t_start = perf_counter_ns()

    regions: List[BitBandRegion] = []
    if config.enable_bitband:
        regions = to_regions(config.bitband_regions)
        validate_regions(regions)

    if isinstance(content, str):
        content = content.encode("utf-8")

    # Note: remove comments as otherwise these are present as nodes in the returned XML tree
    xml_parser = objectify.makeparser(remove_comments=True, remove_pis=True)
    class_lookup = _TwoLevelTagLookup(bindings.BINDINGS)
    xml_parser.set_element_class_lookup(class_lookup)

    try:
        root = objectify.fromstring(content, parser=xml_parser)
    except ET.XMLSyntaxError as e:
        raise SvdXmlError(f"Malformed SVD document: {e}") from e

    if not isinstance(root, bindings.DeviceElement):
        raise SvdSchemaError(None, f"Expected a <device> root element, got <{root.tag}>")

    _log_time("XML parsing", t_start)

    draft = _timed("Building device tree", build_device, root)
    _timed("Resolving derivations", resolve_derivations, draft)
    _timed("Expanding arrays", expand_arrays, draft)
    exclude_peripherals(draft, config.exclude_peripherals)
    _timed("Resolving alternates", resolve_alternates, draft)
    _timed(
        "Calculating addresses",
        lambda d: calculate_addresses(
            d, ignore_overlaps=config.ignore_overlapping_structures
        ),
        draft,
    )
    device = freeze_device(draft)

    if config.enable_bitband:
        device = _timed(
            "Generating bit-band addresses",
            lambda d: apply_bitband(d, regions),
            device,
        )

    _log_time(f"Parsing {device.name}", t_start)

    return device


def parse_file(svd_path: Union[str, Path], config: Config = Config()) -> Device:
    """
    Parse a device described by a SVD file.

    :param svd_path: Path to the SVD file.
    :param config: Parsing configuration.

    :raises FileNotFoundError: If the SVD file does not exist.

    :return: Parsed `Device` representation of the SVD file.
    """
    svd_file = Path(svd_path)

    if not svd_file.is_file():
        raise FileNotFoundError(f"No such file: {svd_file.absolute()}")

    return parse(svd_file.read_bytes(), config)


def _timed(stage: str, func: Callable[[Any], T], arg: Any) -> T:
    t_start = perf_counter_ns()
    result = func(arg)
    _log_time(stage, t_start)
    return result


def _log_time(stage: str, t_start: int) -> None:
    t_ms = (perf_counter_ns() - t_start) / 1_000_000
    log.debug(f"{stage} took {t_ms:.3f} ms")


class _TwoLevelTagLookup(ET.ElementNamespaceClassLookup):
    """
    XML element class lookup that uses two levels of tag names to map an XML element to a Python
    class. This two-level scheme is used to slightly optimize the time spent by the parser looking
    up the class for an element.

    Element classes that can be uniquely identified by tag only are stored in the first level.
    This level uses the lxml ElementNamespaceClassLookup which is faster than the second level.
    The remaining element classes are assumed to be uniquely identified by a combination of
    the parent tag and the tag itself, and are stored in the second level.
    The second level uses the lxml PythonElementClassLookup which is slower.
    """

    def __init__(self, element_classes: List[Type[SvdElement]]):
        """
        :param element_classes: lxml element classes to add to the lookup table.
        """
        super().__init__()

        tag_classes: Dict[str, Set[type]] = defaultdict(set)
        two_tag_classes: Dict[Tuple[Optional[str], str], Set[type]] = defaultdict(set)

        for element_class in element_classes:
            tag = element_class.TAG
            tag_classes[tag].add(element_class)
            for prop in bindings.get_binding_elem_props(element_class).values():
                tag_classes[prop.name].add(prop.element_class)
                two_tag_classes[(tag, prop.name)].add(prop.element_class)

        one_tag: Set[str] = set()
        namespace = self.get_namespace(None)  # None is the empty namespace

        for tag, classes in tag_classes.items():
            if len(classes) == 1:
                # namespace is a decorator, so the syntax here is a little odd
                element_class = classes.pop()
                namespace(tag)(element_class)
                one_tag.add(tag)

        two_tag_lookup: Dict[Tuple[Optional[str], str], type] = {}

        for (parent_tag, field_name), classes in two_tag_classes.items():
            if field_name in one_tag:
                continue

            if len(classes) != 1:
                raise RuntimeError(
                    f"Multiple classes for ({parent_tag}, {field_name}): {classes}. "
                    "This should never happen, and likely indicates a bug in the way element "
                    "class lookup is implemented."
                )

            two_tag_lookup[(parent_tag, field_name)] = classes.pop()

        fallback_lookup = _SecondLevelTagLookup(two_tag_lookup)
        self.set_fallback(fallback_lookup)


class _SecondLevelTagLookup(ET.PythonElementClassLookup):
    """XML element class lookup table that uses two levels of tags to look up the class"""

    def __init__(
        self,
        lookup_table: Dict[
            Tuple[Optional[str], str], Type[objectify.ObjectifiedElement]
        ],
    ):
        """
        :param lookup_table: Lookup table mapping a tuple of (parent tag, tag) to an element class.
        """
        # Elements outside the supported subset get the default objectify classes
        super().__init__(fallback=objectify.ObjectifyElementClassLookup())
        self._lookup_table = lookup_table

    def lookup(
        self, _document: Any, element: ET._Element
    ) -> Optional[Type[objectify.ObjectifiedElement]]:
        """Look up the Element class for the given XML element"""
        if (parent := element.getparent()) is not None:
            parent_tag = parent.tag
        else:
            parent_tag = None
        return self._lookup_table.get((parent_tag, element.tag))
