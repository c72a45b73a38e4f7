# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

from ._device import NameMap
from .bindings import (
    Access,
    AddressBlockUsage,
    BitRange,
    DimensionSpec,
    Protection,
    RegisterProperties,
)
from .errors import (
    SvdError,
    SvdXmlError,
    SvdSchemaError,
    SvdDimensionMismatchError,
    SvdResolutionError,
    SvdMissingReferenceError,
    SvdCycleError,
    SvdValidationError,
    SvdOverlapError,
    SvdBitBandConfigError,
)
from .parsing import (
    parse,
    parse_file,
    Config,
    BitBandRegion,
)
from .path import NodePath
from .device import (
    AddressBlock,
    Cluster,
    Device,
    Field,
    Interrupt,
    Peripheral,
    Register,
    RegisterUnion,
    is_cluster,
    is_register,
)

import importlib.metadata
import logging

__version__ = importlib.metadata.version("svdmodel")


def _init_logger() -> logging.Logger:
    formatter = logging.Formatter("{message}", style="{")
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    logger = logging.getLogger("svdmodel")
    logger.setLevel(logging.ERROR)
    logger.addHandler(handler)

    return logger


# logging.Logger instance used for log output from svdmodel.
# The modules of the package log to child loggers of this logger.
log = _init_logger()

__all__ = [
    # from _device
    "NameMap",
    # from bindings
    "Access",
    "AddressBlockUsage",
    "BitRange",
    "DimensionSpec",
    "Protection",
    "RegisterProperties",
    # from errors
    "SvdError",
    "SvdXmlError",
    "SvdSchemaError",
    "SvdDimensionMismatchError",
    "SvdResolutionError",
    "SvdMissingReferenceError",
    "SvdCycleError",
    "SvdValidationError",
    "SvdOverlapError",
    "SvdBitBandConfigError",
    # from parsing
    "parse",
    "parse_file",
    "Config",
    "BitBandRegion",
    # from path
    "NodePath",
    # from device
    "AddressBlock",
    "Cluster",
    "Device",
    "Field",
    "Interrupt",
    "Peripheral",
    "Register",
    "RegisterUnion",
    "is_cluster",
    "is_register",
    # other
    "log",
    "__version__",
]
