"""Exceptions raised while building partial product matrices."""


class PartialProductError(Exception):
    """Base class for all smolbooth errors."""


class ConfigurationError(PartialProductError, ValueError):
    """Operand widths or radix cannot form a Booth multiplier."""


class SignExtensionError(PartialProductError, RuntimeError):
    """Sign extension was requested on an already sign-extended matrix."""
