"""Booth recoding of the multiplier and selection of multiplicand multiples."""

from functools import reduce
import operator

from amaranth import C, Cat
from amaranth.utils import exact_log2

from .errors import ConfigurationError


class RadixEncode:
    """Encoding of a single Booth digit.

    Attributes
    ----------
    multiples : Value(radix // 2)
        One-hot selection of the magnitude of the digit; bit ``k - 1`` is set
        when the digit is :math:`\\pm k`. All bits are clear for a zero digit.
    sign : Value(1)
        Set when the digit is negative (or a negative zero).
    """

    def __init__(self, multiples, sign):
        self.multiples = multiples
        self.sign = sign

    def __repr__(self):
        return f"RadixEncode(multiples={self.multiples!r}, sign={self.sign!r})"


class RadixEncoder:
    """Encoder for overlapping multiplier slices of a given radix.

    Parameters
    ----------
    radix : int
        Booth radix. Must be a power of two, 2 or greater.

    Attributes
    ----------
    radix : int
        Booth radix.
    shift : int
        Number of multiplier bits consumed per digit, :math:`log_2(radix)`.
    """

    def __init__(self, radix):
        try:
            self.shift = exact_log2(radix)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"radix must be a power of two, not "
                                     f"{radix!r}") from e

        if self.shift < 1:
            raise ConfigurationError("radix must be at least 2")

        self.radix = radix

    def digit(self, pattern):
        """Return the signed Booth digit of a ``shift + 1``-bit slice.

        Bit 0 of ``pattern`` is the overlap bit from the previous slice; the
        most significant bit carries the negative weight.
        """
        d = pattern & 1
        for j in range(1, self.shift):
            d += ((pattern >> j) & 1) << (j - 1)
        return d - (((pattern >> self.shift) & 1) << (self.shift - 1))

    def encode(self, multiplier_slice):
        """Encode a ``shift + 1``-bit multiplier slice.

        Parameters
        ----------
        multiplier_slice : Value(shift + 1)
            Slice of the (extended) multiplier, overlap bit in the LSb.

        Returns
        -------
        RadixEncode
        """
        if len(multiplier_slice) != self.shift + 1:
            raise ConfigurationError(f"multiplier slice must be "
                                     f"{self.shift + 1} bits wide")

        multiples = []
        for k in range(1, self.radix // 2 + 1):
            hits = [multiplier_slice == p for p in range(2**(self.shift + 1))
                    if abs(self.digit(p)) == k]
            multiples.append(reduce(operator.or_, hits))

        return RadixEncode(Cat(*multiples), multiplier_slice[-1])


class MultiplierEncoder:
    """Split a multiplier into Booth digits.

    Parameters
    ----------
    multiplier : Value
        Multiplier operand. For signed multiplies, this includes the sign
        bit.
    radix_encoder : RadixEncoder
        Encoder used on each slice.
    signed : bool
        Interpret ``multiplier`` as signed.

    Attributes
    ----------
    rows : int
        Number of Booth digits (rows of the partial product matrix):
        ``ceil(width / shift)`` for signed multipliers, and
        ``ceil((width + 1) / shift)`` for unsigned ones, which carry a zero
        guard bit above their MSb.
    multiplier : Value
        The multiplier operand.
    """

    def __init__(self, multiplier, radix_encoder, *, signed):
        self.multiplier = multiplier
        self.signed = signed
        self._encoder = radix_encoder

        shift = radix_encoder.shift
        width = len(multiplier)

        # An unsigned multiplier needs a guard zero above its MSb so the top
        # digit is never negative. A signed multiplier needs no guard bit.
        self.rows = -(-(width + (0 if signed else 1)) // shift)

        pad = self.rows * shift - width
        if pad == 0:
            padded = multiplier
        elif signed:
            padded = Cat(multiplier, multiplier[-1].replicate(pad))
        else:
            padded = Cat(multiplier, C(0, pad))

        self._extended = Cat(C(0, 1), padded)
        self._encodings = [
            radix_encoder.encode(self._extended[r*shift:(r + 1)*shift + 1])
            for r in range(self.rows)
        ]

    def encoding(self, row):
        """Return the :class:`RadixEncode` of Booth digit ``row``."""
        return self._encodings[row]


class MultiplicandSelector:
    """Select multiples of the multiplicand from a Booth encoding.

    Parameters
    ----------
    radix : int
        Booth radix.
    multiplicand : Value
        Multiplicand operand. For signed multiplies, this includes the sign
        bit.
    signed : bool
        Interpret ``multiplicand`` as signed.

    Attributes
    ----------
    shift : int
        Column step between neighboring rows.
    width : int
        Number of bits produced per row, before any sign extension.
    multiples : list(Value)
        ``multiples[k - 1]`` is :math:`k` times the extended multiplicand.
    """

    def __init__(self, radix, multiplicand, *, signed):
        self.radix = radix
        self.multiplicand = multiplicand
        self.shift = exact_log2(radix)

        if signed:
            ext = Cat(multiplicand,
                      multiplicand[-1].replicate(self.shift)).as_signed()
        else:
            ext = Cat(multiplicand, C(0, self.shift))

        self.multiples = [ext * k for k in range(1, radix // 2 + 1)]

    @property
    def width(self):  # noqa: D102
        return len(self.multiplicand) + self.shift - 1

    def select(self, col, encode):
        """Return bit ``col`` of the multiple chosen by ``encode``.

        The result is ones-complemented for negative digits; the missing
        :math:`+1` is the row's sign, added by the sign extension logic.
        """
        bits = Cat(*(multiple[col] for multiple in self.multiples))
        return (encode.multiples & bits).any() ^ encode.sign
