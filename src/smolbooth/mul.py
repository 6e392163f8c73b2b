"""Booth multiplier components."""

from amaranth import Cat, Module, Signal, signed, unsigned
from amaranth.lib.wiring import In, Out, Component

from .encode import RadixEncoder
from .pp import PartialProductGenerator, SignExtension


class BoothMul(Component):  # noqa: DOC602,DOC603
    r"""Combinational Booth multiplier.

    The multiplier ``b`` is Booth-recoded in the given radix, the partial
    products are generated and sign-extended by a
    :class:`~smolbooth.pp.PartialProductGenerator`, and the rows are added
    together.

    * The product is available in the same cycle as the inputs; there is
      no handshaking.

    Parameters
    ----------
    width_a : int
        Width in bits of the multiplicand ``a``. For signed multiplies, this
        includes the sign bit.
    width_b : int, optional
        Width in bits of the multiplier ``b``. Defaults to ``width_a``.
    radix : int
        Booth radix; a power of two, 2 or greater.
    signed : bool
        Treat ``a``, ``b`` and ``o`` as signed.
    sign_extension : SignExtension
        Sign extension strategy for the partial products.
    debug : bool, optional
        Enable debugging signals.

    Attributes
    ----------
    width_a : int
    width_b : int
    a : In(width_a)
        The multiplicand.
    b : In(width_b)
        The multiplier.
    o : Out(width_a + width_b)
        The product :math:`a * b`.
    ppg : PartialProductGenerator
        The partial product matrix. It is built on construction, so invalid
        widths or radices raise immediately.
    debug: bool
        Flag which indicates whether internal debugging :class:`Signal`\s are
        enabled or not.
    probes : list(Signal)
        With :attr:`debug`, one ``addend_<row>`` signal per row, driven
        with that row at its column offset. Empty otherwise.

    Raises
    ------
    ConfigurationError
        If the operand widths are too narrow for ``radix``, or ``radix`` is
        not a power of two.

    Notes
    -----
    * With :attr:`SignExtension.COMPACT_RECT`, rows are added as unsigned
      values; the matrix alone encodes every sign.

    * With :attr:`SignExtension.NONE`, each row is sign-extended (using the
      Booth sign for unsigned operands) and its sign is added as a carry-in
      at the row's LSb, like a textbook Booth multiplier.

    Future Directions
    -----------------

    * The rows are summed with Amaranth's ``+`` and left to the synthesizer.
      A Dadda or Wallace column compressor operating directly on
      :attr:`PartialProductGenerator.partial_products` would make the
      compact matrix pay off.
    """

    def __init__(self, width_a=8, width_b=None, *, radix=4, signed=False,
                 sign_extension=SignExtension.COMPACT_RECT, debug=False):
        self.width_a = width_a
        self.width_b = width_a if width_b is None else width_b
        self.signed = signed
        self.debug = debug

        shape = _shape(signed)
        super().__init__({
            "a": In(shape(self.width_a)),
            "b": In(shape(self.width_b)),
            "o": Out(shape(self.width_a + self.width_b))
        })

        self.ppg = PartialProductGenerator(self.a, self.b,
                                           RadixEncoder(radix),
                                           signed=signed,
                                           sign_extension=sign_extension)

        self.probes = []
        if self.debug:
            self.probes = [Signal(addend.shape(), name=f"addend_{row}")
                           for (row, addend) in enumerate(self.addends())]

    def addends(self):
        """Return each row of the matrix as a value at its column offset."""
        ppg = self.ppg
        addends = []
        for (row, (pp, shift)) in enumerate(zip(ppg.partial_products,
                                                ppg.row_shift)):
            addend = Cat(*(c.value for c in pp))

            if ppg.sign_extension == SignExtension.NONE:
                sign = ppg.encoder.encoding(row).sign
                if not self.signed:
                    addend = Cat(addend, sign)
                addend = addend.as_signed() + sign

            addends.append(addend << shift)
        return addends

    def elaborate(self, platform):  # noqa: D102
        m = Module()

        addends = self.addends()
        if self.debug:
            for (probe, addend) in zip(self.probes, addends):
                m.d.comb += probe.eq(addend)
            addends = self.probes

        m.d.comb += self.o.eq(sum(addends))

        return m


def _shape(is_signed):
    return signed if is_signed else unsigned
