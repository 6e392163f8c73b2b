"""Partial product matrix generation for Booth-recoded multipliers."""

import enum
import logging

from amaranth import C, Const, Mux, Value

from .encode import MultiplicandSelector, MultiplierEncoder
from .errors import ConfigurationError, SignExtensionError


logger = logging.getLogger(__name__)


class Cell:
    """A single bit of the partial product matrix.

    Parameters
    ----------
    value : Value(1)
        The bit.
    inverted : bool or None
        ``None`` for ordinary bits. Sign bits carry a tag recording whether
        ``value`` is the complement of the arithmetic sign it represents.

    Attributes
    ----------
    value : Value(1)
    inverted : bool or None
    """

    __slots__ = ("value", "inverted")

    def __init__(self, value, inverted=None):
        self.value = Value.cast(value)
        self.inverted = inverted

    @classmethod
    def const(cls, bit):
        """Create an untagged constant cell."""
        return cls(C(bit, 1))

    @property
    def is_sign(self):
        """``True`` if this cell carries a sign tag."""
        return self.inverted is not None

    def tagged(self, inverted=False):
        """Return a copy of this cell carrying a sign tag."""
        return Cell(self.value, inverted)

    # Combinators drop the tag; callers re-tag results that are sign bits.
    def __invert__(self):
        return Cell(~self.value)

    def __and__(self, other):
        return Cell(self.value & _as_value(other))

    def __or__(self, other):
        return Cell(self.value | _as_value(other))

    def __xor__(self, other):
        return Cell(self.value ^ _as_value(other))

    def __repr__(self):
        if self.is_sign:
            return f"Cell({self.value!r}, inverted={self.inverted})"
        return f"Cell({self.value!r})"


def _as_value(v):
    if isinstance(v, Cell):
        return v.value
    return Value.cast(v)


def _as_cell(v):
    if isinstance(v, Cell):
        return v
    return Cell(v)


def _mux_cell(cond, new, old):
    value = Mux(_as_value(cond), new.value, old.value)
    if new.is_sign:
        return Cell(value, new.inverted)
    if old.is_sign:
        return Cell(value, old.inverted)
    return Cell(value)


class PartialProductArray:
    """Rows of partial product bits, each placed at a column offset.

    All accessors take *absolute* column numbers, i.e. the column of the
    final sum. Accessing a column past the end of a row pads the row with
    constant zeros first.

    Attributes
    ----------
    partial_products : list(list(Cell))
        The rows; bit 0 of each row is its least significant.
    row_shift : list(int)
        Absolute column of bit 0 of each row.
    """

    def __init__(self):
        self.partial_products = []
        self.row_shift = []

    @property
    def rows(self):  # noqa: D102
        return len(self.partial_products)

    def max_width(self):
        """Return the column just past the most significant bit of any row."""
        return max((len(pp) + shift for (pp, shift) in
                    zip(self.partial_products, self.row_shift)), default=0)

    def _extend(self, row, local):
        product = self.partial_products[row]
        while len(product) <= local:
            product.append(Cell.const(0))

    def get(self, row, col):
        """Return the :class:`Cell` at absolute column ``col`` of ``row``."""
        local = col - self.row_shift[row]
        self._extend(row, local)
        return self.partial_products[row][local]

    def get_many(self, row, cols):
        """Return the cells at each absolute column in ``cols``."""
        cols = list(cols)
        self._extend(row, max(cols) - self.row_shift[row])
        return [self.partial_products[row][c - self.row_shift[row]]
                for c in cols]

    def _place(self, row, local, cell):
        product = self.partial_products[row]
        if local < len(product):
            product[local] = cell
        else:
            while len(product) < local:
                product.append(Cell.const(0))
            product.append(cell)

    def _place_mux(self, row, local, cond, cell):
        product = self.partial_products[row]
        if local < len(product):
            old = product[local]
        else:
            old = Cell.const(0)
        self._place(row, local, _mux_cell(cond, cell, old))

    def set(self, row, col, value):
        """Overwrite absolute column ``col`` of ``row`` with ``value``."""
        self._place(row, col - self.row_shift[row], _as_cell(value))

    def mux_set(self, row, col, cond, value):
        """Replace absolute column ``col`` of ``row`` with ``value`` if
        ``cond`` is set, keeping the existing bit otherwise.

        A sign tag on either operand survives the mux; the tag of ``value``
        wins if both are tagged.
        """
        self._place_mux(row, col - self.row_shift[row], cond, _as_cell(value))

    def set_range(self, row, col, values):
        """Overwrite consecutive columns of ``row`` starting at ``col``."""
        local = col - self.row_shift[row]
        for (i, v) in enumerate(values):
            self._place(row, local + i, _as_cell(v))

    def mux_set_range(self, row, col, cond, values):
        """:meth:`mux_set` consecutive columns starting at ``col``."""
        local = col - self.row_shift[row]
        for (i, v) in enumerate(values):
            self._place_mux(row, local + i, cond, _as_cell(v))

    def insert(self, row, col, value):
        """Splice ``value`` into ``row`` at absolute column ``col``.

        Bits at and above ``col`` move up one column. ``col`` may not lie
        past the end of the row.
        """
        self.insert_range(row, col, [value])

    def insert_range(self, row, col, values):
        """Splice ``values`` into ``row`` starting at absolute column
        ``col``."""
        product = self.partial_products[row]
        local = col - self.row_shift[row]
        if not 0 <= local <= len(product):
            raise IndexError(f"column {col} is outside row {row}")
        product[local:local] = [_as_cell(v) for v in values]

    def representation(self):
        """Draw the matrix as a dot diagram.

        Each line is one row, most significant column on the left. ``0`` and
        ``1`` are constants, ``s`` is a sign bit, ``S`` an inverted sign bit
        and ``.`` any other bit.
        """
        width = self.max_width()
        lines = []
        for (row, (pp, shift)) in enumerate(zip(self.partial_products,
                                                self.row_shift)):
            chars = []
            for col in reversed(range(width)):
                local = col - shift
                if local < 0 or local >= len(pp):
                    chars.append(" ")
                else:
                    chars.append(_cell_char(pp[local]))
            lines.append(f"{row:>3} {''.join(chars).rstrip()}")
        return "\n".join(lines)

    def __str__(self):
        return self.representation()


def _cell_char(cell):
    if isinstance(cell.value, Const):
        return str(cell.value.value & 1)
    if cell.is_sign:
        return "S" if cell.inverted else "s"
    return "."


class SignExtension(enum.Enum):
    """Sign extension applied to a partial product matrix.

    Attributes
    ----------
    NONE
        Leave rows as produced by the selector. The consumer must sign-extend
        each row and add its sign as a carry-in.
    COMPACT_RECT
        Fold every row's sign into the existing rows, so the matrix sums
        directly to the product without extra rows.
    """

    NONE = "none"
    COMPACT_RECT = "compact"


class PartialProductGenerator(PartialProductArray):  # noqa: DOC602,DOC603
    r"""Partial product matrix of a Booth-recoded multiply.

    Rows are built at construction time and sign-extended immediately using
    the requested strategy.

    Parameters
    ----------
    multiplicand : Value
        Multiplicand operand. For signed multiplies, this includes the sign
        bit.
    multiplier : Value
        Multiplier operand; this is the operand that gets Booth-recoded.
    radix_encoder : RadixEncoder
        Booth radix of the multiply.
    signed : bool
        Treat both operands as signed.
    sign_extension : SignExtension
        Sign extension strategy applied after the rows are built.

    Attributes
    ----------
    encoder : MultiplierEncoder
    selector : MultiplicandSelector
    signed : bool
    sign_extension : SignExtension
    is_sign_extended : bool
        Set once :meth:`sign_extend` has run.

    Raises
    ------
    ConfigurationError
        If ``multiplicand`` is narrower than the radix shift, or
        ``multiplier`` is narrower than the radix shift (plus a sign bit
        for signed multiplies).

    Notes
    -----
    The compact rectangular extension is an extension of Mohanty and
    Choubey's sign extension scheme to operands of differing widths. Each
    row's sign is folded into the low bits of that row through a short
    carry chain; the carry out lands in the spliced-in LSb of the next
    row, which is why rows past the first move down one column.
    The sign extension of all rows is collected into a short field ("Q") on
    top of the first row.
    """

    def __init__(self, multiplicand, multiplier, radix_encoder, *, signed,
                 sign_extension=SignExtension.COMPACT_RECT):
        super().__init__()
        shift = radix_encoder.shift

        if len(multiplicand) < shift:
            raise ConfigurationError(f"multiplicand width must be at least "
                                     f"{shift}")
        if len(multiplier) < shift + (1 if signed else 0):
            raise ConfigurationError(f"multiplier width must be at least "
                                     f"{shift + (1 if signed else 0)}")

        self.signed = signed
        self.sign_extension = SignExtension(sign_extension)
        self.is_sign_extended = False
        self.encoder = MultiplierEncoder(multiplier, radix_encoder,
                                         signed=signed)
        self.selector = MultiplicandSelector(radix_encoder.radix,
                                             multiplicand, signed=signed)

        logger.debug("building %d rows of %d bits (radix %d, %s)",
                     self.encoder.rows, self.selector.width,
                     radix_encoder.radix,
                     "signed" if signed else "unsigned")
        self._build()
        self.sign_extend()

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("partial products:\n%s", self.representation())

    @property
    def shift(self):  # noqa: D102
        return self.selector.shift

    @property
    def multiplicand(self):  # noqa: D102
        return self.selector.multiplicand

    @property
    def multiplier(self):  # noqa: D102
        return self.encoder.multiplier

    def _build(self):
        for row in range(self.encoder.rows):
            encode = self.encoder.encoding(row)
            self.partial_products.append([
                Cell(self.selector.select(col, encode))
                for col in range(self.selector.width)
            ])
            self.row_shift.append(row * self.shift)

    def sign_extend(self):
        """Apply :attr:`sign_extension` to the matrix.

        Raises
        ------
        SignExtensionError
            If the matrix was already sign-extended.
        """
        if self.is_sign_extended:
            raise SignExtensionError("partial product array already "
                                     "sign-extended")
        self.is_sign_extended = True

        if self.sign_extension == SignExtension.COMPACT_RECT:
            self._sign_extend_compact_rect()

    def _add_stop_sign_flip(self, row, sign):
        addend = self.partial_products[row]
        if self.signed:
            addend[-1] = ~addend[-1]
        else:
            addend.append(sign)

    def _add_stop_sign(self, row, sign):
        addend = self.partial_products[row]
        if self.signed:
            addend[-1] = sign
        else:
            addend.append(sign)

    def _sign_extend_compact_rect(self):
        shift = self.shift
        last_row = self.rows - 1
        first_addend = self.partial_products[0]

        q_start = self.selector.width - (1 if self.signed else 0)
        last_row_sign_pos = shift * last_row
        # Distance between the first row's sign field and the sign of the
        # last row. Negative when the last row's sign lies above Q.
        align = q_start - last_row_sign_pos

        logger.debug("compact sign extension: rows=%d shift=%d align=%d",
                     self.rows, shift, align)

        signs = [Cell(self.encoder.encoding(r).sign, False)
                 for r in range(self.rows)]

        # propagate[row][k]: the row's sign and its bits below k are all set,
        # i.e. adding the sign at bit 0 carries into bit k.
        propagate = []
        for row in range(self.rows):
            addend = self.partial_products[row]
            chain = [signs[row]]
            chain.extend(addend[:2*(shift - 1)])
            if row == last_row:
                col = 2*(shift - 1)
                while len(chain) <= align:
                    chain.append(addend[col].tagged())
                    col += 1
            for col in range(1, len(chain)):
                chain[col] = chain[col] & chain[col - 1]
            propagate.append(chain)

        # m: low bits of each row with its sign already added in.
        m = []
        for row in range(self.rows):
            limit = align if row == last_row else shift - 1
            addend = self.partial_products[row]
            m.append([addend[c] ^ propagate[row][c]
                      for c in range(max(limit, 0))])

        remainders = [propagate[row][shift - 1] for row in range(last_row)]
        remainders.append(propagate[last_row][max(align, 0)])

        for row in range(self.rows):
            if row > 0:
                self.set_range(row, self.row_shift[row], m[row])
                self._add_stop_sign_flip(row, (~signs[row]).tagged(True))
                self.insert(row, self.row_shift[row], remainders[row - 1])
                self.insert_range(row,
                                  self.row_shift[row] +
                                  len(self.partial_products[row]),
                                  [Cell.const(1) for _ in range(shift - 1)])
                self.row_shift[row] -= 1
            else:
                self.set_range(0, self.row_shift[0], m[0])

        # Sign extension field on top of the first row. The last row's sign
        # either collides with it or is placed in another row further up.
        if self.signed:
            first_sign = first_addend[-1].tagged()
        else:
            first_sign = signs[0]
        last_sign = remainders[last_row].tagged()

        q_len = shift + 1
        insert_sign_pos = max(0, -align)
        q = [first_sign] * min(q_len, insert_sign_pos)
        if insert_sign_pos < q_len:
            q.append((first_sign ^ last_sign).tagged())
            if insert_sign_pos == q_len - 1:
                q[insert_sign_pos] = (~q[insert_sign_pos]).tagged(True)
                q.append((~(first_sign | q[insert_sign_pos])).tagged(True))
            else:
                positive = (first_sign & ~last_sign).tagged()
                q.extend([positive] * (q_len - insert_sign_pos - 2))
                q.append((~(first_sign & ~last_sign)).tagged(True))

        last_sign_outside_q = -align >= len(q)
        if last_sign_outside_q:
            q[-1] = (~first_sign).tagged(True)

        self._add_stop_sign(0, q[0])
        first_addend.extend(q[1:])

        if last_sign_outside_q:
            final_carry_pos = (last_row_sign_pos - self.selector.width -
                               shift + (1 if self.signed else 0))
            final_carry_row = final_carry_pos // shift
            logger.debug("last row sign lands in row %d", final_carry_row)
            # Only ever pads and appends; the row must end at or below the
            # target column.
            end = (self.row_shift[final_carry_row] +
                   len(self.partial_products[final_carry_row]))
            if end > last_row_sign_pos:
                raise SignExtensionError(f"row {final_carry_row} already "
                                         f"occupies column "
                                         f"{last_row_sign_pos}")
            self.set(final_carry_row, last_row_sign_pos,
                     remainders[last_row])

        if shift == 1:
            self.partial_products[last_row].append(Cell.const(1))
