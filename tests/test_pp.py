import pytest
from amaranth import Const, Signal
from smolbooth.encode import RadixEncoder
from smolbooth.errors import ConfigurationError, SignExtensionError
from smolbooth.pp import (Cell, PartialProductArray, PartialProductGenerator,
                          SignExtension)


def is_const(cell, bit):
    return isinstance(cell.value, Const) and cell.value.value == bit


@pytest.fixture
def ppa():
    # Two rows of four bits, the second starting at column 2.
    ppa = PartialProductArray()
    for (row, shift) in enumerate((0, 2)):
        ppa.partial_products.append([Cell(Signal(name=f"pp_{row}_{i}"))
                                     for i in range(4)])
        ppa.row_shift.append(shift)
    return ppa


def test_get_absolute(ppa):
    assert ppa.get(1, 2) is ppa.partial_products[1][0]
    assert ppa.get(1, 5) is ppa.partial_products[1][3]


def test_get_past_end_pads_zero(ppa):
    cell = ppa.get(1, 8)

    assert is_const(cell, 0)
    assert len(ppa.partial_products[1]) == 7
    assert all(is_const(c, 0) for c in ppa.partial_products[1][4:])


def test_set_after_get_overwrites_padding(ppa):
    ppa.get(1, 8)
    bit = Signal()
    ppa.set(1, 8, bit)

    assert len(ppa.partial_products[1]) == 7
    assert ppa.get(1, 8).value is bit


def test_get_many(ppa):
    cells = ppa.get_many(0, [1, 0, 5])

    assert cells[0] is ppa.partial_products[0][1]
    assert cells[1] is ppa.partial_products[0][0]
    assert is_const(cells[2], 0)
    assert len(ppa.partial_products[0]) == 6


def test_set_past_end(ppa):
    bit = Signal()
    ppa.set(0, 6, bit)

    row = ppa.partial_products[0]
    assert len(row) == 7
    assert is_const(row[4], 0) and is_const(row[5], 0)
    assert row[6].value is bit


def test_set_range(ppa):
    bits = [Signal(name=f"b{i}") for i in range(3)]
    ppa.set_range(1, 4, bits)

    row = ppa.partial_products[1]
    assert len(row) == 5
    assert all(c.value is b for (c, b) in zip(row[2:], bits))


def test_mux_set_keeps_tags(ppa):
    cond = Signal()

    ppa.set(0, 0, Cell(Signal(), inverted=True))
    ppa.mux_set(0, 0, cond, Signal())
    assert ppa.get(0, 0).inverted is True

    ppa.mux_set(0, 0, cond, Cell(Signal(), inverted=False))
    assert ppa.get(0, 0).inverted is False

    ppa.mux_set(0, 1, cond, Signal())
    assert not ppa.get(0, 1).is_sign


def test_mux_set_past_end(ppa):
    cond = Signal()
    ppa.mux_set(0, 5, cond, Cell(Signal(), inverted=True))

    row = ppa.partial_products[0]
    assert len(row) == 6
    assert is_const(row[4], 0)
    assert row[5].inverted is True
    assert not isinstance(row[5].value, Signal)


def test_mux_set_range(ppa):
    cond = Signal()
    old = list(ppa.partial_products[1])
    ppa.mux_set_range(1, 4, cond, [Signal(), Signal(), Signal()])

    row = ppa.partial_products[1]
    assert len(row) == 5
    assert row[:2] == old[:2]
    assert all(c not in old for c in row[2:])


def test_insert(ppa):
    old = list(ppa.partial_products[1])
    bit = Signal()
    ppa.insert(1, 2, bit)

    row = ppa.partial_products[1]
    assert row[0].value is bit
    assert row[1:] == old


def test_insert_range_at_end(ppa):
    ppa.insert_range(0, 4, [Cell.const(1), Cell.const(1)])
    assert all(is_const(c, 1) for c in ppa.partial_products[0][4:])


def test_insert_out_of_row(ppa):
    with pytest.raises(IndexError):
        ppa.insert(1, 7, Signal())
    with pytest.raises(IndexError):
        ppa.insert(1, 1, Signal())


def test_max_width(ppa):
    assert ppa.max_width() == 6
    ppa.get(0, 9)
    assert ppa.max_width() == 10


def test_cell_tags():
    s = Cell(Signal(), inverted=False)

    assert s.is_sign
    assert not (~s).is_sign
    assert (~s).tagged(True).inverted is True
    assert not Cell.const(0).is_sign


def mk_ppg(width_a, width_b, radix, signed,
           sign_extension=SignExtension.COMPACT_RECT):
    return PartialProductGenerator(Signal(width_a), Signal(width_b),
                                   RadixEncoder(radix), signed=signed,
                                   sign_extension=sign_extension)


@pytest.mark.parametrize("width_a,width_b,radix,signed",
                         [(1, 8, 4, False),
                          (2, 8, 8, True),
                          (8, 1, 4, False),
                          (8, 2, 4, True),
                          (8, 3, 8, True)])
def test_narrow_operands(width_a, width_b, radix, signed):
    with pytest.raises(ConfigurationError):
        mk_ppg(width_a, width_b, radix, signed)


@pytest.mark.parametrize("radix", [0, 1, 3, 6, "4"])
def test_bad_radix(radix):
    with pytest.raises(ValueError):
        RadixEncoder(radix)


@pytest.mark.parametrize("width_a,width_b,radix,signed,rows",
                         [(8, 8, 4, True, 4),
                          (8, 8, 4, False, 5),
                          (8, 7, 4, True, 4),
                          (8, 7, 4, False, 4),
                          (8, 6, 4, True, 3),
                          (8, 6, 4, False, 4),
                          (8, 8, 8, True, 3),
                          (8, 8, 2, False, 9)])
def test_rows_unextended(width_a, width_b, radix, signed, rows):
    ppg = mk_ppg(width_a, width_b, radix, signed, SignExtension.NONE)
    shift = ppg.shift

    assert ppg.rows == rows
    assert ppg.row_shift == [r*shift for r in range(rows)]
    assert all(len(pp) == width_a + shift - 1 for pp in ppg.partial_products)


def test_compact_row_shifts():
    ppg = mk_ppg(8, 8, 4, True)
    assert ppg.row_shift == [0, 1, 3, 5]


@pytest.mark.parametrize("sign_extension", list(SignExtension))
def test_sign_extend_twice(sign_extension):
    ppg = mk_ppg(8, 8, 4, True, sign_extension)
    assert ppg.is_sign_extended

    before = [list(pp) for pp in ppg.partial_products]
    with pytest.raises(SignExtensionError, match="already sign-extended"):
        ppg.sign_extend()
    assert ppg.partial_products == before


@pytest.mark.parametrize("signed", [True, False])
def test_radix2_trailing_one(signed):
    ppg = mk_ppg(4, 4, 2, signed)
    assert is_const(ppg.partial_products[-1][-1], 1)


@pytest.mark.parametrize("width_a,width_b,radix,signed",
                         [(4, 4, 2, True), (4, 4, 4, False),
                          (4, 9, 4, True), (6, 10, 8, True),
                          (8, 8, 16, False)])
def test_max_width_covers_product(width_a, width_b, radix, signed):
    assert mk_ppg(width_a, width_b, radix, signed).max_width() >= \
        width_a + width_b


# The last row ends at rows*shift + (width_a + shift - 1), less one for
# signed operands, plus the trailing one at radix 2. Signed multipliers
# whose width is not a multiple of the shift come out wider than the product.
@pytest.mark.parametrize("width_a,width_b,radix,signed,width",
                         [(4, 4, 2, True, 8),
                          (4, 4, 2, False, 10),
                          (4, 6, 2, True, 10),
                          (4, 4, 4, True, 8),
                          (4, 4, 4, False, 11),
                          (4, 5, 4, True, 10),
                          (2, 3, 4, True, 6),
                          (5, 4, 4, False, 12),
                          (4, 7, 4, True, 12),
                          (4, 7, 4, False, 13),
                          (3, 4, 8, False, 11),
                          (4, 4, 8, True, 11),
                          (4, 4, 8, False, 12),
                          (5, 6, 8, True, 12),
                          (4, 5, 16, True, 14),
                          (4, 4, 16, False, 15)])
def test_max_width_exact(width_a, width_b, radix, signed, width):
    assert mk_ppg(width_a, width_b, radix, signed).max_width() == width


def test_last_sign_spliced_after_row():
    # 4x10 radix 4: the last row's sign lies above the first row's sign
    # field and is appended right after row 1.
    ppg = mk_ppg(4, 10, 4, True)

    assert ppg.row_shift[1] == 1
    assert len(ppg.partial_products[1]) == 8
    assert ppg.row_shift[1] + len(ppg.partial_products[1]) - 1 == 8


def test_last_sign_splice_collision():
    ppg = mk_ppg(4, 10, 4, True, SignExtension.NONE)
    ppg.get(1, 12)
    ppg.sign_extension = SignExtension.COMPACT_RECT
    ppg.is_sign_extended = False

    with pytest.raises(SignExtensionError, match="already occupies column 8"):
        ppg.sign_extend()


def test_representation():
    ppg = mk_ppg(4, 4, 4, True)
    assert ppg.representation() == "  0  Sss....\n  1 1......"
    assert str(ppg) == ppg.representation()


def test_signs_tagged_unsigned():
    ppg = mk_ppg(4, 4, 4, False)

    # Unsigned rows past the first end in their negated Booth sign, followed
    # by the constant ones of the extension.
    for pp in ppg.partial_products[1:]:
        assert pp[-2].inverted is True
        assert is_const(pp[-1], 1)
