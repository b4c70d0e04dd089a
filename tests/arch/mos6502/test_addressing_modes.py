# tests/arch/mos6502/test_addressing_modes.py
"""
アドレッシングモード解決関数の単体テスト。
"""
import pytest

from nes_core_tracer.transport.bus import Bus
from nes_core_tracer.arch.mos6502.state import Mos6502CpuState
from nes_core_tracer.arch.mos6502.instructions import base

# @intent:test_suite 各アドレッシングモードの実効アドレス、ページ跨ぎ判定、オペランド文字列を検証します。


@pytest.fixture
def bus():
    return Bus()


def write_bytes(bus, address, data):
    for offset, byte in enumerate(data):
        bus.write(address + offset, byte)


class TestSimpleModes:
    def test_implied_has_no_address(self, bus):
        res = base.addr_implied(0x0200, bus, Mos6502CpuState())
        assert res.address is None
        assert res.operand_bytes == []

    # @intent:test_case_immediate Immediateの実効アドレスは命令の次のバイト。
    def test_immediate(self, bus):
        write_bytes(bus, 0x0200, [0xA9, 0x42])
        res = base.addr_immediate(0x0200, bus, Mos6502CpuState())
        assert res.address == 0x0201
        assert res.value == 0x42
        assert res.operand_str == "#$42"

    def test_zeropage(self, bus):
        write_bytes(bus, 0x0200, [0xA5, 0x80])
        res = base.addr_zeropage(0x0200, bus, Mos6502CpuState())
        assert res.address == 0x0080
        assert res.value is None
        assert res.operand_str == "$80"

    # @intent:test_case_wrap ゼロページインデックスはページ0内で折り返す。
    def test_zeropage_x_wraps(self, bus):
        write_bytes(bus, 0x0200, [0xB5, 0xFF])
        res = base.addr_zeropage_x(0x0200, bus, Mos6502CpuState(x=0x02))
        assert res.address == 0x0001
        assert res.operand_str == "$FF,X"

    def test_zeropage_y_wraps(self, bus):
        write_bytes(bus, 0x0200, [0xB6, 0xF0])
        res = base.addr_zeropage_y(0x0200, bus, Mos6502CpuState(y=0x20))
        assert res.address == 0x0010

    def test_absolute(self, bus):
        write_bytes(bus, 0x0200, [0xAD, 0x34, 0x12])
        res = base.addr_absolute(0x0200, bus, Mos6502CpuState())
        assert res.address == 0x1234
        assert res.operand_bytes == [0x34, 0x12]
        assert res.operand_str == "$1234"


class TestIndexedModes:
    @pytest.mark.parametrize("index, expected, crossed", [
        (0x01, 0x1235, False),
        (0xCC, 0x1300, True),
    ])
    def test_absolute_x_page_cross(self, bus, index, expected, crossed):
        write_bytes(bus, 0x0200, [0xBD, 0x34, 0x12])
        res = base.addr_absolute_x(0x0200, bus, Mos6502CpuState(x=index))
        assert res.address == expected
        assert res.page_crossed is crossed

    def test_absolute_y_wraps_16bit(self, bus):
        write_bytes(bus, 0x0200, [0xB9, 0xFF, 0xFF])
        res = base.addr_absolute_y(0x0200, bus, Mos6502CpuState(y=0x02))
        assert res.address == 0x0001
        assert res.page_crossed

    # @intent:test_case_indexed_indirect (zp,X) はポインタ位置もポインタの上位バイトもゼロページ内で折り返す。
    def test_indexed_indirect(self, bus):
        write_bytes(bus, 0x0200, [0xA1, 0x20])
        bus.write(0x0024, 0x78)
        bus.write(0x0025, 0x56)
        res = base.addr_indexed_indirect(0x0200, bus, Mos6502CpuState(x=0x04))
        assert res.address == 0x5678
        assert res.operand_str == "($20,X)"

    def test_indexed_indirect_pointer_wraps(self, bus):
        write_bytes(bus, 0x0200, [0xA1, 0xFE])
        bus.write(0x00FF, 0x34)
        bus.write(0x0000, 0x12)
        res = base.addr_indexed_indirect(0x0200, bus, Mos6502CpuState(x=0x01))
        assert res.address == 0x1234

    # @intent:test_case_indirect_indexed ($zp),Y はY加算後にページ内で折り返さず、ページ跨ぎを報告する。
    def test_indirect_indexed_crosses_page(self, bus):
        write_bytes(bus, 0x0200, [0xB1, 0x10])
        bus.write(0x0010, 0xF0)
        bus.write(0x0011, 0x02)
        res = base.addr_indirect_indexed(0x0200, bus, Mos6502CpuState(y=0x20))
        assert res.address == 0x0310
        assert res.page_crossed
        assert res.operand_str == "($10),Y"

    def test_indirect_indexed_pointer_wraps(self, bus):
        write_bytes(bus, 0x0200, [0xB1, 0xFF])
        bus.write(0x00FF, 0x00)
        bus.write(0x0000, 0x04)
        res = base.addr_indirect_indexed(0x0200, bus, Mos6502CpuState(y=0x05))
        assert res.address == 0x0405
        assert not res.page_crossed


class TestJumpModes:
    # @intent:test_case_indirect_bug ポインタ下位が0xFFのとき、上位バイトは同じページの先頭から読む。
    def test_indirect_page_boundary_bug(self, bus):
        write_bytes(bus, 0x0200, [0x6C, 0xFF, 0x02])
        bus.write(0x02FF, 0x34)
        bus.write(0x0200 + 0x100, 0x99)  # 正しい上位バイトの位置 (読まれない)
        # 0x0200 にはオペコード 0x6C が置かれており、これが上位バイトとして読まれる
        res = base.addr_indirect(0x0200, bus, Mos6502CpuState())
        assert res.address == 0x6C34
        assert res.operand_str == "($02FF)"

    def test_indirect(self, bus):
        write_bytes(bus, 0x0200, [0x6C, 0x10, 0x03])
        bus.write(0x0310, 0xCD)
        bus.write(0x0311, 0xAB)
        res = base.addr_indirect(0x0200, bus, Mos6502CpuState())
        assert res.address == 0xABCD

    @pytest.mark.parametrize("offset, expected", [
        (0x10, 0x0212),
        (0xFC, 0x01FE),
        (0x80, 0x0182),
    ])
    def test_relative(self, bus, offset, expected):
        write_bytes(bus, 0x0200, [0xD0, offset])
        res = base.addr_relative(0x0200, bus, Mos6502CpuState())
        assert res.address == expected
        assert res.operand_bytes == [offset]
