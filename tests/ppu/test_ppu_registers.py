# tests/ppu/test_ppu_registers.py
"""
PPUのCPU側レジスタ (0x2000-0x2007) の単体テスト。
"""
import pytest

from nes_core_tracer.ppu.ppu import Ppu

# @intent:test_suite レジスタの読み書きによる内部状態 (v/t/トグル/バッファ/OAM) の変化を検証します。

PPUCTRL, PPUMASK, PPUSTATUS, OAMADDR, OAMDATA, PPUSCROLL, PPUADDR, PPUDATA = range(0x2000, 0x2008)


@pytest.fixture
def ppu():
    return Ppu()


def clock_to_vblank(ppu):
    for _ in range(241 * 341 + 2):
        ppu.clock()


def set_address(ppu, address):
    ppu.cpu_write(PPUADDR, address >> 8)
    ppu.cpu_write(PPUADDR, address & 0xFF)


class TestStatus:
    # @intent:test_case_status PPUSTATUSの読み出しはVBlankとアドレスラッチをクリアする。
    def test_read_clears_vblank_and_toggle(self, ppu):
        clock_to_vblank(ppu)
        ppu.cpu_write(PPUSCROLL, 0x10)
        assert ppu.write_toggle

        assert ppu.cpu_read(PPUSTATUS) & 0x80
        assert not ppu.write_toggle
        assert ppu.cpu_read(PPUSTATUS) & 0x80 == 0

    def test_write_only_registers_read_zero(self, ppu):
        ppu.cpu_write(PPUCTRL, 0xFF)
        ppu.cpu_write(PPUMASK, 0xFF)
        assert ppu.cpu_read(PPUCTRL) == 0
        assert ppu.cpu_read(PPUMASK) == 0
        assert ppu.cpu_read(PPUSCROLL) == 0
        assert ppu.cpu_read(PPUADDR) == 0

    # @intent:test_case_mirror レジスタは下位3bitでデコードされる。
    def test_register_mirror(self, ppu):
        ppu.cpu_write(0x3FF9, 0x1E)  # PPUMASK
        assert ppu.mask == 0x1E


class TestScrollAndAddress:
    def test_ctrl_sets_nametable_bits_of_t(self, ppu):
        ppu.cpu_write(PPUCTRL, 0x03)
        assert ppu.t & 0x0C00 == 0x0C00
        ppu.cpu_write(PPUCTRL, 0x00)
        assert ppu.t == 0x0000

    # @intent:test_case_scroll PPUSCROLLの1回目はcoarse X/fine X、2回目はcoarse Y/fine Yをtへ設定する。
    def test_scroll_writes(self, ppu):
        ppu.cpu_write(PPUSCROLL, 0x7D)
        assert ppu.t == 0x000F
        assert ppu.fine_x == 5
        ppu.cpu_write(PPUSCROLL, 0x5E)
        assert ppu.t == 0x616F
        assert not ppu.write_toggle
        assert ppu.v == 0x0000

    def test_address_writes_copy_t_to_v(self, ppu):
        ppu.cpu_write(PPUADDR, 0x7F)
        assert ppu.t == 0x3F00  # bit14はクリアされる
        assert ppu.v == 0x0000
        ppu.cpu_write(PPUADDR, 0xFF)
        assert ppu.t == 0x3FFF
        assert ppu.v == 0x3FFF


class TestData:
    # @intent:test_case_buffer PPUDATAの読み出しは1回遅れのバッファを返す。
    def test_buffered_read(self, ppu):
        set_address(ppu, 0x2108)
        ppu.cpu_write(PPUDATA, 0xAB)
        ppu.cpu_write(PPUDATA, 0xCD)

        set_address(ppu, 0x2108)
        assert ppu.cpu_read(PPUDATA) == 0x00
        assert ppu.cpu_read(PPUDATA) == 0xAB
        assert ppu.cpu_read(PPUDATA) == 0xCD

    # @intent:test_case_palette パレット領域はバッファを経由せず即座に読める。
    def test_palette_read_is_immediate(self, ppu):
        set_address(ppu, 0x3F05)
        ppu.cpu_write(PPUDATA, 0x2A)
        set_address(ppu, 0x3F05)
        assert ppu.cpu_read(PPUDATA) == 0x2A
        assert ppu.v == 0x3F06

    def test_increment_by_one(self, ppu):
        set_address(ppu, 0x2000)
        ppu.cpu_write(PPUDATA, 0x01)
        ppu.cpu_write(PPUDATA, 0x02)
        assert ppu.v == 0x2002
        assert ppu.ppu_read(0x2001) == 0x02

    def test_increment_by_32(self, ppu):
        ppu.cpu_write(PPUCTRL, 0x04)
        set_address(ppu, 0x2000)
        ppu.cpu_write(PPUDATA, 0x01)
        ppu.cpu_write(PPUDATA, 0x02)
        assert ppu.v == 0x2040
        assert ppu.ppu_read(0x2000) == 0x01
        assert ppu.ppu_read(0x2020) == 0x02

    def test_address_wraps_at_14_bits(self, ppu):
        set_address(ppu, 0x3FFF)
        ppu.cpu_write(PPUDATA, 0x00)
        assert ppu.v == 0x0000


class TestOam:
    def test_oamdata_write_increments_address(self, ppu):
        ppu.cpu_write(OAMADDR, 0xFE)
        ppu.cpu_write(OAMDATA, 0x11)
        ppu.cpu_write(OAMDATA, 0x22)
        ppu.cpu_write(OAMDATA, 0x33)
        assert ppu.oam_addr == 0x01
        assert ppu.oam[0xFE] == 0x11
        assert ppu.oam[0xFF] == 0x22
        assert ppu.oam[0x00] == 0x33

    def test_oamdata_read_does_not_increment(self, ppu):
        ppu.cpu_write(OAMADDR, 0x10)
        ppu.cpu_write(OAMDATA, 0x5A)
        ppu.cpu_write(OAMADDR, 0x10)
        assert ppu.cpu_read(OAMDATA) == 0x5A
        assert ppu.cpu_read(OAMDATA) == 0x5A
        assert ppu.oam_addr == 0x10

    def test_oam_dma_keeps_oam_addr(self, ppu):
        ppu.cpu_write(OAMADDR, 0x04)
        ppu.oam_dma(range(256))
        assert ppu.oam_addr == 0x04
        assert ppu.oam[0x04] == 0
        assert ppu.oam[0x03] == 0xFF

    def test_reset_keeps_oam(self, ppu):
        ppu.oam_dma([0x42] * 256)
        ppu.cpu_write(PPUCTRL, 0x80)
        ppu.reset()
        assert ppu.oam == bytes([0x42] * 256)
        assert ppu.ctrl == 0


class TestNmiOutput:
    def test_vblank_requests_nmi_when_enabled(self, ppu):
        ppu.cpu_write(PPUCTRL, 0x80)
        clock_to_vblank(ppu)
        assert ppu.nmi_requested

    def test_vblank_without_nmi_enable(self, ppu):
        clock_to_vblank(ppu)
        assert not ppu.nmi_requested
        assert ppu.status & 0x80

    # @intent:test_case_late_nmi VBlank中にNMIを有効化すると即座に要求が立つ。既に有効な場合は再要求しない。
    def test_enabling_nmi_during_vblank(self, ppu):
        clock_to_vblank(ppu)
        ppu.cpu_write(PPUCTRL, 0x80)
        assert ppu.nmi_requested

        ppu.nmi_requested = False
        ppu.cpu_write(PPUCTRL, 0x80)
        assert not ppu.nmi_requested

    def test_enabling_nmi_outside_vblank(self, ppu):
        ppu.cpu_write(PPUCTRL, 0x80)
        assert not ppu.nmi_requested

    def test_enabling_nmi_after_status_read(self, ppu):
        clock_to_vblank(ppu)
        ppu.cpu_read(PPUSTATUS)
        ppu.cpu_write(PPUCTRL, 0x80)
        assert not ppu.nmi_requested
