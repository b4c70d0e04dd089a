# tests/cartridge/test_cartridge.py
"""
nes_core_tracer.cartridge.cartridgeモジュールの単体テスト。
"""
import pytest

from nes_core_tracer.cartridge.cartridge import Cartridge
from nes_core_tracer.cartridge.mappers import UnsupportedMapperError
from nes_core_tracer.common.types import Mirroring
from nes_core_tracer.loader.ines import FormatError, parse_ines

# @intent:test_suite カートリッジのPRG/CHRアクセス、バンク切り替え、構築時の検証を検証します。


def banks(*values, size):
    return b"".join(bytes([v]) * size for v in values)


class TestCartridgeNrom:
    # @intent:test_case_mirror 16KBのPRGは0x8000と0xC000にミラーされることを検証します。
    def test_16k_prg_is_mirrored(self):
        prg = bytearray(0x4000)
        prg[0x0123] = 0x42
        cart = Cartridge(bytes(prg), bytes(0x2000))
        assert cart.cpu_read(0x8123) == 0x42
        assert cart.cpu_read(0xC123) == 0x42

    def test_32k_prg_is_direct(self):
        cart = Cartridge(banks(0x11, 0x22, size=0x4000), bytes(0x2000))
        assert cart.cpu_read(0x8000) == 0x11
        assert cart.cpu_read(0xC000) == 0x22
        assert cart.prg_banks == 2

    # @intent:test_case_rom PRG/CHR-ROMへの書き込みは無視されることを検証します。
    def test_rom_writes_are_ignored(self):
        cart = Cartridge(banks(0x11, size=0x4000), banks(0x33, size=0x2000))
        cart.cpu_write(0x8000, 0xFF)
        cart.ppu_write(0x0000, 0xFF)
        assert cart.cpu_read(0x8000) == 0x11
        assert cart.ppu_read(0x0000) == 0x33

    # @intent:test_case_chr_ram CHRバンク数0の場合はCHRが書き込み可能なRAMとなることを検証します。
    def test_chr_ram_is_writable(self):
        cart = Cartridge(bytes(0x4000))
        assert cart.has_chr_ram
        cart.ppu_write(0x1FFF, 0xA5)
        assert cart.ppu_read(0x1FFF) == 0xA5

    def test_mirroring_is_reported(self):
        assert Cartridge(bytes(0x4000), mirroring=Mirroring.VERTICAL).mirroring == Mirroring.VERTICAL
        assert Cartridge(bytes(0x4000)).mirroring == Mirroring.HORIZONTAL


class TestCartridgeCnrom:
    # @intent:test_case_bank_switch PRG窓への書き込みでCHRバンクが切り替わることを検証します。
    def test_bank_select_changes_ppu_reads(self):
        cart = Cartridge(bytes(0x8000), banks(0x00, 0x11, 0x22, 0x33, size=0x2000), mapper_id=3)
        assert cart.ppu_read(0x0000) == 0x00
        for bank, expected in enumerate((0x00, 0x11, 0x22, 0x33)):
            cart.cpu_write(0x8000, bank)
            assert cart.ppu_read(0x0000) == expected
            assert cart.ppu_read(0x1FFF) == expected

    def test_bank_select_does_not_modify_prg(self):
        prg = bytearray(0x8000)
        prg[0] = 0x4C
        cart = Cartridge(bytes(prg), banks(0x00, 0x11, size=0x2000), mapper_id=3)
        cart.cpu_write(0x8000, 0x01)
        assert cart.cpu_read(0x8000) == 0x4C

    def test_reset_selects_bank_zero(self):
        cart = Cartridge(bytes(0x4000), banks(0x00, 0x11, size=0x2000), mapper_id=3)
        cart.cpu_write(0xFFFF, 0x01)
        cart.reset()
        assert cart.ppu_read(0x0000) == 0x00


class TestCartridgeConstruction:
    def test_invalid_prg_size_raises(self):
        with pytest.raises(ValueError):
            Cartridge(b"")
        with pytest.raises(ValueError):
            Cartridge(bytes(0x1000))

    def test_invalid_chr_size_raises(self):
        with pytest.raises(ValueError):
            Cartridge(bytes(0x4000), bytes(0x100))

    # @intent:test_case_error 未実装のマッパー番号はUnsupportedMapperErrorとなることを検証します。
    def test_unsupported_mapper_raises(self):
        with pytest.raises(UnsupportedMapperError) as excinfo:
            Cartridge(bytes(0x4000), mapper_id=4)
        assert excinfo.value.mapper_id == 4
        assert isinstance(excinfo.value, FormatError)

    def test_from_ines_and_file(self, tmp_path):
        header = b"NES\x1a" + bytes([1, 1, 0x31, 0, 0, 0]) + bytes(6)
        data = header + bytes(0x4000) + bytes([0x77]) * 0x2000
        cart = Cartridge.from_ines(parse_ines(data))
        assert cart.mapper_id == 3
        assert cart.mirroring == Mirroring.VERTICAL
        assert cart.ppu_read(0x0000) == 0x77

        rom_path = tmp_path / "cnrom.nes"
        rom_path.write_bytes(data)
        assert Cartridge.from_file(str(rom_path)).chr_banks == 1
        assert "mapper=3" in repr(cart)

    def test_from_file_missing_magic_raises(self, tmp_path):
        rom_path = tmp_path / "bad.nes"
        rom_path.write_bytes(b"XXXX" + bytes(0x4010))
        with pytest.raises(FormatError):
            Cartridge.from_file(str(rom_path))
