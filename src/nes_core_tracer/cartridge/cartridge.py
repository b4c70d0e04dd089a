# nes_core_tracer/cartridge/cartridge.py
"""
カートリッジモジュール。

PRG/CHRストレージを所有し、CPU側(0x8000-0xFFFF)とPPU側(0x0000-0x1FFF)のアクセスを
マッパーが算出したオフセットに従って処理します。
"""
import logging

from nes_core_tracer.common.types import Mirroring
from nes_core_tracer.cartridge.mappers import Mapper, create_mapper
from nes_core_tracer.loader.ines import (
    InesImage, load_ines_file, PRG_BANK_SIZE, CHR_BANK_SIZE,
)
from nes_core_tracer.transport.device import RAM, ROM

logger = logging.getLogger(__name__)


# @intent:responsibility ゲームカートリッジ（PRG/CHR/マッパー/ミラーリング）を表現します。
class Cartridge:
    """
    PRGは常にROM、CHRはバンク数が0の場合に8KBのRAM、それ以外はROMとして保持します。
    CHR-ROMへの書き込みはROMデバイスの性質により無視されます。
    """
    # @intent:pre-condition prg_dataは16KBの正の倍数、chr_dataは8KBの倍数(0を含む)である必要があります。
    def __init__(self, prg_data: bytes, chr_data: bytes = b"", mapper_id: int = 0,
                 mirroring: Mirroring = Mirroring.HORIZONTAL):
        if len(prg_data) == 0 or len(prg_data) % PRG_BANK_SIZE != 0:
            raise ValueError(f"PRG size must be a non-zero multiple of 16KB, got {len(prg_data)} bytes.")
        if len(chr_data) % CHR_BANK_SIZE != 0:
            raise ValueError(f"CHR size must be a multiple of 8KB, got {len(chr_data)} bytes.")

        self._prg_banks = len(prg_data) // PRG_BANK_SIZE
        self._chr_banks = len(chr_data) // CHR_BANK_SIZE

        self._prg = ROM(len(prg_data))
        self._prg.load_block(0, prg_data)

        if self._chr_banks == 0:
            self._chr = RAM(CHR_BANK_SIZE)
        else:
            self._chr = ROM(len(chr_data))
            self._chr.load_block(0, chr_data)

        self._mirroring = Mirroring(mirroring)
        self._mapper: Mapper = create_mapper(mapper_id, self._prg_banks, self._chr_banks)
        logger.debug(
            "Cartridge created: mapper=%d prg_banks=%d chr_banks=%d%s",
            mapper_id, self._prg_banks, self._chr_banks,
            " (CHR-RAM)" if self.has_chr_ram else "",
        )

    # @intent:responsibility 解析済みiNESイメージからカートリッジを生成します。
    @classmethod
    def from_ines(cls, image: InesImage) -> "Cartridge":
        return cls(image.prg_data, image.chr_data, image.mapper_id, image.mirroring)

    @classmethod
    def from_file(cls, file_path: str) -> "Cartridge":
        return cls.from_ines(load_ines_file(file_path))

    def __repr__(self) -> str:
        return (f"Cartridge(mapper={self.mapper_id}, prg_banks={self._prg_banks}, "
                f"chr_banks={self._chr_banks}, mirroring={self._mirroring.name})")

    @property
    def mapper(self) -> Mapper:
        return self._mapper

    @property
    def mapper_id(self) -> int:
        return self._mapper.mapper_id

    @property
    def prg_banks(self) -> int:
        return self._prg_banks

    @property
    def chr_banks(self) -> int:
        return self._chr_banks

    @property
    def has_chr_ram(self) -> bool:
        return self._chr_banks == 0

    @property
    def mirroring(self) -> Mirroring:
        return self._mirroring

    # --- CPU側 (0x8000-0xFFFF) ---

    def cpu_read(self, address: int) -> int:
        return self._prg.read(self._mapper.map_cpu_address(address))

    # @intent:responsibility PRG窓への書き込みをマッパーへ渡します。PRG内容は変化しません。
    def cpu_write(self, address: int, data: int) -> None:
        self._mapper.cpu_write(address, data)

    # --- PPU側 (0x0000-0x1FFF) ---

    def ppu_read(self, address: int) -> int:
        return self._chr.read(self._mapper.map_ppu_address(address))

    def ppu_write(self, address: int, data: int) -> None:
        self._chr.write(self._mapper.map_ppu_address(address), data)

    def reset(self) -> None:
        self._mapper.reset()
