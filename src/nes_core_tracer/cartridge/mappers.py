# nes_core_tracer/cartridge/mappers.py
"""
マッパー（バンク切り替え方式）の定義。

マッパーはCPU/PPUのアドレスをPRG/CHRストレージ内のオフセットに変換する責務のみを負い、
ストレージそのものはCartridgeが所有します。
"""
from abc import ABC, abstractmethod
from typing import Dict, Type

from nes_core_tracer.loader.ines import FormatError, CHR_BANK_SIZE


# @intent:responsibility 実装されていないマッパー番号が指定されたことを表します。
class UnsupportedMapperError(FormatError):
    def __init__(self, mapper_id: int):
        super().__init__(f"Unsupported mapper: {mapper_id}")
        self.mapper_id = mapper_id


# @intent:responsibility マッパーの共通インターフェースを定義します。
class Mapper(ABC):
    """
    全てのマッパーの抽象基底クラス。
    """
    mapper_id: int = -1

    def __init__(self, prg_banks: int, chr_banks: int):
        self._prg_banks = prg_banks
        self._chr_banks = chr_banks

    @property
    def prg_banks(self) -> int:
        return self._prg_banks

    @property
    def chr_banks(self) -> int:
        return self._chr_banks

    # @intent:responsibility CPUアドレス(0x8000-0xFFFF)をPRGオフセットに変換します。
    @abstractmethod
    def map_cpu_address(self, address: int) -> int:
        pass

    # @intent:responsibility PRG窓への書き込みを処理します（バンクレジスタのラッチなど）。
    @abstractmethod
    def cpu_write(self, address: int, data: int) -> None:
        pass

    # @intent:responsibility PPUアドレス(0x0000-0x1FFF)をCHRオフセットに変換します。
    @abstractmethod
    def map_ppu_address(self, address: int) -> int:
        pass

    def reset(self) -> None:
        pass


# @intent:responsibility 固定バンク方式 (NROM)。
class Mapper000(Mapper):
    """
    PRGが16KBの場合は 0x8000-0xBFFF と 0xC000-0xFFFF に同じバンクをミラーし、
    32KBの場合はそのままマップします。書き込みは無視されます。
    """
    mapper_id = 0

    def map_cpu_address(self, address: int) -> int:
        mask = 0x7FFF if self._prg_banks > 1 else 0x3FFF
        return address & mask

    def cpu_write(self, address: int, data: int) -> None:
        # ROM window; writes have no effect.
        pass

    def map_ppu_address(self, address: int) -> int:
        return address & 0x1FFF


# @intent:responsibility CHR切り替え方式 (CNROM)。
# @intent:note PRGはMapper000と同じ。PRG窓への書き込み値の下位2bitでCHRバンクを選択します。
class Mapper003(Mapper000):
    mapper_id = 3

    def __init__(self, prg_banks: int, chr_banks: int):
        super().__init__(prg_banks, chr_banks)
        self._chr_bank = 0

    @property
    def chr_bank(self) -> int:
        return self._chr_bank

    def cpu_write(self, address: int, data: int) -> None:
        self._chr_bank = (data & 0x03) % max(self._chr_banks, 1)

    def map_ppu_address(self, address: int) -> int:
        return self._chr_bank * CHR_BANK_SIZE + (address & 0x1FFF)

    def reset(self) -> None:
        self._chr_bank = 0


# @intent:data_structure マッパー番号と実装クラスの対応表。
MAPPERS: Dict[int, Type[Mapper]] = {
    Mapper000.mapper_id: Mapper000,
    Mapper003.mapper_id: Mapper003,
}


# @intent:responsibility マッパー番号に対応するマッパーを生成します。
def create_mapper(mapper_id: int, prg_banks: int, chr_banks: int) -> Mapper:
    mapper_cls = MAPPERS.get(mapper_id)
    if mapper_cls is None:
        raise UnsupportedMapperError(mapper_id)
    return mapper_cls(prg_banks, chr_banks)
