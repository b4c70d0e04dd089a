# nes_core_tracer/ppu/memory.py
"""
PPUアドレス空間 (0x0000-0x3FFF)

  0x0000-0x1FFF  パターンテーブル (カートリッジCHR、Bus経由)
  0x2000-0x3EFF  ネームテーブル (2KB VRAM、カートリッジのミラーリング方式で折り返し)
  0x3F00-0x3FFF  パレットRAM (32バイト毎にミラー、0x10/0x14/0x18/0x1C は 0x00/0x04/0x08/0x0C の別名)
"""
from abc import ABC, abstractmethod
from typing import Optional

from nes_core_tracer.common.types import Mirroring
from nes_core_tracer.transport.device import RAM


# @intent:responsibility PPUがカートリッジ(CHRとミラーリング方式)に到達するための窓口を定義します。
# @intent:rationale カートリッジの所有者はBusのみであり、PPUはこのインターフェース越しにしか参照しません。
class PpuBusPort(ABC):
    @abstractmethod
    def ppu_read(self, address: int) -> int:
        pass

    @abstractmethod
    def ppu_write(self, address: int, data: int) -> None:
        pass

    @property
    @abstractmethod
    def mirroring(self) -> Mirroring:
        pass


# @intent:responsibility ネームテーブルアドレスを物理VRAM(2KB)上のオフセットへ変換します。
# @intent:note 水平: (0,1)->A, (2,3)->B。垂直: (0,2)->A, (1,3)->B。
def mirror_nametable_address(address: int, mirroring: Mirroring) -> int:
    address &= 0x0FFF
    if mirroring == Mirroring.HORIZONTAL:
        return (0x0400 if address & 0x0800 else 0x0000) | (address & 0x03FF)
    return address & 0x07FF


# @intent:responsibility パレットアドレスを32バイトのパレットRAM上のオフセットへ変換します。
def mirror_palette_address(address: int) -> int:
    address &= 0x1F
    if address in (0x10, 0x14, 0x18, 0x1C):
        address -= 0x10
    return address


# @intent:responsibility PPU内部メモリ(ネームテーブル、パレット)と、Bus経由のCHRアクセスを束ねます。
class PpuMemory:
    """
    PPUから見た14bitアドレス空間。

    ポート(Bus)が未接続の場合、パターンテーブルの読み出しは0を返し、
    ミラーリングは垂直として扱います。
    """
    NAMETABLE_SIZE = 0x0800
    PALETTE_SIZE = 0x20

    def __init__(self):
        self._nametables = RAM(self.NAMETABLE_SIZE)
        self._palette = RAM(self.PALETTE_SIZE)
        self._port: Optional[PpuBusPort] = None

    def connect(self, port: PpuBusPort) -> None:
        self._port = port

    @property
    def mirroring(self) -> Mirroring:
        if self._port is None:
            return Mirroring.VERTICAL
        return self._port.mirroring

    def read(self, address: int) -> int:
        address &= 0x3FFF
        if address <= 0x1FFF:
            if self._port is None:
                return 0x00
            return self._port.ppu_read(address)
        if address <= 0x3EFF:
            return self._nametables.read(mirror_nametable_address(address, self.mirroring))
        return self._palette.read(mirror_palette_address(address))

    def write(self, address: int, data: int) -> None:
        address &= 0x3FFF
        data &= 0xFF
        if address <= 0x1FFF:
            if self._port is not None:
                self._port.ppu_write(address, data)
        elif address <= 0x3EFF:
            self._nametables.write(mirror_nametable_address(address, self.mirroring), data)
        else:
            self._palette.write(mirror_palette_address(address), data)

    # @intent:responsibility パレットを既定色 (0x0F, 0x00, 0x10, 0x30, 以降0) に戻します。
    # @intent:note ネームテーブルの内容はリセットで保持されます。
    def reset(self) -> None:
        self._palette.load_block(0, bytes(self.PALETTE_SIZE))
        self._palette.load_block(0, bytes((0x0F, 0x00, 0x10, 0x30)))
