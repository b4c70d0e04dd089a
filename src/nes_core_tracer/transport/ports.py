# nes_core_tracer/transport/ports.py
"""
Transport Layer (I/Oポート)

0x4000-0x4017 のレジスタ窓に接続される小さなデバイス群を定義します。
標準コントローラのシフトレジスタと、APUレジスタのラッチを提供します。
"""
from enum import IntFlag

from nes_core_tracer.transport.device import Device


# @intent:responsibility 標準コントローラのボタンビット配置を定義します。
# @intent:note ビット順はシリアル読み出し順 (A, B, Select, Start, Up, Down, Left, Right) と一致します。
class Button(IntFlag):
    A = 0x01
    B = 0x02
    SELECT = 0x04
    START = 0x08
    UP = 0x10
    DOWN = 0x20
    LEFT = 0x40
    RIGHT = 0x80


# @intent:responsibility 標準コントローラ1台分のストローブとシリアル読み出しを再現します。
class Controller(Device):
    """
    0x4016/0x4017 に接続される標準コントローラ。

    ストローブ(bit0)が1の間はボタン状態を連続して取り込み、0に戻した時点の状態が
    シフトレジスタに保持されます。読み出しごとに1ビットずつ A から順に返し、
    8ビット目以降は常に1を返します。上位ビットはオープンバスの値(0x40)になります。
    """
    OPEN_BUS = 0x40

    def __init__(self):
        self._buttons = Button(0)
        self._shift = 0
        self._strobe = False

    @property
    def buttons(self) -> Button:
        return self._buttons

    # @intent:responsibility 入力層から渡されたボタン状態を設定します。
    @buttons.setter
    def buttons(self, value: Button) -> None:
        self._buttons = Button(int(value) & 0xFF)

    def read(self, address: int) -> int:
        if self._strobe:
            self._shift = int(self._buttons)
        bit = self._shift & 0x01
        # 読み出し済みのビットは1で埋める
        self._shift = (self._shift >> 1) | 0x80
        return self.OPEN_BUS | bit

    def write(self, address: int, data: int) -> None:
        self._strobe = bool(data & 0x01)
        if self._strobe:
            self._shift = int(self._buttons)

    def reset(self) -> None:
        self._shift = 0
        self._strobe = False


# @intent:responsibility APUレジスタへの書き込みを保持する窓口です。音声合成は行いません。
class ApuRegisters(Device):
    """
    0x4000-0x4017 のうち、コントローラとOAM DMAを除いたAPUレジスタ群。
    書き込まれた値をラッチするだけで、読み出しは常に0を返します。
    """
    SIZE = 0x18

    def __init__(self):
        self._latch = bytearray(self.SIZE)

    def read(self, address: int) -> int:
        return 0x00

    def write(self, address: int, data: int) -> None:
        if not 0 <= address < self.SIZE:
            raise IndexError(f"Address {address} out of bounds for APU register window.")
        self._latch[address] = data & 0xFF

    # @intent:responsibility 最後に書き込まれた値を返します（テスト・トレース用）。
    def latched(self, address: int) -> int:
        return self._latch[address]
