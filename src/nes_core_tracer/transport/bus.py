# nes_core_tracer/transport/bus.py
"""
Transport Layer (共通バス)

このモジュールは、CPUから見た16bitアドレス空間を抽象化し、
読み書きアクセスを適切なデバイス（RAM、PPUレジスタ、I/Oポート、カートリッジ）に委譲する責務を負います。
また、システムクロックの分周（PPU 3ドットにつきCPU 1サイクル）とNMIの転送を担います。
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, TYPE_CHECKING

from nes_core_tracer.common.types import Mirroring
from nes_core_tracer.ppu.memory import PpuBusPort
from nes_core_tracer.transport.device import Device, RAM, ROM  # noqa: F401
from nes_core_tracer.transport.ports import ApuRegisters, Button, Controller

if TYPE_CHECKING:
    from nes_core_tracer.cartridge.cartridge import Cartridge
    from nes_core_tracer.core.cpu import AbstractCpu
    from nes_core_tracer.ppu.ppu import Ppu

logger = logging.getLogger(__name__)


# @intent:responsibility バスアクセスを記録するためのタイプを定義します。
class BusAccessType(Enum):
    READ = "READ"
    WRITE = "WRITE"


# @intent:responsibility 個々のバスアクセス操作を記録します。
@dataclass(frozen=True)  # 不変データ構造
class BusAccess:
    """
    バス上で行われた単一のアクセス（読み込みまたは書き込み）を記録するデータクラス。
    """
    address: int
    data: int  # 8bit value
    access_type: BusAccessType


# @intent:responsibility NESのCPUアドレス空間を管理し、各デバイスへのアクセスをディスパッチするシステムバス。
# @intent:rationale アドレスデコードの決定権はBusのみが持ちます。PPU、CPU、カートリッジは互いを直接参照しません。
class Bus(PpuBusPort):
    """
    NESのシステムバス。

    CPUアドレスマップ:
      0x0000-0x1FFF  2KB RAM (4回ミラー)
      0x2000-0x3FFF  PPUレジスタ (8バイト毎にミラー)
      0x4000-0x4017  APU/コントローラレジスタ (0x4014はOAM DMA)
      0x8000-0xFFFF  カートリッジPRG (未挿入時はフォールバックRAM)
    それ以外のアドレスはオープンバスとして0を返し、書き込みは無視されます。
    """
    RAM_SIZE = 0x0800
    PRG_WINDOW_SIZE = 0x8000
    OAM_DMA_CYCLES = 513

    def __init__(self, ppu: Optional["Ppu"] = None):
        if ppu is None:
            from nes_core_tracer.ppu.ppu import Ppu
            ppu = Ppu()
        self._ram = RAM(self.RAM_SIZE)
        self._fallback_prg = RAM(self.PRG_WINDOW_SIZE)
        self._ppu = ppu
        self._ppu.connect_bus(self)
        self._controllers = (Controller(), Controller())
        self._apu = ApuRegisters()
        self._cartridge: Optional["Cartridge"] = None
        self._cpu: Optional["AbstractCpu"] = None
        self._clock_counter = 0
        self._trace_enabled = False
        self._bus_activity_log: List[BusAccess] = []

    # --- Wiring ---

    # @intent:responsibility カートリッジを挿入します。Busがカートリッジの唯一の所有者となります。
    def insert_cartridge(self, cartridge: "Cartridge") -> None:
        self._cartridge = cartridge
        logger.debug("Cartridge inserted: %r", cartridge)

    # @intent:responsibility CPUを接続します。clock()とnmi()の転送先になります。
    def connect_cpu(self, cpu: "AbstractCpu") -> None:
        self._cpu = cpu

    @property
    def ppu(self) -> "Ppu":
        return self._ppu

    @property
    def cpu(self) -> Optional["AbstractCpu"]:
        return self._cpu

    @property
    def cartridge(self) -> Optional["Cartridge"]:
        return self._cartridge

    @property
    def controllers(self) -> tuple:
        return self._controllers

    @property
    def apu_registers(self) -> ApuRegisters:
        return self._apu

    @property
    def clock_counter(self) -> int:
        return self._clock_counter

    # @intent:responsibility 外部（入力層）から設定されるボタン状態の窓口です。
    def set_buttons(self, port: int, buttons: Button) -> None:
        self._controllers[port].buttons = buttons

    # --- Activity log ---

    # @intent:responsibility バスアクセスの記録を有効/無効にします。
    # @intent:rationale 1フレームあたり数万回のアクセスが発生するため、記録は明示的に有効化された場合のみ行います。
    def set_trace_enabled(self, enabled: bool) -> None:
        self._trace_enabled = enabled
        if not enabled:
            self._bus_activity_log = []

    @property
    def trace_enabled(self) -> bool:
        return self._trace_enabled

    def _log_access(self, address: int, data: int, access_type: BusAccessType) -> None:
        self._bus_activity_log.append(BusAccess(address=address, data=data, access_type=access_type))

    # @intent:responsibility 記録されたバスアクティビティログを取得し、クリアします。
    def get_and_clear_activity_log(self) -> List[BusAccess]:
        log = self._bus_activity_log
        self._bus_activity_log = []
        return log

    # --- CPU address space ---

    # @intent:responsibility 指定されたアドレスから8bitのデータを読み出します。
    def read(self, address: int) -> int:
        address &= 0xFFFF
        if address <= 0x1FFF:
            data = self._ram.read(address & 0x07FF)
        elif address <= 0x3FFF:
            data = self._ppu.cpu_read(address & 0x2007)
        elif address == 0x4016 or address == 0x4017:
            data = self._controllers[address - 0x4016].read(0)
        elif address <= 0x4017:
            data = self._apu.read(address - 0x4000)
        elif address >= 0x8000:
            if self._cartridge is not None:
                data = self._cartridge.cpu_read(address)
            else:
                # Fallback for bring-up and tests: raw RAM behind the PRG window.
                data = self._fallback_prg.read(address - 0x8000)
        else:
            data = 0x00  # open bus

        if self._trace_enabled:
            self._log_access(address, data, BusAccessType.READ)
        return data

    # @intent:responsibility 指定されたアドレスに8bitのデータを書き込みます。
    def write(self, address: int, data: int) -> None:
        address &= 0xFFFF
        if address <= 0x1FFF:
            self._ram.write(address & 0x07FF, data)
        elif address <= 0x3FFF:
            self._ppu.cpu_write(address & 0x2007, data)
        elif address == 0x4014:
            self._oam_dma(data)
        elif address == 0x4016:
            # The strobe line is shared by both controller ports.
            for controller in self._controllers:
                controller.write(0, data)
        elif address <= 0x4017:
            self._apu.write(address - 0x4000, data)
        elif address >= 0x8000:
            if self._cartridge is not None:
                self._cartridge.cpu_write(address, data)
            else:
                self._fallback_prg.write(address - 0x8000, data)

        if self._trace_enabled:
            self._log_access(address, data, BusAccessType.WRITE)

    # @intent:responsibility CPUページ (page << 8) から256バイトをPPUのOAMへ転送します。
    # @intent:invariant 転送はclock()の途中で分断されず、1回の呼び出し内で完了します。
    def _oam_dma(self, page: int) -> None:
        base = (page & 0xFF) << 8
        self._ppu.oam_dma(self.read(base + i) for i in range(256))
        if self._cpu is not None:
            stall = self.OAM_DMA_CYCLES + (self._cpu.total_cycles & 1)
            self._cpu.stall(stall)
        logger.debug("OAM DMA from page %#04x", page & 0xFF)

    # --- PPU address space (PpuBusPort) ---

    # @intent:responsibility PPUからのパターンテーブル(0x0000-0x1FFF)読み出しをカートリッジへ仲介します。
    def ppu_read(self, address: int) -> int:
        if self._cartridge is None:
            return 0x00
        return self._cartridge.ppu_read(address)

    def ppu_write(self, address: int, data: int) -> None:
        if self._cartridge is not None:
            self._cartridge.ppu_write(address, data)

    # @intent:responsibility ネームテーブルのミラーリング方式を返します。
    # @intent:note カートリッジ未挿入時は垂直ミラーリング (addr & 0x07FF) として扱います。
    @property
    def mirroring(self) -> Mirroring:
        if self._cartridge is None:
            return Mirroring.VERTICAL
        return self._cartridge.mirroring

    # --- Timing ---

    # @intent:responsibility システムクロックを1単位進めます。
    # @intent:invariant PPUは毎回1ドット、CPUは3回に1回だけ1サイクル進みます。
    # @intent:note 同一tick内ではPPUが先に進み、その後CPU、最後にNMI要求の転送を行います。
    def clock(self) -> None:
        self._ppu.clock()
        if self._clock_counter % 3 == 0 and self._cpu is not None:
            self._cpu.clock()
        if self._ppu.nmi_requested:
            self._ppu.nmi_requested = False
            self.nmi()
        self._clock_counter += 1

    # @intent:responsibility PPUからのNMI要求をCPUへ転送します。
    def nmi(self) -> None:
        if self._cpu is not None:
            self._cpu.nmi()

    # @intent:responsibility PPUのフレームカウンタが進むまでclock()を繰り返します。
    def run_frame(self) -> None:
        frame = self._ppu.frame
        while self._ppu.frame == frame:
            self.clock()

    # @intent:responsibility システム全体をリセットします（電源投入/リセットボタン相当）。
    def reset(self) -> None:
        self._ppu.reset()
        for controller in self._controllers:
            controller.reset()
        if self._cartridge is not None:
            self._cartridge.reset()
        self._clock_counter = 0
        if self._cpu is not None:
            self._cpu.reset()
