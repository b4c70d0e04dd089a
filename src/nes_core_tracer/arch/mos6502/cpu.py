# src/nes_core_tracer/arch/mos6502/cpu.py
"""
MOS 6502 (Ricoh 2A03) CPUエミュレーションの中心モジュール。
"""
from typing import Optional

from nes_core_tracer.core.snapshot import Operation
from nes_core_tracer.core.cpu import AbstractCpu
from nes_core_tracer.common.types import RegisterMap, FlagMap
from nes_core_tracer.transport.bus import Bus
from nes_core_tracer.arch.mos6502.state import Mos6502CpuState
from nes_core_tracer.arch.mos6502.instructions import control
from nes_core_tracer.arch.mos6502.instructions.maps import (
    DecodedInstruction, decode_opcode, execute_instruction,
)


# @intent:responsibility MOS 6502 CPUの具体的なエミュレーションロジックを提供する。
class Mos6502Cpu(AbstractCpu):
    """
    MOS 6502 CPUをエミュレートするクラス。
    状態は不変パターンで管理し、命令ごとに新しいMos6502CpuStateに置き換えます。
    """
    NMI_CYCLES = 7

    def __init__(self, bus: Bus):
        super().__init__(bus)
        self._decoded: Optional[DecodedInstruction] = None

    # @intent:responsibility MOS 6502の初期状態を生成する。
    def _create_initial_state(self) -> Mos6502CpuState:
        # A=X=Y=0, SP=0xFD, P=Unusedのみ。PCはreset()でリセットベクトルから読み込む。
        return Mos6502CpuState(sp=0xFD)

    # @intent:responsibility リセット処理。レジスタを初期化し、PCを0xFFFC/0xFFFDから読み込む。
    def reset(self) -> None:
        super().reset()
        self._decoded = None
        self._state = self._state.replace(pc=control.read_vector(self._bus, control.RESET_VECTOR))

    def get_state(self) -> Mos6502CpuState:
        return self._state

    # @intent:responsibility 命令フェッチ。
    def _fetch(self) -> int:
        return self._bus.read(self._state.pc)

    # @intent:responsibility 命令デコード。アドレッシングモードはここで1回だけ解決する。
    def _decode(self, opcode: int) -> Operation:
        self._decoded = decode_opcode(opcode, self._bus, self._state.pc, self._state)
        return self._decoded.operation

    # @intent:rationale Stateを直接変更せず置き換えることで、過去のSnapshotが保持するStateを不変に保つ。
    def _update_pc(self, operation: Operation) -> None:
        self._state = self._state.replace(pc=(self._state.pc + operation.length) & 0xFFFF)

    # @intent:responsibility 命令実行
    def _execute(self, operation: Operation) -> Operation:
        self._state, operation = execute_instruction(self._decoded, self._state, self._bus)
        self._decoded = None
        return operation

    # @intent:responsibility NMIシーケンスを実行する。命令境界でのみ呼ばれる。
    def _service_nmi(self) -> int:
        self._state = control.service_nmi(self._state, self._bus)
        return self.NMI_CYCLES

    # @intent:responsibility レジスタマップ（トレース表示用）を返す。
    def get_register_map(self) -> RegisterMap:
        state = self._state
        return {
            "A": state.a,
            "X": state.x,
            "Y": state.y,
            "PC": state.pc,
            "S": state.sp,
            "P": state.p
        }

    # @intent:responsibility フラグ状態（トレース表示用）を返す。
    def get_flag_state(self) -> FlagMap:
        state = self._state
        return {
            "N": state.flag_n,
            "V": state.flag_v,
            "D": state.flag_d,
            "I": state.flag_i,
            "Z": state.flag_z,
            "C": state.flag_c
        }
