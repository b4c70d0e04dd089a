# nes_core_tracer/core/cpu.py
"""
Core Layer (抽象CPU)

このモジュールは、CPUの基本的な状態管理と命令サイクルの駆動に関する抽象化を提供します。
具体的な命令の振る舞いはInstruction Layerに移譲されます。
"""
from abc import ABC, abstractmethod

from nes_core_tracer.transport.bus import Bus
from nes_core_tracer.core.snapshot import Snapshot, Operation, Metadata
from nes_core_tracer.core.state import CpuState
from nes_core_tracer.common.types import RegisterMap, FlagMap


# @intent:responsibility 抽象CPUの基本機能とインターフェースを定義します。
class AbstractCpu(ABC):
    """
    全てのCPUエミュレーションの基底となる抽象クラス。
    Busとのインターフェース、基本的な状態管理、命令サイクルとクロック単位の駆動を提供します。
    """
    # @intent:responsibility CPUの状態とバスへの参照を初期化します。
    # @intent:pre-condition `bus`は有効なBusオブジェクトである必要があります。
    def __init__(self, bus: Bus):
        self._bus = bus
        self._state: CpuState = self._create_initial_state()
        # @intent:rationale Stateオブジェクトの直接操作を避けるため、protectedな命名規則を採用。
        #                  外部からのアクセスは`get_state()`メソッドを介して行う。
        self._cycle_count: int = 0  # 累計サイクル数
        self._cycles: int = 0  # 現在の命令の残りサイクル (0 = 命令境界)
        self._nmi_pending: bool = False

    # @intent:responsibility 初期状態のCpuStateオブジェクトを生成します。
    @abstractmethod
    def _create_initial_state(self) -> CpuState:
        """
        CPUの初期状態を生成して返します。
        具体的なCPUアーキテクチャはこのメソッドを実装し、
        そのアーキテクチャに特化したCpuStateのサブクラスを返すことができます。
        """
        pass

    # @intent:responsibility CPUをリセットし、初期状態に戻します。
    def reset(self) -> None:
        """
        レジスタを初期値に戻し、実行中の命令と保留中の割り込みを破棄します。
        """
        self._state = self._create_initial_state()
        self._cycles = 0
        self._nmi_pending = False

    # @intent:responsibility 現在のCPUの状態を返します。
    def get_state(self) -> CpuState:
        return self._state

    # @intent:responsibility CPUの状態を外部（構成ビルダーやテスト）から差し替えます。
    def set_state(self, state: CpuState) -> None:
        self._state = state

    @property
    def total_cycles(self) -> int:
        return self._cycle_count

    # @intent:responsibility 実行中の命令の残りサイクル数を返します。0は命令境界を意味します。
    @property
    def cycles_remaining(self) -> int:
        return self._cycles

    @property
    def nmi_pending(self) -> bool:
        return self._nmi_pending

    # --- Interrupts / Timing ---

    # @intent:responsibility NMI要求を受け付けます。
    # @intent:invariant 実行中の命令は中断されず、次の命令境界で処理されます。
    def nmi(self) -> None:
        self._nmi_pending = True

    # @intent:responsibility 現在の命令の残りサイクルを延長します（OAM DMAなど）。
    def stall(self, cycles: int) -> None:
        self._cycles += cycles
        self._cycle_count += cycles

    # @intent:responsibility CPUを1クロックサイクル進めます。
    # @intent:rationale 命令境界（残りサイクル0）でのみ割り込み処理または次命令の実行を行い、
    #                  命令の所要サイクル分だけ以降の呼び出しを消費します。
    def clock(self) -> None:
        """
        残りサイクルが0であれば、保留中のNMIを処理するか次の1命令を実行し、
        その所要サイクル数を残りサイクルに積みます。その後、残りサイクルを1減らします。
        """
        if self._cycles == 0:
            if self._nmi_pending:
                self._nmi_pending = False
                cycles = self._service_nmi()
                self._cycle_count += cycles
                self._cycles += cycles
            else:
                # step()中のstall() (OAM DMA) が加算した分を失わないよう、実行後に積む
                snapshot = self.step()
                self._cycles += snapshot.operation.cycle_count
        self._cycles -= 1

    # @intent:responsibility NMIシーケンスを実行し、消費サイクル数を返します。
    @abstractmethod
    def _service_nmi(self) -> int:
        pass

    # --- Instruction cycle ---

    # @intent:responsibility メモリから次の命令（オペコード）をフェッチします。
    @abstractmethod
    def _fetch(self) -> int:
        pass

    # @intent:responsibility フェッチしたオペコードを解析し、Operationオブジェクトに変換します。
    @abstractmethod
    def _decode(self, opcode: int) -> Operation:
        """
        与えられたオペコードを解析し、その命令のニーモニック、オペランドなどの詳細を
        Operationオブジェクトとして返します。
        """
        pass

    # @intent:responsibility デコードされた命令を実行し、CPUの状態を更新します。
    # @intent:post-condition 実行時に確定する追加サイクル（分岐成立など）を反映したOperationを返します。
    @abstractmethod
    def _execute(self, operation: Operation) -> Operation:
        pass

    # @intent:responsibility CPUを1命令進め、その結果のスナップショットを返します。
    # @intent:rationale Template Methodパターンを採用し、共通の実行フロー（ログクリア→フェッチ→デコード→PC更新→実行→Snapshot生成）を定義します。
    def step(self) -> Snapshot:
        """
        CPUを1命令進め、その時点でのCPUとバスの状態を含むSnapshotオブジェクトを返します。
        残りサイクルのカウントダウンには関与しないため、クロック単位の駆動にはclock()を使用します。
        """
        # 1. 前処理: 前命令までの残存ログを破棄
        self._bus.get_and_clear_activity_log()
        initial_pc = self._state.pc

        # 2. フェッチ
        opcode = self._fetch()

        # 3. デコード
        operation = self._decode(opcode)

        # 4. PC更新 (Hook)
        self._update_pc(operation)

        # 5. 実行
        operation = self._execute(operation)

        # 6. 後処理 & Snapshot生成
        return self._create_snapshot(initial_pc, operation)

    # @intent:responsibility 命令実行前にPCを更新します。
    def _update_pc(self, operation: Operation) -> None:
        """
        命令実行前のPC更新。デフォルトは命令長分進める。
        """
        self._state.pc = (self._state.pc + operation.length) & 0xFFFF

    # @intent:responsibility スナップショットを生成します。
    def _create_snapshot(self, initial_pc: int, operation: Operation) -> Snapshot:
        bus_activity = self._bus.get_and_clear_activity_log()
        self._cycle_count += operation.cycle_count

        trace_text = f"{initial_pc:04X}: {operation.mnemonic}"
        if operation.operands:
            trace_text += " " + ", ".join(operation.operands)

        return Snapshot(
            state=self.get_state(),
            operation=operation,
            metadata=Metadata(cycle_count=self._cycle_count, trace_text=trace_text),
            bus_activity=bus_activity
        )

    @abstractmethod
    def get_register_map(self) -> RegisterMap:
        """
        現在のレジスタ値を辞書形式で返す。
        """
        pass

    @abstractmethod
    def get_flag_state(self) -> FlagMap:
        """
        現在のフラグ（ステータスレジスタ）の各ビットの状態を辞書形式で返す。
        """
        pass
