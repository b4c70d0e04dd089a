# nes_core_tracer/core/snapshot.py
"""
実行状態の不変スナップショット

このモジュールは、1命令の実行結果（CPU状態、デコード結果、バスアクセス）を記録した
不変のデータ構造を定義します。トレース出力とテストでの状態確認に用いる責務を負います。
"""
from dataclasses import dataclass, field
from typing import List, Optional

from nes_core_tracer.core.state import CpuState
from nes_core_tracer.transport.bus import BusAccess


# @intent:responsibility 実行された命令の詳細を記録します。
@dataclass(frozen=True)  # 不変データ構造
class Operation:
    """
    実行された命令の詳細（HEX、ニーモニック、オペランド）を記録するデータクラス。
    """
    opcode_hex: str  # 例: "A9"
    mnemonic: str  # 例: "LDA"
    operands: List[str] = field(default_factory=list)  # 例: ["#$10"]
    operand_bytes: List[int] = field(default_factory=list)  # 生のオペランドバイト
    cycle_count: int = 0  # 命令実行に必要なクロックサイクル数
    length: int = 1  # 命令のバイト長


# @intent:responsibility 実行に関するメタデータを記録します。
@dataclass(frozen=True)  # 不変データ構造
class Metadata:
    """
    実行に関するメタデータ（累計サイクル数、トレース用の表記）を記録するデータクラス。
    """
    cycle_count: int
    trace_text: Optional[str] = None  # 例: "C000: LDA #$10"


# @intent:responsibility 1命令を実行した直後のCPUとバスの状態を不変に記録します。
@dataclass(frozen=True)  # 不変データ構造
class Snapshot:
    """
    1命令の実行直後における、CPU状態と実行内容の不変な記録。
    bus_activity はバスのトレースが有効な場合のみ要素を持ちます。
    """
    state: CpuState
    operation: Operation
    metadata: Metadata
    bus_activity: List[BusAccess] = field(default_factory=list)
