# nes_core_tracer/core/state.py
"""
Core Layer (CPU状態)

アーキテクチャに依存しないレジスタ (PC, SP) だけを持つ基底データ構造です。
"""
from dataclasses import dataclass


# @intent:responsibility 全CPUに共通するPCとSPを保持します。A/X/Yなどはアーキテクチャ側で追加します。
# @intent:invariant pcは16bit、spは8bit (スタックページ内のオフセット) の範囲に収めて格納します。
@dataclass
class CpuState:
    pc: int = 0x0000
    sp: int = 0x00
