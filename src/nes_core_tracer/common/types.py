"""
共通の型定義を提供するモジュール。
カートリッジ、PPU、バスなど複数のレイヤーで共通して使用される列挙型や型エイリアスを定義します。
"""
from enum import IntEnum
from typing import Dict

# @intent:data_structure レジスタ名と値の対応表。CPUのレジスタビューなどで使用されます。
RegisterMap = Dict[str, int]

# @intent:data_structure フラグ名と状態の対応表。
FlagMap = Dict[str, bool]


# @intent:responsibility ネームテーブルのミラーリング方式を定義します。
# @intent:note 値はiNESヘッダのflags6 bit0と一致します (0=水平, 1=垂直)。
class Mirroring(IntEnum):
    HORIZONTAL = 0
    VERTICAL = 1
