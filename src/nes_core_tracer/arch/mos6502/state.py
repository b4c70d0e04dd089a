# src/nes_core_tracer/arch/mos6502/state.py
"""
2A03 (MOS 6502互換) のレジスタファイル。

ステータスレジスタPのビット配置: N V U B D I Z C
  U (bit5) はレジスタ上で常に1、B (bit4) はスタックへ積まれたコピーにのみ現れる。
"""
from dataclasses import dataclass, replace

from nes_core_tracer.core.state import CpuState


# @intent:responsibility A/X/Y/P とPC/SPを保持する不変の値オブジェクト。
# @intent:invariant 命令実装は常にreplace()/update_flags()で新しいインスタンスを生成し、既存のインスタンスを変更しない。
@dataclass
class Mos6502CpuState(CpuState):
    a: int = 0
    x: int = 0
    y: int = 0
    p: int = 0x20

    C_FLAG = 0x01
    Z_FLAG = 0x02
    I_FLAG = 0x04
    D_FLAG = 0x08  # 2A03では演算に影響しない
    B_FLAG = 0x10
    U_FLAG = 0x20
    V_FLAG = 0x40
    N_FLAG = 0x80

    def _test(self, mask: int) -> bool:
        return (self.p & mask) != 0

    @property
    def flag_c(self) -> bool:
        return self._test(self.C_FLAG)

    @property
    def flag_z(self) -> bool:
        return self._test(self.Z_FLAG)

    @property
    def flag_i(self) -> bool:
        return self._test(self.I_FLAG)

    @property
    def flag_d(self) -> bool:
        return self._test(self.D_FLAG)

    @property
    def flag_v(self) -> bool:
        return self._test(self.V_FLAG)

    @property
    def flag_n(self) -> bool:
        return self._test(self.N_FLAG)

    # @intent:responsibility 現在のスタックトップ (ページ1内) の絶対アドレス。
    @property
    def stack_address(self) -> int:
        return 0x0100 | (self.sp & 0xFF)

    # @intent:responsibility キーワード引数 (c=True, z=False, ...) で指定したフラグだけを変えた状態を返す。
    # @intent:note 未知のフラグ名は無視する。Uは常に1に戻す。
    def update_flags(self, **flags) -> 'Mos6502CpuState':
        p = self.p
        for name, on in flags.items():
            mask = getattr(self, f"{name.upper()}_FLAG", 0)
            p = (p | mask) if on else (p & ~mask)
        return self.replace(p=(p & 0xFF) | self.U_FLAG)

    # @intent:responsibility スタックへ積むステータス値を作る。BRK/PHPではB=1、NMIではB=0。
    def pushed_status(self, brk: bool) -> int:
        value = self.p | self.U_FLAG
        if brk:
            return value | self.B_FLAG
        return value & ~self.B_FLAG & 0xFF

    # @intent:responsibility スタックから取り出した値をPへ戻す (PLP/RTI)。Bは捨て、Uは1。
    def with_pulled_status(self, value: int) -> 'Mos6502CpuState':
        return self.replace(p=(value & ~self.B_FLAG & 0xFF) | self.U_FLAG)

    def replace(self, **changes) -> 'Mos6502CpuState':
        return replace(self, **changes)
