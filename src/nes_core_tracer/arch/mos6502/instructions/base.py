# src/nes_core_tracer/arch/mos6502/instructions/base.py
"""
MOS 6502 アドレッシングモード解決ロジック。

各関数はオペコードのアドレス(pc)を受け取り、オペランドバイトとポインタのみを読み出します。
実効アドレスそのものの読み書きは命令側で1回だけ行います（PPUレジスタなど副作用のある読み出しのため）。
"""
from typing import List, NamedTuple, Optional

from nes_core_tracer.transport.bus import Bus
from nes_core_tracer.arch.mos6502.state import Mos6502CpuState


# @intent:responsibility アドレッシングモードの解決結果を保持する。
class AddressingResult(NamedTuple):
    address: Optional[int]  # 実効アドレス (Implied/Accumulatorの場合はNone)
    value: Optional[int]  # Immediateの場合の値、それ以外はNone
    page_crossed: bool  # インデックス加算でページ境界を跨いだか
    operand_str: str  # トレース用のオペランド文字列表現
    operand_bytes: List[int]  # オペランドとしてフェッチされたバイト列


# @intent:responsibility ページ境界交差判定。
def is_page_crossed(addr1: int, addr2: int) -> bool:
    return (addr1 & 0xFF00) != (addr2 & 0xFF00)


# @intent:responsibility 命令のオペランド値を取得する。Immediate以外は実効アドレスから1回だけ読み出す。
def read_operand(bus: Bus, addr_res: AddressingResult) -> int:
    if addr_res.value is not None:
        return addr_res.value
    return bus.read(addr_res.address)


def _read_word_operand(pc: int, bus: Bus):
    lo = bus.read((pc + 1) & 0xFFFF)
    hi = bus.read((pc + 2) & 0xFFFF)
    return lo, hi, (hi << 8) | lo


# --- Addressing Modes ---

# @intent:responsibility Implied / Accumulator Mode
def addr_implied(pc: int, bus: Bus, state: Mos6502CpuState) -> AddressingResult:
    return AddressingResult(None, None, False, "", [])


# @intent:responsibility Immediate Mode (#$xx)
def addr_immediate(pc: int, bus: Bus, state: Mos6502CpuState) -> AddressingResult:
    address = (pc + 1) & 0xFFFF
    val = bus.read(address)
    return AddressingResult(address, val, False, f"#${val:02X}", [val])


# @intent:responsibility Zero Page Mode ($xx)
def addr_zeropage(pc: int, bus: Bus, state: Mos6502CpuState) -> AddressingResult:
    addr = bus.read((pc + 1) & 0xFFFF)
    return AddressingResult(addr, None, False, f"${addr:02X}", [addr])


# @intent:responsibility Zero Page, X Mode ($xx,X)
# @intent:note ラップアラウンドあり (0xFF + 1 -> 0x00)
def addr_zeropage_x(pc: int, bus: Bus, state: Mos6502CpuState) -> AddressingResult:
    base = bus.read((pc + 1) & 0xFFFF)
    addr = (base + state.x) & 0xFF
    return AddressingResult(addr, None, False, f"${base:02X},X", [base])


# @intent:responsibility Zero Page, Y Mode ($xx,Y) - LDX, STX only
def addr_zeropage_y(pc: int, bus: Bus, state: Mos6502CpuState) -> AddressingResult:
    base = bus.read((pc + 1) & 0xFFFF)
    addr = (base + state.y) & 0xFF
    return AddressingResult(addr, None, False, f"${base:02X},Y", [base])


# @intent:responsibility Relative Mode (Branch)
# @intent:note 戻り値のアドレスは符号拡張したオフセットを適用済みの「分岐先の絶対アドレス」とする。
def addr_relative(pc: int, bus: Bus, state: Mos6502CpuState) -> AddressingResult:
    offset = bus.read((pc + 1) & 0xFFFF)
    signed = offset - 0x100 if offset >= 0x80 else offset
    # 分岐の基準は次の命令の先頭 (PC + 2)
    dest_addr = (pc + 2 + signed) & 0xFFFF
    return AddressingResult(dest_addr, None, False, f"${dest_addr:04X}", [offset])


# @intent:responsibility Absolute Mode ($xxxx)
def addr_absolute(pc: int, bus: Bus, state: Mos6502CpuState) -> AddressingResult:
    lo, hi, addr = _read_word_operand(pc, bus)
    return AddressingResult(addr, None, False, f"${addr:04X}", [lo, hi])


# @intent:responsibility Absolute, X Mode ($xxxx,X)
def addr_absolute_x(pc: int, bus: Bus, state: Mos6502CpuState) -> AddressingResult:
    lo, hi, base_addr = _read_word_operand(pc, bus)
    addr = (base_addr + state.x) & 0xFFFF
    return AddressingResult(addr, None, is_page_crossed(base_addr, addr), f"${base_addr:04X},X", [lo, hi])


# @intent:responsibility Absolute, Y Mode ($xxxx,Y)
def addr_absolute_y(pc: int, bus: Bus, state: Mos6502CpuState) -> AddressingResult:
    lo, hi, base_addr = _read_word_operand(pc, bus)
    addr = (base_addr + state.y) & 0xFFFF
    return AddressingResult(addr, None, is_page_crossed(base_addr, addr), f"${base_addr:04X},Y", [lo, hi])


# @intent:responsibility Indirect Mode ($xxxx) - JMP only
# @intent:note ポインタの下位バイトが0xFFの場合、上位バイトは同じページの先頭から読む（ハードウェアのバグを再現）。
def addr_indirect(pc: int, bus: Bus, state: Mos6502CpuState) -> AddressingResult:
    ptr_lo, ptr_hi, ptr = _read_word_operand(pc, bus)
    eff_lo = bus.read(ptr)
    eff_hi = bus.read((ptr & 0xFF00) | ((ptr + 1) & 0x00FF))
    addr = (eff_hi << 8) | eff_lo
    return AddressingResult(addr, None, False, f"(${ptr:04X})", [ptr_lo, ptr_hi])


# @intent:responsibility Indexed Indirect Mode ($xx,X) - "Pre-indexed"
# @intent:note ゼロページ内でXを加算(ラップアラウンド)し、そこにあるポインタを読む。
def addr_indexed_indirect(pc: int, bus: Bus, state: Mos6502CpuState) -> AddressingResult:
    base = bus.read((pc + 1) & 0xFFFF)
    ptr_addr = (base + state.x) & 0xFF
    lo = bus.read(ptr_addr)
    hi = bus.read((ptr_addr + 1) & 0xFF)
    addr = (hi << 8) | lo
    return AddressingResult(addr, None, False, f"(${base:02X},X)", [base])


# @intent:responsibility Indirect Indexed Mode ($xx),Y - "Post-indexed"
# @intent:note ポインタの読み出しはゼロページ内でラップするが、Y加算後の16bitアドレスはページ内でラップしない。
def addr_indirect_indexed(pc: int, bus: Bus, state: Mos6502CpuState) -> AddressingResult:
    ptr_addr = bus.read((pc + 1) & 0xFFFF)
    lo = bus.read(ptr_addr)
    hi = bus.read((ptr_addr + 1) & 0xFF)
    base_addr = (hi << 8) | lo
    addr = (base_addr + state.y) & 0xFFFF
    return AddressingResult(addr, None, is_page_crossed(base_addr, addr), f"(${ptr_addr:02X}),Y", [ptr_addr])


# @intent:responsibility フラグ更新ヘルパー (N, Z)
def update_nz(state: Mos6502CpuState, value: int) -> Mos6502CpuState:
    return state.update_flags(n=(value & 0x80) != 0, z=(value == 0))
