# src/nes_core_tracer/arch/mos6502/instructions/alu.py
"""
MOS 6502 算術論理演算命令 (ALU)。
2A03にはBCD回路が無いため、Dフラグの状態に関わらずADC/SBCは常に2進演算として扱う。
"""
from nes_core_tracer.transport.bus import Bus
from nes_core_tracer.arch.mos6502.state import Mos6502CpuState
from nes_core_tracer.arch.mos6502.instructions.base import AddressingResult, read_operand, update_nz


# --- Logical Operations (AND, ORA, EOR, BIT) ---

def and_(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    res = state.a & read_operand(bus, addr_res)
    return update_nz(state.replace(a=res), res)

def ora(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    res = state.a | read_operand(bus, addr_res)
    return update_nz(state.replace(a=res), res)

def eor(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    res = state.a ^ read_operand(bus, addr_res)
    return update_nz(state.replace(a=res), res)

# @intent:note BIT命令はメモリの値のビット6, 7をそれぞれV, Nフラグにコピーし、A & Mの結果でZフラグを設定する。
def bit(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    val = read_operand(bus, addr_res)
    return state.update_flags(z=(state.a & val) == 0, v=(val & 0x40) != 0, n=(val & 0x80) != 0)

# --- Arithmetic Operations (ADC, SBC) ---

# @intent:responsibility 2進加算ロジック。キャリー入力を含み、V/C/N/Zを更新する。
def _add_with_carry(state: Mos6502CpuState, val: int) -> Mos6502CpuState:
    a = state.a
    c = 1 if state.flag_c else 0

    res_wide = a + val + c
    res = res_wide & 0xFF
    # V: 両オペランドの符号が等しく、結果の符号がそれと異なる場合にセット
    v = (~(a ^ val) & (a ^ res) & 0x80) != 0

    new_state = state.replace(a=res)
    return new_state.update_flags(c=res_wide > 0xFF, z=(res == 0), n=(res & 0x80) != 0, v=v)

def adc(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    return _add_with_carry(state, read_operand(bus, addr_res))

# @intent:note SBCはオペランドの1の補数を加算するADCと等価 (A - M - (1 - C))。
def sbc(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    return _add_with_carry(state, read_operand(bus, addr_res) ^ 0xFF)

# --- Compare Operations (CMP, CPX, CPY) ---
# @intent:note 比較は結果を格納しない符号なし減算。C は Reg >= Val の場合にセット。

def _compare(state: Mos6502CpuState, reg_val: int, mem_val: int) -> Mos6502CpuState:
    res = (reg_val - mem_val) & 0xFF
    return state.update_flags(c=reg_val >= mem_val, z=(res == 0), n=(res & 0x80) != 0)

def cmp(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    return _compare(state, state.a, read_operand(bus, addr_res))

def cpx(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    return _compare(state, state.x, read_operand(bus, addr_res))

def cpy(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    return _compare(state, state.y, read_operand(bus, addr_res))

# --- Shift / Rotate Operations (ASL, LSR, ROL, ROR) ---
# @intent:note アドレスを持たない場合(Implied)はアキュムレータを対象とする。

def _read_modify_write(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult, func) -> Mos6502CpuState:
    is_acc = addr_res.address is None
    val = state.a if is_acc else bus.read(addr_res.address)

    res, carry = func(val, 1 if state.flag_c else 0)
    new_state = state.update_flags(c=carry, z=(res == 0), n=(res & 0x80) != 0)

    if is_acc:
        return new_state.replace(a=res)
    bus.write(addr_res.address, res)
    return new_state

def asl(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    return _read_modify_write(state, bus, addr_res,
                              lambda val, c: ((val << 1) & 0xFF, (val & 0x80) != 0))

def lsr(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    return _read_modify_write(state, bus, addr_res,
                              lambda val, c: (val >> 1, (val & 0x01) != 0))

def rol(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    return _read_modify_write(state, bus, addr_res,
                              lambda val, c: (((val << 1) | c) & 0xFF, (val & 0x80) != 0))

def ror(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    return _read_modify_write(state, bus, addr_res,
                              lambda val, c: ((val >> 1) | (c << 7), (val & 0x01) != 0))

# --- Increment / Decrement (INC, DEC, INX, DEX, INY, DEY) ---

def inc(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    res = (bus.read(addr_res.address) + 1) & 0xFF
    bus.write(addr_res.address, res)
    return update_nz(state, res)

def dec(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    res = (bus.read(addr_res.address) - 1) & 0xFF
    bus.write(addr_res.address, res)
    return update_nz(state, res)

def inx(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    res = (state.x + 1) & 0xFF
    return update_nz(state.replace(x=res), res)

def dex(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    res = (state.x - 1) & 0xFF
    return update_nz(state.replace(x=res), res)

def iny(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    res = (state.y + 1) & 0xFF
    return update_nz(state.replace(y=res), res)

def dey(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    res = (state.y - 1) & 0xFF
    return update_nz(state.replace(y=res), res)
