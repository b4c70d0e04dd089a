# src/nes_core_tracer/arch/mos6502/instructions/control.py
"""
MOS 6502 制御系命令 (Branch, Jump, Stack, Flags, Interrupt, NOP)。

命令実行時点のstate.pcは、AbstractCpu.step()により既に次の命令の先頭へ進められています。
"""
from typing import Callable, Dict, Tuple

from nes_core_tracer.transport.bus import Bus
from nes_core_tracer.arch.mos6502.state import Mos6502CpuState
from nes_core_tracer.arch.mos6502.instructions.base import AddressingResult, update_nz

NMI_VECTOR = 0xFFFA
RESET_VECTOR = 0xFFFC
IRQ_VECTOR = 0xFFFE


# --- Stack helpers ---

# @intent:responsibility スタックへ1バイトをプッシュし、SPを減算した新しい状態を返す。
def push(state: Mos6502CpuState, bus: Bus, value: int) -> Mos6502CpuState:
    bus.write(state.stack_address, value & 0xFF)
    return state.replace(sp=(state.sp - 1) & 0xFF)

# @intent:responsibility スタックから1バイトをプルする。
def pull(state: Mos6502CpuState, bus: Bus) -> Tuple[Mos6502CpuState, int]:
    state = state.replace(sp=(state.sp + 1) & 0xFF)
    return state, bus.read(state.stack_address)

# @intent:note 16bit値は上位バイトから先にプッシュする。
def push_word(state: Mos6502CpuState, bus: Bus, value: int) -> Mos6502CpuState:
    state = push(state, bus, (value >> 8) & 0xFF)
    return push(state, bus, value & 0xFF)

def pull_word(state: Mos6502CpuState, bus: Bus) -> Tuple[Mos6502CpuState, int]:
    state, lo = pull(state, bus)
    state, hi = pull(state, bus)
    return state, (hi << 8) | lo

def read_vector(bus: Bus, vector: int) -> int:
    return (bus.read(vector + 1) << 8) | bus.read(vector)

# --- Branch Instructions ---

# @intent:data_structure 分岐命令ごとの成立条件。
BRANCH_CONDITIONS: Dict[str, Callable[[Mos6502CpuState], bool]] = {
    "BCC": lambda s: not s.flag_c,
    "BCS": lambda s: s.flag_c,
    "BEQ": lambda s: s.flag_z,
    "BNE": lambda s: not s.flag_z,
    "BMI": lambda s: s.flag_n,
    "BPL": lambda s: not s.flag_n,
    "BVC": lambda s: not s.flag_v,
    "BVS": lambda s: s.flag_v,
}

def branch_taken(mnemonic: str, state: Mos6502CpuState) -> bool:
    return BRANCH_CONDITIONS[mnemonic](state)

# @intent:responsibility 全ての分岐命令が共有する相対オフセット適用ルーチン。
# @intent:note 不成立時は何もしない（PCは既に次の命令を指している）。
def _branch(state: Mos6502CpuState, addr_res: AddressingResult, mnemonic: str) -> Mos6502CpuState:
    if branch_taken(mnemonic, state):
        return state.replace(pc=addr_res.address)
    return state

def bcc(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    return _branch(state, addr_res, "BCC")

def bcs(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    return _branch(state, addr_res, "BCS")

def beq(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    return _branch(state, addr_res, "BEQ")

def bne(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    return _branch(state, addr_res, "BNE")

def bmi(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    return _branch(state, addr_res, "BMI")

def bpl(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    return _branch(state, addr_res, "BPL")

def bvc(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    return _branch(state, addr_res, "BVC")

def bvs(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    return _branch(state, addr_res, "BVS")

# --- Jump Instructions ---

def jmp(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    return state.replace(pc=addr_res.address)

# @intent:note JSRは「JSR命令の最後のバイトのアドレス」(次の命令の先頭 - 1) をプッシュする。
def jsr(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    state = push_word(state, bus, (state.pc - 1) & 0xFFFF)
    return state.replace(pc=addr_res.address)

def rts(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    state, ret_addr = pull_word(state, bus)
    return state.replace(pc=(ret_addr + 1) & 0xFFFF)

# --- Stack Operations (PHA, PHP, PLA, PLP) ---

def pha(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    return push(state, bus, state.a)

# @intent:note PHPはBとUをセットしたステータスをプッシュする。
def php(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    return push(state, bus, state.pushed_status(brk=True))

def pla(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    state, val = pull(state, bus)
    return update_nz(state.replace(a=val), val)

def plp(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    state, val = pull(state, bus)
    return state.with_pulled_status(val)

# --- Flag Operations (CLC, SEC, etc) ---

def clc(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    return state.update_flags(c=False)

def sec(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    return state.update_flags(c=True)

def cli(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    return state.update_flags(i=False)

def sei(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    return state.update_flags(i=True)

def clv(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    return state.update_flags(v=False)

def cld(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    return state.update_flags(d=False)

def sed(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    return state.update_flags(d=True)

# --- System / Interrupt ---

def nop(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    return state

# @intent:note BRKは1バイト命令だが、パディングバイトを読み飛ばした PC+1 を戻り先としてプッシュする。
def brk(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    state = push_word(state, bus, (state.pc + 1) & 0xFFFF)
    state = push(state, bus, state.pushed_status(brk=True))
    state = state.update_flags(i=True)
    return state.replace(pc=read_vector(bus, IRQ_VECTOR))

def rti(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> Mos6502CpuState:
    state, p_val = pull(state, bus)
    state, ret_addr = pull_word(state, bus)
    return state.with_pulled_status(p_val).replace(pc=ret_addr)

# @intent:responsibility NMIシーケンス。オペコード表を経由しない割り込みの入口。
# @intent:note PC (PC-1ではない) と、Bをクリア・Uをセットしたステータスをプッシュする。
def service_nmi(state: Mos6502CpuState, bus: Bus) -> Mos6502CpuState:
    state = push_word(state, bus, state.pc)
    state = push(state, bus, state.pushed_status(brk=False))
    state = state.update_flags(i=True)
    return state.replace(pc=read_vector(bus, NMI_VECTOR))
