# src/nes_core_tracer/arch/mos6502/instructions/maps.py
"""
MOS 6502 命令マップとデコード/実行ロジック。

256要素の不変なディスパッチ表を提供します。公式命令以外のオペコードは
2サイクルのImplied NOPとして扱います。
"""
from dataclasses import replace
from typing import Callable, Dict, NamedTuple, Tuple

from nes_core_tracer.transport.bus import Bus
from nes_core_tracer.core.snapshot import Operation
from nes_core_tracer.arch.mos6502.state import Mos6502CpuState
from nes_core_tracer.arch.mos6502.instructions import base, load, alu, control

# Addressing Mode Function Type
AddrFunc = Callable[[int, Bus, Mos6502CpuState], base.AddressingResult]
# Execution Function Type
ExecFunc = Callable[[Mos6502CpuState, Bus, base.AddressingResult], Mos6502CpuState]


# @intent:responsibility ディスパッチ表の1エントリ。
class OpcodeEntry(NamedTuple):
    mnemonic: str
    mode: AddrFunc
    operation: ExecFunc
    cycles: int
    page_penalty: bool = False  # インデックス加算でページを跨いだ場合に+1サイクル


# @intent:responsibility デコード結果（エントリ、解決済みアドレッシング、トレース用Operation）をまとめる。
class DecodedInstruction(NamedTuple):
    entry: OpcodeEntry
    addr_res: base.AddressingResult
    operation: Operation


DEFAULT_ENTRY = OpcodeEntry("???", base.addr_implied, control.nop, 2)

_OFFICIAL_OPCODES: Dict[int, OpcodeEntry] = {
    # --- Load/Store/Transfer ---
    0xA9: OpcodeEntry("LDA", base.addr_immediate, load.lda, 2),
    0xA5: OpcodeEntry("LDA", base.addr_zeropage, load.lda, 3),
    0xB5: OpcodeEntry("LDA", base.addr_zeropage_x, load.lda, 4),
    0xAD: OpcodeEntry("LDA", base.addr_absolute, load.lda, 4),
    0xBD: OpcodeEntry("LDA", base.addr_absolute_x, load.lda, 4, True),
    0xB9: OpcodeEntry("LDA", base.addr_absolute_y, load.lda, 4, True),
    0xA1: OpcodeEntry("LDA", base.addr_indexed_indirect, load.lda, 6),
    0xB1: OpcodeEntry("LDA", base.addr_indirect_indexed, load.lda, 5, True),

    0xA2: OpcodeEntry("LDX", base.addr_immediate, load.ldx, 2),
    0xA6: OpcodeEntry("LDX", base.addr_zeropage, load.ldx, 3),
    0xB6: OpcodeEntry("LDX", base.addr_zeropage_y, load.ldx, 4),
    0xAE: OpcodeEntry("LDX", base.addr_absolute, load.ldx, 4),
    0xBE: OpcodeEntry("LDX", base.addr_absolute_y, load.ldx, 4, True),

    0xA0: OpcodeEntry("LDY", base.addr_immediate, load.ldy, 2),
    0xA4: OpcodeEntry("LDY", base.addr_zeropage, load.ldy, 3),
    0xB4: OpcodeEntry("LDY", base.addr_zeropage_x, load.ldy, 4),
    0xAC: OpcodeEntry("LDY", base.addr_absolute, load.ldy, 4),
    0xBC: OpcodeEntry("LDY", base.addr_absolute_x, load.ldy, 4, True),

    0x85: OpcodeEntry("STA", base.addr_zeropage, load.sta, 3),
    0x95: OpcodeEntry("STA", base.addr_zeropage_x, load.sta, 4),
    0x8D: OpcodeEntry("STA", base.addr_absolute, load.sta, 4),
    0x9D: OpcodeEntry("STA", base.addr_absolute_x, load.sta, 5),
    0x99: OpcodeEntry("STA", base.addr_absolute_y, load.sta, 5),
    0x81: OpcodeEntry("STA", base.addr_indexed_indirect, load.sta, 6),
    0x91: OpcodeEntry("STA", base.addr_indirect_indexed, load.sta, 6),

    0x86: OpcodeEntry("STX", base.addr_zeropage, load.stx, 3),
    0x96: OpcodeEntry("STX", base.addr_zeropage_y, load.stx, 4),
    0x8E: OpcodeEntry("STX", base.addr_absolute, load.stx, 4),

    0x84: OpcodeEntry("STY", base.addr_zeropage, load.sty, 3),
    0x94: OpcodeEntry("STY", base.addr_zeropage_x, load.sty, 4),
    0x8C: OpcodeEntry("STY", base.addr_absolute, load.sty, 4),

    0xAA: OpcodeEntry("TAX", base.addr_implied, load.tax, 2),
    0xA8: OpcodeEntry("TAY", base.addr_implied, load.tay, 2),
    0x8A: OpcodeEntry("TXA", base.addr_implied, load.txa, 2),
    0x98: OpcodeEntry("TYA", base.addr_implied, load.tya, 2),
    0x9A: OpcodeEntry("TXS", base.addr_implied, load.txs, 2),
    0xBA: OpcodeEntry("TSX", base.addr_implied, load.tsx, 2),

    # --- ALU Operations ---
    # ADC
    0x69: OpcodeEntry("ADC", base.addr_immediate, alu.adc, 2),
    0x65: OpcodeEntry("ADC", base.addr_zeropage, alu.adc, 3),
    0x75: OpcodeEntry("ADC", base.addr_zeropage_x, alu.adc, 4),
    0x6D: OpcodeEntry("ADC", base.addr_absolute, alu.adc, 4),
    0x7D: OpcodeEntry("ADC", base.addr_absolute_x, alu.adc, 4, True),
    0x79: OpcodeEntry("ADC", base.addr_absolute_y, alu.adc, 4, True),
    0x61: OpcodeEntry("ADC", base.addr_indexed_indirect, alu.adc, 6),
    0x71: OpcodeEntry("ADC", base.addr_indirect_indexed, alu.adc, 5, True),

    # SBC
    0xE9: OpcodeEntry("SBC", base.addr_immediate, alu.sbc, 2),
    0xE5: OpcodeEntry("SBC", base.addr_zeropage, alu.sbc, 3),
    0xF5: OpcodeEntry("SBC", base.addr_zeropage_x, alu.sbc, 4),
    0xED: OpcodeEntry("SBC", base.addr_absolute, alu.sbc, 4),
    0xFD: OpcodeEntry("SBC", base.addr_absolute_x, alu.sbc, 4, True),
    0xF9: OpcodeEntry("SBC", base.addr_absolute_y, alu.sbc, 4, True),
    0xE1: OpcodeEntry("SBC", base.addr_indexed_indirect, alu.sbc, 6),
    0xF1: OpcodeEntry("SBC", base.addr_indirect_indexed, alu.sbc, 5, True),

    # CMP
    0xC9: OpcodeEntry("CMP", base.addr_immediate, alu.cmp, 2),
    0xC5: OpcodeEntry("CMP", base.addr_zeropage, alu.cmp, 3),
    0xD5: OpcodeEntry("CMP", base.addr_zeropage_x, alu.cmp, 4),
    0xCD: OpcodeEntry("CMP", base.addr_absolute, alu.cmp, 4),
    0xDD: OpcodeEntry("CMP", base.addr_absolute_x, alu.cmp, 4, True),
    0xD9: OpcodeEntry("CMP", base.addr_absolute_y, alu.cmp, 4, True),
    0xC1: OpcodeEntry("CMP", base.addr_indexed_indirect, alu.cmp, 6),
    0xD1: OpcodeEntry("CMP", base.addr_indirect_indexed, alu.cmp, 5, True),

    # CPX
    0xE0: OpcodeEntry("CPX", base.addr_immediate, alu.cpx, 2),
    0xE4: OpcodeEntry("CPX", base.addr_zeropage, alu.cpx, 3),
    0xEC: OpcodeEntry("CPX", base.addr_absolute, alu.cpx, 4),

    # CPY
    0xC0: OpcodeEntry("CPY", base.addr_immediate, alu.cpy, 2),
    0xC4: OpcodeEntry("CPY", base.addr_zeropage, alu.cpy, 3),
    0xCC: OpcodeEntry("CPY", base.addr_absolute, alu.cpy, 4),

    # AND
    0x29: OpcodeEntry("AND", base.addr_immediate, alu.and_, 2),
    0x25: OpcodeEntry("AND", base.addr_zeropage, alu.and_, 3),
    0x35: OpcodeEntry("AND", base.addr_zeropage_x, alu.and_, 4),
    0x2D: OpcodeEntry("AND", base.addr_absolute, alu.and_, 4),
    0x3D: OpcodeEntry("AND", base.addr_absolute_x, alu.and_, 4, True),
    0x39: OpcodeEntry("AND", base.addr_absolute_y, alu.and_, 4, True),
    0x21: OpcodeEntry("AND", base.addr_indexed_indirect, alu.and_, 6),
    0x31: OpcodeEntry("AND", base.addr_indirect_indexed, alu.and_, 5, True),

    # ORA
    0x09: OpcodeEntry("ORA", base.addr_immediate, alu.ora, 2),
    0x05: OpcodeEntry("ORA", base.addr_zeropage, alu.ora, 3),
    0x15: OpcodeEntry("ORA", base.addr_zeropage_x, alu.ora, 4),
    0x0D: OpcodeEntry("ORA", base.addr_absolute, alu.ora, 4),
    0x1D: OpcodeEntry("ORA", base.addr_absolute_x, alu.ora, 4, True),
    0x19: OpcodeEntry("ORA", base.addr_absolute_y, alu.ora, 4, True),
    0x01: OpcodeEntry("ORA", base.addr_indexed_indirect, alu.ora, 6),
    0x11: OpcodeEntry("ORA", base.addr_indirect_indexed, alu.ora, 5, True),

    # EOR
    0x49: OpcodeEntry("EOR", base.addr_immediate, alu.eor, 2),
    0x45: OpcodeEntry("EOR", base.addr_zeropage, alu.eor, 3),
    0x55: OpcodeEntry("EOR", base.addr_zeropage_x, alu.eor, 4),
    0x4D: OpcodeEntry("EOR", base.addr_absolute, alu.eor, 4),
    0x5D: OpcodeEntry("EOR", base.addr_absolute_x, alu.eor, 4, True),
    0x59: OpcodeEntry("EOR", base.addr_absolute_y, alu.eor, 4, True),
    0x41: OpcodeEntry("EOR", base.addr_indexed_indirect, alu.eor, 6),
    0x51: OpcodeEntry("EOR", base.addr_indirect_indexed, alu.eor, 5, True),

    # BIT
    0x24: OpcodeEntry("BIT", base.addr_zeropage, alu.bit, 3),
    0x2C: OpcodeEntry("BIT", base.addr_absolute, alu.bit, 4),

    # Shift / Rotate
    0x0A: OpcodeEntry("ASL", base.addr_implied, alu.asl, 2), # Accumulator
    0x06: OpcodeEntry("ASL", base.addr_zeropage, alu.asl, 5),
    0x16: OpcodeEntry("ASL", base.addr_zeropage_x, alu.asl, 6),
    0x0E: OpcodeEntry("ASL", base.addr_absolute, alu.asl, 6),
    0x1E: OpcodeEntry("ASL", base.addr_absolute_x, alu.asl, 7),

    0x4A: OpcodeEntry("LSR", base.addr_implied, alu.lsr, 2),
    0x46: OpcodeEntry("LSR", base.addr_zeropage, alu.lsr, 5),
    0x56: OpcodeEntry("LSR", base.addr_zeropage_x, alu.lsr, 6),
    0x4E: OpcodeEntry("LSR", base.addr_absolute, alu.lsr, 6),
    0x5E: OpcodeEntry("LSR", base.addr_absolute_x, alu.lsr, 7),

    0x2A: OpcodeEntry("ROL", base.addr_implied, alu.rol, 2),
    0x26: OpcodeEntry("ROL", base.addr_zeropage, alu.rol, 5),
    0x36: OpcodeEntry("ROL", base.addr_zeropage_x, alu.rol, 6),
    0x2E: OpcodeEntry("ROL", base.addr_absolute, alu.rol, 6),
    0x3E: OpcodeEntry("ROL", base.addr_absolute_x, alu.rol, 7),

    0x6A: OpcodeEntry("ROR", base.addr_implied, alu.ror, 2),
    0x66: OpcodeEntry("ROR", base.addr_zeropage, alu.ror, 5),
    0x76: OpcodeEntry("ROR", base.addr_zeropage_x, alu.ror, 6),
    0x6E: OpcodeEntry("ROR", base.addr_absolute, alu.ror, 6),
    0x7E: OpcodeEntry("ROR", base.addr_absolute_x, alu.ror, 7),

    # INC/DEC
    0xE6: OpcodeEntry("INC", base.addr_zeropage, alu.inc, 5),
    0xF6: OpcodeEntry("INC", base.addr_zeropage_x, alu.inc, 6),
    0xEE: OpcodeEntry("INC", base.addr_absolute, alu.inc, 6),
    0xFE: OpcodeEntry("INC", base.addr_absolute_x, alu.inc, 7),

    0xC6: OpcodeEntry("DEC", base.addr_zeropage, alu.dec, 5),
    0xD6: OpcodeEntry("DEC", base.addr_zeropage_x, alu.dec, 6),
    0xCE: OpcodeEntry("DEC", base.addr_absolute, alu.dec, 6),
    0xDE: OpcodeEntry("DEC", base.addr_absolute_x, alu.dec, 7),

    0xE8: OpcodeEntry("INX", base.addr_implied, alu.inx, 2),
    0xCA: OpcodeEntry("DEX", base.addr_implied, alu.dex, 2),
    0xC8: OpcodeEntry("INY", base.addr_implied, alu.iny, 2),
    0x88: OpcodeEntry("DEY", base.addr_implied, alu.dey, 2),

    # --- Control Instructions ---
    # Branch
    0x90: OpcodeEntry("BCC", base.addr_relative, control.bcc, 2),  # +1 if taken, +1 more if page crossed
    0xB0: OpcodeEntry("BCS", base.addr_relative, control.bcs, 2),
    0xF0: OpcodeEntry("BEQ", base.addr_relative, control.beq, 2),
    0xD0: OpcodeEntry("BNE", base.addr_relative, control.bne, 2),
    0x30: OpcodeEntry("BMI", base.addr_relative, control.bmi, 2),
    0x10: OpcodeEntry("BPL", base.addr_relative, control.bpl, 2),
    0x50: OpcodeEntry("BVC", base.addr_relative, control.bvc, 2),
    0x70: OpcodeEntry("BVS", base.addr_relative, control.bvs, 2),

    # Jump / Subroutine
    0x4C: OpcodeEntry("JMP", base.addr_absolute, control.jmp, 3),
    0x6C: OpcodeEntry("JMP", base.addr_indirect, control.jmp, 5),
    0x20: OpcodeEntry("JSR", base.addr_absolute, control.jsr, 6),
    0x60: OpcodeEntry("RTS", base.addr_implied, control.rts, 6),

    # Stack
    0x48: OpcodeEntry("PHA", base.addr_implied, control.pha, 3),
    0x08: OpcodeEntry("PHP", base.addr_implied, control.php, 3),
    0x68: OpcodeEntry("PLA", base.addr_implied, control.pla, 4),
    0x28: OpcodeEntry("PLP", base.addr_implied, control.plp, 4),

    # Flags
    0x18: OpcodeEntry("CLC", base.addr_implied, control.clc, 2),
    0x38: OpcodeEntry("SEC", base.addr_implied, control.sec, 2),
    0x58: OpcodeEntry("CLI", base.addr_implied, control.cli, 2),
    0x78: OpcodeEntry("SEI", base.addr_implied, control.sei, 2),
    0xB8: OpcodeEntry("CLV", base.addr_implied, control.clv, 2),
    0xD8: OpcodeEntry("CLD", base.addr_implied, control.cld, 2),
    0xF8: OpcodeEntry("SED", base.addr_implied, control.sed, 2),

    # System
    0xEA: OpcodeEntry("NOP", base.addr_implied, control.nop, 2),
    0x00: OpcodeEntry("BRK", base.addr_implied, control.brk, 7),
    0x40: OpcodeEntry("RTI", base.addr_implied, control.rti, 6),
}

# @intent:invariant 構築後は変更されない256要素のタプル。
OPCODE_TABLE: Tuple[OpcodeEntry, ...] = tuple(
    _OFFICIAL_OPCODES.get(opcode, DEFAULT_ENTRY) for opcode in range(256)
)


# @intent:responsibility オペコードを表引きし、アドレッシングモードを1回だけ解決する。
def decode_opcode(opcode: int, bus: Bus, pc: int, state: Mos6502CpuState) -> DecodedInstruction:
    entry = OPCODE_TABLE[opcode & 0xFF]
    addr_res = entry.mode(pc, bus, state)

    cycles = entry.cycles
    if entry.page_penalty and addr_res.page_crossed:
        cycles += 1

    operation = Operation(
        opcode_hex=f"{opcode:02X}",
        mnemonic=entry.mnemonic,
        operands=[addr_res.operand_str] if addr_res.operand_str else [],
        operand_bytes=addr_res.operand_bytes,
        cycle_count=cycles,
        length=1 + len(addr_res.operand_bytes)
    )
    return DecodedInstruction(entry, addr_res, operation)


# @intent:responsibility デコード済みの命令を実行し、新しい状態と確定したOperationを返す。
# @intent:note 分岐成立時は+1サイクル、分岐先が別ページであればさらに+1サイクル。
def execute_instruction(decoded: DecodedInstruction, state: Mos6502CpuState,
                        bus: Bus) -> Tuple[Mos6502CpuState, Operation]:
    entry = decoded.entry
    new_state = entry.operation(state, bus, decoded.addr_res)

    operation = decoded.operation
    if entry.mode is base.addr_relative and control.branch_taken(entry.mnemonic, state):
        extra = 2 if base.is_page_crossed(state.pc, new_state.pc) else 1
        operation = replace(operation, cycle_count=operation.cycle_count + extra)
    return new_state, operation
