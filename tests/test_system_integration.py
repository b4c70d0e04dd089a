# tests/test_system_integration.py
"""
CPU・PPU・Bus・カートリッジを組み合わせたシステム全体の結合テスト。
"""
import numpy as np
import pytest

from nes_core_tracer.arch.mos6502.cpu import Mos6502Cpu
from nes_core_tracer.cartridge.cartridge import Cartridge
from nes_core_tracer.common.types import Mirroring
from nes_core_tracer.transport.bus import Bus
from nes_core_tracer.transport.ports import Button

# @intent:test_suite VBlank NMIの配送、命令の不可分性、PPUレジスタを操作するプログラムの実行、決定性を検証します。

NMI_HANDLER = 0x1234


def build_system(program, nmi_vector=NMI_HANDLER):
    """
    programを0x8000に配置した16KB PRGのカートリッジでシステムを組み立て、リセットする。
    NMIハンドラ (0x1234, RAMミラー) は自分自身へのJMPとする。
    """
    prg = bytearray(0x4000)
    prg[:len(program)] = bytes(program)
    prg[0x3FFA] = nmi_vector & 0xFF
    prg[0x3FFB] = nmi_vector >> 8
    prg[0x3FFC] = 0x00
    prg[0x3FFD] = 0x80

    bus = Bus()
    bus.insert_cartridge(Cartridge(bytes(prg), b"", mapper_id=0, mirroring=Mirroring.HORIZONTAL))
    cpu = Mos6502Cpu(bus)
    bus.connect_cpu(cpu)
    bus.reset()

    for offset, byte in enumerate((0x4C, NMI_HANDLER & 0xFF, NMI_HANDLER >> 8)):
        bus.write(NMI_HANDLER + offset, byte)
    return cpu, bus


# JMP $8000
IDLE_LOOP = [0x4C, 0x00, 0x80]


class TestVblankNmi:
    def test_reset_vector(self):
        cpu, _ = build_system(IDLE_LOOP)
        assert cpu.get_state().pc == 0x8000

    # @intent:test_case_nmi NMI有効時、VBlank開始でCPUがNMIハンドラへ分岐する。
    def test_nmi_reaches_handler(self):
        cpu, bus = build_system(IDLE_LOOP)
        bus.write(0x2000, 0x80)

        for _ in range(241 * 341):
            bus.clock()
        assert cpu.get_state().pc == 0x8000

        for _ in range(341):
            bus.clock()
        state = cpu.get_state()
        assert state.pc == NMI_HANDLER
        assert state.flag_i
        assert state.sp == 0xFA

    def test_no_nmi_when_disabled(self):
        cpu, bus = build_system(IDLE_LOOP)
        bus.run_frame()
        assert cpu.get_state().pc == 0x8000
        assert not cpu.nmi_pending

    # @intent:test_case_late_nmi VBlank中にPPUCTRLでNMIを有効化すると、直後の命令境界でハンドラへ入る。
    def test_late_nmi_enable(self):
        cpu, bus = build_system(IDLE_LOOP)
        for _ in range(241 * 341 + 10):
            bus.clock()
        assert bus.ppu.status & 0x80
        assert cpu.get_state().pc == 0x8000

        bus.write(0x2000, 0x80)
        for _ in range(50):
            bus.clock()
        assert cpu.get_state().pc == NMI_HANDLER

    # @intent:test_case_atomic OAM DMAで停止中のCPUに届いたNMIは、残りサイクルを消化し切るまで処理されない。
    def test_nmi_waits_for_dma_stall(self):
        # STA $4014 (A=0, ページ0を転送), JMP $8000
        cpu, bus = build_system([0x8D, 0x14, 0x40] + IDLE_LOOP)
        bus.write(0x2000, 0x80)

        while not cpu.nmi_pending:
            bus.clock()
        remaining = cpu.cycles_remaining
        assert remaining > 0

        cpu_clocks = 0
        while cpu.get_state().pc != NMI_HANDLER:
            assert cpu.nmi_pending
            if bus.clock_counter % 3 == 0:
                cpu_clocks += 1
            bus.clock()
        assert cpu_clocks == remaining + 1


class TestProgramExecution:
    # @intent:test_case_program VBlankをBITで待ってからパレットを書き込むプログラムが期待通り動作する。
    def test_wait_vblank_then_write_palette(self):
        program = [
            0x2C, 0x02, 0x20,  # 8000: BIT $2002
            0x10, 0xFB,        # 8003: BPL $8000
            0xA9, 0x3F,        # 8005: LDA #$3F
            0x8D, 0x06, 0x20,  # 8007: STA $2006
            0xA9, 0x00,        # 800A: LDA #$00
            0x8D, 0x06, 0x20,  # 800C: STA $2006
            0xA9, 0x21,        # 800F: LDA #$21
            0x8D, 0x07, 0x20,  # 8011: STA $2007
            0x4C, 0x14, 0x80,  # 8014: JMP $8014
        ]
        cpu, bus = build_system(program)

        bus.run_frame()

        assert bus.ppu.ppu_read(0x3F00) == 0x21
        assert cpu.get_state().pc == 0x8014
        assert bus.ppu.v == 0x3F01

    def test_controller_read_by_program(self):
        program = [
            0xA9, 0x01,        # LDA #$01
            0x8D, 0x16, 0x40,  # STA $4016
            0xA9, 0x00,        # LDA #$00
            0x8D, 0x16, 0x40,  # STA $4016
            0xAD, 0x16, 0x40,  # LDA $4016 (A)
            0x85, 0x10,        # STA $10
            0xAD, 0x16, 0x40,  # LDA $4016 (B)
            0x85, 0x11,        # STA $11
            0x4C, 0x14, 0x80,  # JMP $8014
        ]
        cpu, bus = build_system(program)
        bus.set_buttons(0, Button.B)
        for _ in range(200):
            bus.clock()
        assert bus.read(0x0010) & 0x01 == 0
        assert bus.read(0x0011) & 0x01 == 1


class TestDeterminism:
    # @intent:test_case_determinism 同じ入力から組み立てた2つのシステムは同じ状態に到達する。
    def test_identical_systems_stay_in_lockstep(self):
        program = [
            0xE8,              # INX
            0x8E, 0x00, 0x02,  # STX $0200
            0x8D, 0x14, 0x40,  # STA $4014
            0x4C, 0x00, 0x80,  # JMP $8000
        ]
        systems = [build_system(program) for _ in range(2)]
        for cpu, bus in systems:
            bus.write(0x2000, 0x80)
            bus.write(0x2001, 0x1E)
            for _ in range(2):
                bus.run_frame()

        (cpu_a, bus_a), (cpu_b, bus_b) = systems
        assert cpu_a.get_state() == cpu_b.get_state()
        assert cpu_a.total_cycles == cpu_b.total_cycles
        assert bus_a.clock_counter == bus_b.clock_counter
        assert bus_a.ppu.oam == bus_b.ppu.oam
        assert np.array_equal(bus_a.ppu.frame_buffer, bus_b.ppu.frame_buffer)

    @pytest.mark.parametrize("frames", [1, 3])
    def test_cpu_cycles_track_master_clock(self, frames):
        cpu, bus = build_system(IDLE_LOOP)
        for _ in range(frames):
            bus.run_frame()
        # CPUは3tickに1回進み、実行済み命令の残りサイクル分だけ先行して計上される
        cpu_clocks = (bus.clock_counter + 2) // 3
        assert cpu_clocks <= cpu.total_cycles < cpu_clocks + 3
