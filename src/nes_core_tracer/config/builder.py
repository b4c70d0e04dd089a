import logging
from typing import Tuple

from nes_core_tracer.transport.bus import Bus
from nes_core_tracer.cartridge.cartridge import Cartridge
from nes_core_tracer.arch.mos6502.cpu import Mos6502Cpu
from .models import SystemConfig, CpuInitialState

logger = logging.getLogger(__name__)

SUPPORTED_ARCHITECTURES = ("NES",)


# @intent:responsibility システム構成（Config）に基づいて、Bus、PPU、カートリッジ、CPUを生成・接続し、初期状態を適用します。
class SystemBuilder:
    def build_system(self, config: SystemConfig) -> Tuple[Mos6502Cpu, Bus]:
        if config.architecture.upper() not in SUPPORTED_ARCHITECTURES:
            raise ValueError(f"Unsupported architecture: {config.architecture}")

        bus = Bus()

        if config.cartridge is not None:
            bus.insert_cartridge(Cartridge.from_file(config.cartridge.path))
        else:
            logger.warning("No cartridge configured; PRG window falls back to RAM")

        cpu = Mos6502Cpu(bus)
        bus.connect_cpu(cpu)
        bus.set_trace_enabled(config.trace.bus_activity)

        # 初期状態の適用 (Bus.reset() がPPUとCPUをまとめてリセットする)
        bus.reset()
        self.apply_initial_state(cpu, config.initial_state)

        return cpu, bus

    # @intent:responsibility Configで定義された初期状態をCPUに適用します。
    # @intent:pre-condition CPUはリセット済みであること。
    def apply_initial_state(self, cpu: Mos6502Cpu, config_state: CpuInitialState) -> None:
        """
        リセットベクトルを使わない構成（自動テストROMを0xC000から実行する場合など）で、
        PC、SP、その他のレジスタを上書きします。
        """
        if config_state.use_reset_vector:
            return

        state = cpu.get_state().replace(
            pc=config_state.pc & 0xFFFF,
            sp=config_state.sp & 0xFF
        )
        # その他のレジスタ
        for reg_name, value in config_state.registers.items():
            if reg_name not in ("a", "x", "y", "p"):
                logger.warning("Unknown register '%s' in initial_state ignored", reg_name)
                continue
            state = state.replace(**{reg_name: value & 0xFF})
        # Unusedビットは常に1
        cpu.set_state(state.update_flags())
