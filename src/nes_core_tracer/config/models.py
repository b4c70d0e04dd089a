from dataclasses import dataclass, field
from typing import Optional


@dataclass
class CpuInitialState:
    pc: int = 0x0000
    sp: int = 0xFD
    use_reset_vector: bool = True  # Falseの場合、リセット後に pc/sp/registers で上書きする
    registers: dict = field(default_factory=dict)


@dataclass
class CartridgeConfig:
    path: str  # iNESイメージのパス


@dataclass
class TraceConfig:
    bus_activity: bool = False  # SnapshotにBusAccessを記録するかどうか


@dataclass
class SystemConfig:
    architecture: str = "NES"
    cartridge: Optional[CartridgeConfig] = None
    initial_state: CpuInitialState = field(default_factory=CpuInitialState)
    trace: TraceConfig = field(default_factory=TraceConfig)
