import yaml
from typing import Dict, Any
from .models import SystemConfig, CartridgeConfig, CpuInitialState, TraceConfig


class ConfigLoader:
    def load_from_file(self, path: str) -> SystemConfig:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
        return self._parse_config(self._section(data, "<root>"))

    def _parse_config(self, data: Dict[str, Any]) -> SystemConfig:
        arch = data.get("architecture", "NES")

        # Parse Cartridge
        cartridge = None
        if "cartridge" in data:
            cartridge_data = self._section(data["cartridge"], "cartridge")
            path = cartridge_data.get("path")
            if not path:
                raise ValueError("cartridge.path is required when a cartridge section is given")
            cartridge = CartridgeConfig(path=str(path))

        # Parse Initial State
        initial_state_data = self._section(data.get("initial_state"), "initial_state")
        registers = {
            name.lower(): self._parse_int(value)
            for name, value in self._section(initial_state_data.get("registers"), "registers").items()
        }
        initial_state = CpuInitialState(
            pc=self._parse_int(initial_state_data.get("pc", 0)),
            sp=self._parse_int(initial_state_data.get("sp", 0xFD)),
            use_reset_vector=bool(initial_state_data.get("use_reset_vector", True)),
            registers=registers
        )

        # Parse Trace
        trace_data = self._section(data.get("trace"), "trace")
        trace = TraceConfig(bus_activity=bool(trace_data.get("bus_activity", False)))

        return SystemConfig(
            architecture=arch,
            cartridge=cartridge,
            initial_state=initial_state,
            trace=trace
        )

    # @intent:responsibility 本体が空のセクション (YAMLではNone) を空の辞書として扱います。
    def _section(self, value: Any, name: str) -> Dict[str, Any]:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ValueError(f"Section '{name}' must be a mapping, got {type(value).__name__}")
        return value

    def _parse_int(self, value: Any) -> int:
        if isinstance(value, bool):
            raise ValueError(f"Invalid integer format: {value}")
        if isinstance(value, int):
            return value
        if isinstance(value, str):
            if value.lower().startswith("0x"):
                return int(value, 16)
            return int(value)
        raise ValueError(f"Invalid integer format: {value}")
