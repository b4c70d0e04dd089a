import unittest
from nes_core_tracer.transport.bus import Bus, RAM
from nes_core_tracer.transport.ports import ApuRegisters

class TestBusAbnormal(unittest.TestCase):
    def setUp(self):
        self.bus = Bus()

    def test_write_non_8bit_data_to_ram(self):
        with self.assertRaises(ValueError):
            self.bus.write(0x0000, 0x100)

    def test_write_non_8bit_data_to_fallback_prg(self):
        with self.assertRaises(ValueError):
            self.bus.write(0x8000, -1)

    def test_addresses_are_wrapped_to_16bit(self):
        self.bus.write(0x10005, 0x77)
        self.assertEqual(self.bus.read(0x0005), 0x77)

    def test_ram_invalid_init(self):
        with self.assertRaises(ValueError):
            RAM(-1)
        with self.assertRaises(ValueError):
            RAM(0)

    def test_apu_register_window_out_of_range(self):
        apu = ApuRegisters()
        with self.assertRaises(IndexError):
            apu.write(0x18, 0x00)

    def test_controller_port_out_of_range(self):
        with self.assertRaises(IndexError):
            self.bus.set_buttons(2, 0)

if __name__ == '__main__':
    unittest.main()
