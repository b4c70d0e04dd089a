# nes_core_tracer/transport/device.py
"""
Transport Layer (デバイス)

バスに接続されるデバイスの抽象インターフェースと、汎用のメモリデバイス（RAM/ROM）を定義します。
"""
from abc import ABC, abstractmethod


# @intent:responsibility バスの抽象デバイスインターフェースを定義します。
class Device(ABC):
    """
    バスに接続されるデバイスの抽象基底クラス。
    全てのデバイスはreadとwriteのインターフェースを実装する必要があります。
    """
    # @intent:responsibility 指定されたアドレスから8bitのデータを読み出す責務を負います。
    # @intent:pre-condition アドレスはデバイス内でのオフセットとして渡されます。
    @abstractmethod
    def read(self, address: int) -> int:
        """
        指定されたアドレスから8bitのデータを読み出します。
        アドレスはデバイス内でのオフセットとして扱われます。
        """
        pass

    # @intent:responsibility 指定されたアドレスに8bitのデータを書き込みます。
    @abstractmethod
    def write(self, address: int, data: int) -> None:
        """
        指定されたアドレスに8bitのデータを書き込みます。
        アドレスはデバイス内でのオフセットとして扱われます。
        """
        pass


# @intent:responsibility 基本的なRAMデバイスの機能を提供します。
class RAM(Device):
    """
    システムRAM、ネームテーブルRAM、CHR-RAMなどに使用する読み書き可能なメモリデバイス。
    """
    # @intent:pre-condition sizeは正の整数である必要があります。
    def __init__(self, size: int):
        if not isinstance(size, int) or size <= 0:
            raise ValueError("RAM size must be a positive integer.")
        self._memory = bytearray(size)
        self._size = size

    def read(self, address: int) -> int:
        if not 0 <= address < self._size:
            raise IndexError(f"Address {address} out of bounds for RAM of size {self._size}.")
        return self._memory[address]

    def write(self, address: int, data: int) -> None:
        if not 0 <= address < self._size:
            raise IndexError(f"Address {address} out of bounds for RAM of size {self._size}.")
        if not 0 <= data <= 0xFF:
            raise ValueError(f"Data {data} is not an 8-bit value.")
        self._memory[address] = data

    # @intent:responsibility メモリ領域にバイト列を一括で書き込みます。
    def load_block(self, address: int, data: bytes) -> None:
        """
        初期化用に、指定オフセットからバイト列をまとめて書き込みます。
        """
        end = address + len(data)
        if address < 0 or end > self._size:
            raise IndexError(
                f"Block {address}..{end} out of bounds for {type(self).__name__} of size {self._size}."
            )
        self._memory[address:end] = data


# @intent:responsibility 読み込み専用メモリ(ROM)の機能を提供します。
class ROM(RAM):
    """
    読み込み専用メモリデバイス。PRG-ROM、CHR-ROMの格納に使用します。
    書き込み操作は無視されます。初期化は load_block 経由で行います。
    """
    # @intent:rationale 実機ではROMへの書き込みは効果を持たないため、例外を投げずに無視します。
    def write(self, address: int, data: int) -> None:
        if not 0 <= address < self._size:
            raise IndexError(f"Address {address} out of bounds for ROM of size {self._size}.")
        # Intentional: ROM writes are ignored as per hardware behavior.
        pass

