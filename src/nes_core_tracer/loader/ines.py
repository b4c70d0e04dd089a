# nes_core_tracer/loader/ines.py
"""
iNESローダーモジュール。
.nes 形式のカートリッジイメージを解析し、ヘッダ情報とPRG/CHRのバイト列を取り出します。
カートリッジやバスへの接続はここでは行いません。
"""
import logging
from dataclasses import dataclass
from typing import Optional

from nes_core_tracer.common.types import Mirroring

logger = logging.getLogger(__name__)

INES_MAGIC = b"NES\x1a"
HEADER_SIZE = 16
TRAINER_SIZE = 512
PRG_BANK_SIZE = 0x4000  # 16KB
CHR_BANK_SIZE = 0x2000  # 8KB


# @intent:responsibility イメージファイルの形式不正を表す例外です。
class FormatError(ValueError):
    pass


# @intent:responsibility 解析済みのiNESイメージを保持します。
@dataclass(frozen=True)
class InesImage:
    """
    iNESヘッダから取り出したフィールドと、PRG/CHRのバイト列。
    chr_banks が0の場合、chr_data は空であり、カートリッジ側で8KBのCHR-RAMを用意します。
    """
    prg_banks: int
    chr_banks: int
    mapper_id: int
    mirroring: Mirroring
    prg_data: bytes
    chr_data: bytes
    has_battery: bool = False
    trainer: Optional[bytes] = None
    is_pal: bool = False

    @property
    def uses_chr_ram(self) -> bool:
        return self.chr_banks == 0


# @intent:responsibility バイト列をiNESイメージとして解析します。
# @intent:pre-condition dataは先頭16バイトのヘッダを含む完全なイメージである必要があります。
# @intent:post-condition 不正なイメージに対しては部分的な結果を返さず、FormatErrorを送出します。
def parse_ines(data: bytes) -> InesImage:
    if len(data) < HEADER_SIZE or data[0:4] != INES_MAGIC:
        raise FormatError("Invalid iNES header: missing 'NES\\x1A' magic.")

    prg_banks = data[4]
    chr_banks = data[5]
    flags6 = data[6]
    flags7 = data[7]
    flags9 = data[9]
    if prg_banks == 0:
        raise FormatError("Invalid iNES header: PRG bank count is zero.")

    mapper_id = (flags7 & 0xF0) | (flags6 >> 4)
    mirroring = Mirroring(flags6 & 0x01)
    has_battery = bool(flags6 & 0x02)

    offset = HEADER_SIZE
    trainer = None
    if flags6 & 0x04:
        trainer = bytes(data[offset:offset + TRAINER_SIZE])
        if len(trainer) != TRAINER_SIZE:
            raise FormatError("Truncated iNES image: trainer flag set but trainer data is missing.")
        offset += TRAINER_SIZE

    prg_size = prg_banks * PRG_BANK_SIZE
    chr_size = chr_banks * CHR_BANK_SIZE
    if len(data) < offset + prg_size + chr_size:
        raise FormatError(
            f"Truncated iNES image: header declares {prg_banks} PRG / {chr_banks} CHR banks "
            f"but only {len(data) - offset} data bytes are present."
        )

    prg_data = bytes(data[offset:offset + prg_size])
    offset += prg_size
    chr_data = bytes(data[offset:offset + chr_size])

    logger.debug(
        "iNES image: mapper=%d prg_banks=%d chr_banks=%d mirroring=%s",
        mapper_id, prg_banks, chr_banks, mirroring.name,
    )
    return InesImage(
        prg_banks=prg_banks,
        chr_banks=chr_banks,
        mapper_id=mapper_id,
        mirroring=mirroring,
        prg_data=prg_data,
        chr_data=chr_data,
        has_battery=has_battery,
        trainer=trainer,
        is_pal=bool(flags9 & 0x01),
    )


# @intent:responsibility ファイルを読み込み、iNESイメージとして解析します。
def load_ines_file(file_path: str) -> InesImage:
    with open(file_path, 'rb') as f:
        data = f.read()
    logger.debug("Loaded %d bytes from %s", len(data), file_path)
    return parse_ines(data)
