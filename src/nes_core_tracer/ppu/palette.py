# nes_core_tracer/ppu/palette.py
"""
2C02のマスターパレット(64色)。

フレームバッファは6bitのパレットインデックスを保持し、表示層へ渡す際にこの表でRGBへ変換します。
"""
import numpy as np

# 0xRRGGBB
_MASTER_PALETTE_RGB = (
    0x666666, 0x002A88, 0x1412A7, 0x3B00A4, 0x5C007E, 0x6E0040, 0x6C0600, 0x561D00,
    0x333500, 0x0B4800, 0x005200, 0x004F08, 0x00404D, 0x000000, 0x000000, 0x000000,
    0xADADAD, 0x155FD9, 0x4240FF, 0x7527FE, 0xA01ACC, 0xB71E7B, 0xB53120, 0x994E00,
    0x6B6D00, 0x388700, 0x0C9300, 0x008F32, 0x007C8D, 0x000000, 0x000000, 0x000000,
    0xFFFEFF, 0x64B0FF, 0x9290FF, 0xC676FF, 0xF36AFF, 0xFE6ECC, 0xFE8170, 0xEA9E22,
    0xBCBE00, 0x88D800, 0x5CE430, 0x45E082, 0x48CDDE, 0x4F4F4F, 0x000000, 0x000000,
    0xFFFEFF, 0xC0DFFF, 0xD3D2FF, 0xE8C8FF, 0xFBC2FF, 0xFEC4EA, 0xFECCC5, 0xF7D8A5,
    0xE4E594, 0xCFEF96, 0xBDF4AB, 0xB3F3CC, 0xB5EBF2, 0xB8B8B8, 0x000000, 0x000000,
)

# @intent:data_structure (64, 3) の uint8 配列。読み取り専用。
NES_PALETTE: np.ndarray = np.array(
    [((rgb >> 16) & 0xFF, (rgb >> 8) & 0xFF, rgb & 0xFF) for rgb in _MASTER_PALETTE_RGB],
    dtype=np.uint8,
)
NES_PALETTE.setflags(write=False)


# @intent:responsibility パレットインデックスの配列を同じ形状のRGB配列 (..., 3) に変換します。
def to_rgb(indices: np.ndarray) -> np.ndarray:
    return NES_PALETTE[np.asarray(indices, dtype=np.uint8) & 0x3F]
