# nes_core_tracer/ppu/ppu.py
"""
2C02 PPU エミュレーション

1回の clock() で1ドット進むスキャンライン/ドットの状態機械です。
背景タイルのフェッチパイプライン、スクロールレジスタ(v/t)の操作、スプライト評価、
画素の優先度判定、VBlankフラグとNMI要求の生成を担います。

NMIは `nmi_requested` フラグとして出力し、Busがそれをポーリングして CPU へ転送します。
PPUはCPUを参照しません。
"""
from typing import Iterable, List

import numpy as np

from nes_core_tracer.ppu.memory import PpuBusPort, PpuMemory
from nes_core_tracer.ppu.palette import to_rgb


# @intent:responsibility バイトのビット順を反転します（スプライトの水平反転用）。
def reverse_bits(value: int) -> int:
    value = ((value & 0xF0) >> 4) | ((value & 0x0F) << 4)
    value = ((value & 0xCC) >> 2) | ((value & 0x33) << 2)
    value = ((value & 0xAA) >> 1) | ((value & 0x55) << 1)
    return value & 0xFF


# @intent:responsibility NESのPPU(2C02)をドット単位でエミュレートします。
class Ppu:
    """
    PPU本体。

    タイミング:
      スキャンライン 0-239 可視, 240 ポストレンダー, 241-260 VBlank, 261 プリレンダー
      1スキャンライン = 341ドット (0-340)

    CPUから見えるレジスタは cpu_read / cpu_write (0x2000-0x2007) で操作します。
    フレームバッファは (240, 256) の uint8 配列で、マスターパレットのインデックス(0-63)を保持します。
    """
    SCREEN_WIDTH = 256
    SCREEN_HEIGHT = 240
    DOTS_PER_SCANLINE = 341
    SCANLINES_PER_FRAME = 262
    VBLANK_SCANLINE = 241
    PRE_RENDER_SCANLINE = 261
    MAX_SPRITES_PER_LINE = 8

    # PPUCTRL
    CTRL_INCREMENT_32 = 0x04
    CTRL_SPRITE_TABLE = 0x08
    CTRL_BACKGROUND_TABLE = 0x10
    CTRL_SPRITE_8X16 = 0x20
    CTRL_NMI_ENABLE = 0x80
    # PPUMASK
    MASK_BACKGROUND_LEFT = 0x02
    MASK_SPRITES_LEFT = 0x04
    MASK_BACKGROUND = 0x08
    MASK_SPRITES = 0x10
    MASK_RENDERING = MASK_BACKGROUND | MASK_SPRITES
    # PPUSTATUS
    STATUS_SPRITE_OVERFLOW = 0x20
    STATUS_SPRITE_ZERO_HIT = 0x40
    STATUS_VBLANK = 0x80

    def __init__(self):
        self._memory = PpuMemory()
        self._oam = bytearray(0x100)
        self._frame_buffer = np.zeros((self.SCREEN_HEIGHT, self.SCREEN_WIDTH), dtype=np.uint8)
        # Busがポーリングし、CPUへ転送した時点でクリアする出力フラグ
        self.nmi_requested = False
        self.reset()

    # @intent:responsibility CHRとミラーリング方式を提供するBusを接続します。
    def connect_bus(self, bus: PpuBusPort) -> None:
        self._memory.connect(bus)

    # @intent:responsibility 電源投入/リセット時の状態に戻します。
    # @intent:note OAMとネームテーブルの内容は保持されます。
    def reset(self) -> None:
        self._ctrl = 0x00
        self._mask = 0x00
        self._status = 0x00
        self._oam_addr = 0x00

        self._v = 0x0000
        self._t = 0x0000
        self._fine_x = 0
        self._write_toggle = False
        self._data_buffer = 0x00

        self._scanline = 0
        self._dot = 0
        self._frame = 0
        self.nmi_requested = False

        self._memory.reset()

        # Background pipeline
        self._bg_next_tile_id = 0
        self._bg_next_tile_attrib = 0
        self._bg_next_tile_lsb = 0
        self._bg_next_tile_msb = 0
        self._bg_shifter_pattern_lo = 0
        self._bg_shifter_pattern_hi = 0
        self._bg_shifter_attrib_lo = 0
        self._bg_shifter_attrib_hi = 0

        # Sprite pipeline
        self._secondary_oam = bytearray(b"\xFF" * 32)
        self._sprite_count = 0
        self._sprite_zero_selected = False
        self._sprite_pattern_lo: List[int] = [0] * self.MAX_SPRITES_PER_LINE
        self._sprite_pattern_hi: List[int] = [0] * self.MAX_SPRITES_PER_LINE
        self._sprite_x: List[int] = [0] * self.MAX_SPRITES_PER_LINE
        self._sprite_attrib: List[int] = [0] * self.MAX_SPRITES_PER_LINE

    # --- Accessors ---

    @property
    def ctrl(self) -> int:
        return self._ctrl

    @property
    def mask(self) -> int:
        return self._mask

    @property
    def status(self) -> int:
        return self._status

    @property
    def oam_addr(self) -> int:
        return self._oam_addr

    # @intent:responsibility スクロール内部レジスタをテストや表示層から観察するためのアクセサ。
    @property
    def v(self) -> int:
        return self._v

    @property
    def t(self) -> int:
        return self._t

    @property
    def fine_x(self) -> int:
        return self._fine_x

    @property
    def write_toggle(self) -> bool:
        return self._write_toggle

    @property
    def scanline(self) -> int:
        return self._scanline

    @property
    def dot(self) -> int:
        return self._dot

    @property
    def frame(self) -> int:
        return self._frame

    @property
    def oam(self) -> bytes:
        return bytes(self._oam)

    @property
    def frame_buffer(self) -> np.ndarray:
        return self._frame_buffer

    # @intent:responsibility フレームバッファをマスターパレットでRGBに変換した (240, 256, 3) 配列を返します。
    def frame_rgb(self) -> np.ndarray:
        return to_rgb(self._frame_buffer)

    # --- PPU address space ---

    def ppu_read(self, address: int) -> int:
        return self._memory.read(address)

    def ppu_write(self, address: int, data: int) -> None:
        self._memory.write(address, data)

    # --- CPU register window (0x2000-0x2007) ---

    # @intent:responsibility CPUからのレジスタ読み出し。書き込み専用レジスタは0を返します。
    def cpu_read(self, address: int) -> int:
        register = address & 0x0007
        data = 0x00
        if register == 0x0002:  # PPUSTATUS
            # 下位5bitには直前のPPUDATAバッファの値が漏れ出す
            data = (self._status & 0xE0) | (self._data_buffer & 0x1F)
            self._status &= ~self.STATUS_VBLANK & 0xFF
            self._write_toggle = False
        elif register == 0x0004:  # OAMDATA
            data = self._oam[self._oam_addr]
        elif register == 0x0007:  # PPUDATA
            data = self._data_buffer
            self._data_buffer = self._memory.read(self._v)
            # パレットはバッファを介さず即座に返る
            if (self._v & 0x3FFF) >= 0x3F00:
                data = self._data_buffer
            self._increment_vram_address()
        return data

    # @intent:responsibility CPUからのレジスタ書き込み。
    def cpu_write(self, address: int, data: int) -> None:
        register = address & 0x0007
        data &= 0xFF
        if register == 0x0000:  # PPUCTRL
            nmi_was_enabled = self._ctrl & self.CTRL_NMI_ENABLE
            self._ctrl = data
            # t: ...BA.. ........ = d: ......BA
            self._t = (self._t & 0xF3FF) | ((data & 0x03) << 10)
            # VBlank中にNMI出力が有効化された場合は即座にNMIを要求する
            if not nmi_was_enabled and data & self.CTRL_NMI_ENABLE and self._status & self.STATUS_VBLANK:
                self.nmi_requested = True
        elif register == 0x0001:  # PPUMASK
            self._mask = data
        elif register == 0x0003:  # OAMADDR
            self._oam_addr = data
        elif register == 0x0004:  # OAMDATA
            self._oam[self._oam_addr] = data
            self._oam_addr = (self._oam_addr + 1) & 0xFF
        elif register == 0x0005:  # PPUSCROLL
            if not self._write_toggle:
                # t: ....... ...HGFED = d: HGFED...
                self._t = (self._t & 0xFFE0) | (data >> 3)
                self._fine_x = data & 0x07
            else:
                # t: CBA..HG FED..... = d: HGFEDCBA
                self._t = (self._t & 0x8FFF) | ((data & 0x07) << 12)
                self._t = (self._t & 0xFC1F) | ((data & 0xF8) << 2)
            self._write_toggle = not self._write_toggle
        elif register == 0x0006:  # PPUADDR
            if not self._write_toggle:
                # t: .FEDCBA ........ = d: ..FEDCBA, bit14 = 0
                self._t = (self._t & 0x80FF) | ((data & 0x3F) << 8)
            else:
                self._t = (self._t & 0xFF00) | data
                self._v = self._t
            self._write_toggle = not self._write_toggle
        elif register == 0x0007:  # PPUDATA
            self._memory.write(self._v, data)
            self._increment_vram_address()

    def _increment_vram_address(self) -> None:
        self._v = (self._v + (32 if self._ctrl & self.CTRL_INCREMENT_32 else 1)) & 0x3FFF

    # @intent:responsibility OAM DMA転送。OAMADDRから書き込みを開始し、256バイトでラップします。
    # @intent:invariant 呼び出し中にclock()は進まないため、転送はOAMの読み出しに対して不可分です。
    def oam_dma(self, data: Iterable[int]) -> None:
        addr = self._oam_addr
        for value in data:
            self._oam[addr] = value & 0xFF
            addr = (addr + 1) & 0xFF

    # --- Timing ---

    # @intent:responsibility PPUを1ドット進めます。
    def clock(self) -> None:
        scanline = self._scanline
        dot = self._dot

        if scanline < self.SCREEN_HEIGHT or scanline == self.PRE_RENDER_SCANLINE:
            if 1 <= dot <= 256 or 321 <= dot <= 336:
                self._update_shifters()
                stage = (dot - 1) & 0x07
                if stage == 0:
                    self._load_background_shifters()
                    self._fetch_nametable_byte()
                elif stage == 2:
                    self._fetch_attribute_byte()
                elif stage == 4:
                    self._bg_next_tile_lsb = self._memory.read(self._background_pattern_address())
                elif stage == 6:
                    self._bg_next_tile_msb = self._memory.read(self._background_pattern_address() + 8)
                elif stage == 7:
                    self._increment_scroll_x()

            if dot == 256:
                self._increment_scroll_y()
            elif dot == 257:
                self._load_background_shifters()
                if self._mask & self.MASK_RENDERING:
                    # v: ....A.. ...EDCBA = t: ....A.. ...EDCBA
                    self._v = (self._v & 0xFBE0) | (self._t & 0x041F)
                self._evaluate_sprites()
            elif dot == 320:
                self._fetch_sprite_patterns()

            if (scanline == self.PRE_RENDER_SCANLINE and 280 <= dot <= 304
                    and self._mask & self.MASK_RENDERING):
                # v: GHIA.BC DEF..... = t: GHIA.BC DEF.....
                self._v = (self._v & 0x841F) | (self._t & 0x7BE0)

            if scanline < self.SCREEN_HEIGHT and 1 <= dot <= 256:
                self._render_pixel()

        if scanline == self.VBLANK_SCANLINE and dot == 1:
            self._status |= self.STATUS_VBLANK
            if self._ctrl & self.CTRL_NMI_ENABLE:
                self.nmi_requested = True
        elif scanline == self.PRE_RENDER_SCANLINE and dot == 1:
            self._status &= ~(self.STATUS_VBLANK | self.STATUS_SPRITE_ZERO_HIT | self.STATUS_SPRITE_OVERFLOW) & 0xFF
            for i in range(self.MAX_SPRITES_PER_LINE):
                self._sprite_pattern_lo[i] = 0
                self._sprite_pattern_hi[i] = 0

        self._dot += 1
        if self._dot >= self.DOTS_PER_SCANLINE:
            self._dot = 0
            self._scanline += 1
            if self._scanline >= self.SCANLINES_PER_FRAME:
                self._scanline = 0
                self._frame += 1

    # --- Background pipeline ---

    def _fetch_nametable_byte(self) -> None:
        self._bg_next_tile_id = self._memory.read(0x2000 | (self._v & 0x0FFF))

    # @intent:note 属性バイトは4x4タイル分を持ち、coarse X/Yのbit1で2bitずつ選択します。
    def _fetch_attribute_byte(self) -> None:
        v = self._v
        attrib = self._memory.read(0x23C0 | (v & 0x0C00) | ((v >> 4) & 0x38) | ((v >> 2) & 0x07))
        if v & 0x0040:
            attrib >>= 4
        if v & 0x0002:
            attrib >>= 2
        self._bg_next_tile_attrib = attrib & 0x03

    def _background_pattern_address(self) -> int:
        fine_y = (self._v >> 12) & 0x07
        table = 0x1000 if self._ctrl & self.CTRL_BACKGROUND_TABLE else 0x0000
        return table + (self._bg_next_tile_id << 4) + fine_y

    def _load_background_shifters(self) -> None:
        self._bg_shifter_pattern_lo = (self._bg_shifter_pattern_lo & 0xFF00) | self._bg_next_tile_lsb
        self._bg_shifter_pattern_hi = (self._bg_shifter_pattern_hi & 0xFF00) | self._bg_next_tile_msb
        self._bg_shifter_attrib_lo = (self._bg_shifter_attrib_lo & 0xFF00) | (
            0xFF if self._bg_next_tile_attrib & 0x01 else 0x00)
        self._bg_shifter_attrib_hi = (self._bg_shifter_attrib_hi & 0xFF00) | (
            0xFF if self._bg_next_tile_attrib & 0x02 else 0x00)

    def _update_shifters(self) -> None:
        if self._mask & self.MASK_BACKGROUND:
            self._bg_shifter_pattern_lo = (self._bg_shifter_pattern_lo << 1) & 0xFFFF
            self._bg_shifter_pattern_hi = (self._bg_shifter_pattern_hi << 1) & 0xFFFF
            self._bg_shifter_attrib_lo = (self._bg_shifter_attrib_lo << 1) & 0xFFFF
            self._bg_shifter_attrib_hi = (self._bg_shifter_attrib_hi << 1) & 0xFFFF

    # @intent:responsibility coarse Xを1タイル進めます。31を超えると水平ネームテーブルを切り替えます。
    def _increment_scroll_x(self) -> None:
        if not self._mask & self.MASK_RENDERING:
            return
        if (self._v & 0x001F) == 31:
            self._v = (self._v & ~0x001F) ^ 0x0400
        else:
            self._v += 1

    # @intent:responsibility fine Yを1ライン進め、溢れたらcoarse Yへ繰り上げます。
    # @intent:note coarse Y 29 -> 0 では垂直ネームテーブルを切り替え、31 -> 0 (属性領域からの折り返し) では切り替えません。
    def _increment_scroll_y(self) -> None:
        if not self._mask & self.MASK_RENDERING:
            return
        if (self._v & 0x7000) != 0x7000:
            self._v += 0x1000
            return
        self._v &= ~0x7000
        coarse_y = (self._v & 0x03E0) >> 5
        if coarse_y == 29:
            coarse_y = 0
            self._v ^= 0x0800
        elif coarse_y == 31:
            coarse_y = 0
        else:
            coarse_y += 1
        self._v = (self._v & ~0x03E0) | (coarse_y << 5)

    # --- Sprite pipeline ---

    def _sprite_height(self) -> int:
        return 16 if self._ctrl & self.CTRL_SPRITE_8X16 else 8

    def _target_scanline(self) -> int:
        return 0 if self._scanline == self.PRE_RENDER_SCANLINE else self._scanline + 1

    # @intent:responsibility 次のスキャンラインに表示するスプライトを最大8個まで選び、セカンダリOAMへ複写します。
    # @intent:note 8個ちょうど見つかった時点でオーバーフローフラグを立てます。9個目以降の実機のバグ挙動は再現しません。
    def _evaluate_sprites(self) -> None:
        self._secondary_oam[:] = b"\xFF" * 32
        self._sprite_count = 0
        self._sprite_zero_selected = False

        target = self._target_scanline()
        height = self._sprite_height()
        for entry in range(64):
            if self._sprite_count >= self.MAX_SPRITES_PER_LINE:
                break
            base = entry * 4
            diff = target - self._oam[base]
            if 0 <= diff < height:
                slot = self._sprite_count * 4
                self._secondary_oam[slot:slot + 4] = self._oam[base:base + 4]
                if entry == 0:
                    self._sprite_zero_selected = True
                self._sprite_count += 1

        if self._sprite_count == self.MAX_SPRITES_PER_LINE:
            self._status |= self.STATUS_SPRITE_OVERFLOW

    # @intent:responsibility 選ばれたスプライトのパターンを読み、反転を適用してラッチへ格納します。
    def _fetch_sprite_patterns(self) -> None:
        target = self._target_scanline()
        height = self._sprite_height()
        for i in range(self._sprite_count):
            sprite_y, tile, attrib, sprite_x = self._secondary_oam[i * 4:i * 4 + 4]

            row = target - sprite_y
            if attrib & 0x80:
                row = height - 1 - row

            if height == 8:
                table = 0x1000 if self._ctrl & self.CTRL_SPRITE_TABLE else 0x0000
                address = table + (tile << 4) + row
            else:
                # 8x16ではタイル番号のbit0がパターンテーブルを選ぶ
                table = 0x1000 if tile & 0x01 else 0x0000
                tile &= 0xFE
                if row < 8:
                    address = table + (tile << 4) + row
                else:
                    address = table + ((tile + 1) << 4) + (row - 8)

            pattern_lo = self._memory.read(address)
            pattern_hi = self._memory.read(address + 8)
            if attrib & 0x40:
                pattern_lo = reverse_bits(pattern_lo)
                pattern_hi = reverse_bits(pattern_hi)

            self._sprite_pattern_lo[i] = pattern_lo
            self._sprite_pattern_hi[i] = pattern_hi
            self._sprite_x[i] = sprite_x
            self._sprite_attrib[i] = attrib

    # --- Pixel output ---

    # @intent:responsibility 現在のドットの画素を決定し、フレームバッファへ書き込みます。
    def _render_pixel(self) -> None:
        x = self._dot - 1
        mask = self._mask
        left_edge = self._dot <= 8

        bg_pixel = 0
        bg_palette = 0
        if mask & self.MASK_BACKGROUND and not (left_edge and not mask & self.MASK_BACKGROUND_LEFT):
            mux = 0x8000 >> self._fine_x
            bg_pixel = (2 if self._bg_shifter_pattern_hi & mux else 0) | (
                1 if self._bg_shifter_pattern_lo & mux else 0)
            bg_palette = (2 if self._bg_shifter_attrib_hi & mux else 0) | (
                1 if self._bg_shifter_attrib_lo & mux else 0)

        sprite_pixel = 0
        sprite_palette = 0
        sprite_behind = False
        sprite_zero_rendered = False
        if mask & self.MASK_SPRITES and not (left_edge and not mask & self.MASK_SPRITES_LEFT):
            # OAMの若い番号のスプライトが優先される
            for i in range(self._sprite_count):
                offset = x - self._sprite_x[i]
                if not 0 <= offset < 8:
                    continue
                bit = 0x80 >> offset
                pixel = (2 if self._sprite_pattern_hi[i] & bit else 0) | (
                    1 if self._sprite_pattern_lo[i] & bit else 0)
                if pixel:
                    sprite_pixel = pixel
                    sprite_palette = (self._sprite_attrib[i] & 0x03) + 4
                    sprite_behind = bool(self._sprite_attrib[i] & 0x20)
                    sprite_zero_rendered = i == 0 and self._sprite_zero_selected
                    break

        if bg_pixel == 0 and sprite_pixel == 0:
            pixel, palette = 0, 0
        elif bg_pixel == 0:
            pixel, palette = sprite_pixel, sprite_palette
        elif sprite_pixel == 0:
            pixel, palette = bg_pixel, bg_palette
        else:
            if sprite_behind:
                pixel, palette = bg_pixel, bg_palette
            else:
                pixel, palette = sprite_pixel, sprite_palette
            if self._is_sprite_zero_hit(sprite_zero_rendered):
                self._status |= self.STATUS_SPRITE_ZERO_HIT

        color = self._memory.read(0x3F00 + (palette << 2) + pixel) & 0x3F
        self._frame_buffer[self._scanline, x] = color

    # @intent:pre-condition 背景とスプライトの両方の画素が不透明であること。
    def _is_sprite_zero_hit(self, sprite_zero_rendered: bool) -> bool:
        if not sprite_zero_rendered:
            return False
        if (self._mask & self.MASK_RENDERING) != self.MASK_RENDERING:
            return False
        if self._scanline == self.PRE_RENDER_SCANLINE:
            return False
        left_clipped = (self._mask & 0x06) != 0x06
        return not (left_clipped and self._dot <= 8)
