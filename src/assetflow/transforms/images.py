# transforms/images.py
from __future__ import annotations

import io

from PIL import Image, UnidentifiedImageError

from ..model import SourceFile
from .registry import FileTransform


ENCODABLE = {".png", ".jpg", ".jpeg", ".gif"}


class ImageMin(FileTransform):
    """
    Re-encode raster images with Pillow's optimizers.

    PNGs can additionally be quantized to a palette (lossy, like pngquant).
    The original bytes are kept whenever re-encoding does not make the file
    smaller.
    """

    name = "imagemin"

    def __init__(self, progressive: bool = True, quantize_png: bool = False, colors: int = 256, jpeg_quality: int | None = None):
        self.progressive = progressive
        self.quantize_png = quantize_png
        self.colors = colors
        self.jpeg_quality = jpeg_quality

    def _encode(self, img: Image.Image, suffix: str) -> bytes:
        buf = io.BytesIO()
        if suffix == ".png":
            if self.quantize_png:
                if img.mode not in ("RGB", "RGBA", "L"):
                    img = img.convert("RGBA")
                img = img.quantize(colors=self.colors)
            img.save(buf, format="PNG", optimize=True)
        elif suffix in (".jpg", ".jpeg"):
            quality = self.jpeg_quality if self.jpeg_quality is not None else "keep"
            img.save(buf, format="JPEG", optimize=True, progressive=self.progressive, quality=quality)
        elif suffix == ".gif":
            img.save(buf, format="GIF", optimize=True, save_all=getattr(img, "is_animated", False))
        return buf.getvalue()

    def transform_file(self, f: SourceFile) -> SourceFile:
        suffix = f.path.suffix.lower()
        if suffix not in ENCODABLE:
            return f
        try:
            with Image.open(io.BytesIO(f.contents)) as img:
                img.load()
                encoded = self._encode(img, suffix)
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise self.error(f, f"cannot optimize image: {e}")
        if len(encoded) >= len(f.contents):
            return f
        return SourceFile(path=f.path, contents=encoded, origin=f.origin)
