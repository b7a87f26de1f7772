"""Pillow-backed image recompression."""

import asyncio
from dataclasses import dataclass
from io import BytesIO

from PIL import Image, ImageOps, UnidentifiedImageError

from pixshop.domain.errors import ImageProcessingError
from pixshop.domain.images import build_encoded_image, parse_encoded_image
from pixshop.services.codec import ImageProcessor


@dataclass
class PillowImageProcessor(ImageProcessor):
    """Downscales images and re-encodes them as JPEG off the event loop."""

    background: tuple[int, int, int] = (255, 255, 255)

    async def recompress(self, data_url: str, max_dimension: int, quality: float) -> str:
        """Return a JPEG data URL no larger than ``max_dimension`` on either side."""
        return await asyncio.to_thread(
            self._recompress, data_url, max_dimension, quality
        )

    def _recompress(self, data_url: str, max_dimension: int, quality: float) -> str:
        try:
            _, content = parse_encoded_image(data_url)
            with Image.open(BytesIO(content)) as source:
                source.load()
                # The JPEG written below carries no EXIF, so bake the rotation in.
                image = self._flatten(ImageOps.exif_transpose(source))
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            raise ImageProcessingError("Could not decode image for compression") from exc

        # thumbnail() keeps the aspect ratio and never enlarges.
        image.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)
        buffer = BytesIO()
        image.save(buffer, format="JPEG", quality=round(quality * 100))
        return build_encoded_image("image/jpeg", buffer.getvalue())

    def _flatten(self, image: Image.Image) -> Image.Image:
        has_alpha = image.mode in ("RGBA", "LA") or (
            image.mode == "P" and "transparency" in image.info
        )
        if not has_alpha:
            return image.convert("RGB")
        rgba = image.convert("RGBA")
        flattened = Image.new("RGB", rgba.size, self.background)
        flattened.paste(rgba, mask=rgba.getchannel("A"))
        return flattened
