import io
import os
import numpy as np
import imageio.v3 as iio
import tifffile
from PIL import Image
from halidepy.domain.interfaces import IImageLoader
from halidepy.domain.types import ImageBuffer, PixelBuffer
from halidepy.kernel.image.logic import to_intensity

SUPPORTED_INPUT_EXTENSIONS = {".png", ".jpg", ".jpeg", ".tif", ".tiff", ".bmp", ".webp"}
OUTPUT_FORMATS = ("png", "tiff", "jpeg")


class IntensityLoader(IImageLoader):
    """
    Decodes an image file into a single-channel [0, 1] intensity buffer.
    """

    def load(self, file_path: str) -> ImageBuffer:
        if not os.path.isfile(file_path):
            raise FileNotFoundError(f"Input image not found: {file_path}")

        ext = os.path.splitext(file_path)[1].lower()
        if ext in (".tif", ".tiff"):
            img = tifffile.imread(file_path)
        else:
            img = iio.imread(file_path)

        if img is None or img.size == 0:
            raise ValueError(f"Could not decode image: {file_path}")
        return to_intensity(np.ascontiguousarray(img))


def encode_output(buffer: PixelBuffer, fmt: str) -> bytes:
    """Encodes a rendered uint8 canvas to PNG, TIFF or JPEG bytes."""
    output_buf = io.BytesIO()
    if fmt == "tiff":
        tifffile.imwrite(
            output_buf,
            buffer,
            photometric="rgb" if buffer.ndim == 3 else "minisblack",
            compression="zlib",
        )
        return output_buf.getvalue()

    if fmt == "png":
        Image.fromarray(buffer).save(output_buf, format="PNG")
        return output_buf.getvalue()

    if fmt == "jpeg":
        # JPEG has no alpha
        pil_img = Image.fromarray(buffer[:, :, 0] if buffer.ndim == 3 else buffer)
        pil_img.save(output_buf, format="JPEG", quality=95)
        return output_buf.getvalue()

    raise ValueError(f"Unsupported output format '{fmt}', expected one of {OUTPUT_FORMATS}")


def save_output(buffer: PixelBuffer, path: str, fmt: str) -> None:
    bits = encode_output(buffer, fmt)
    with open(path, "wb") as f:
        f.write(bits)
