import base64
import io
import os

import cv2
import numpy as np
from PIL import Image, ImageOps


def uri_to_path(uri: str) -> str:
    if not uri:
        return uri
    if uri.lower().startswith("file://"):
        uri = uri[7:]
    return os.path.expanduser(uri)


def read_as_base64(uri: str) -> str:
    with open(uri_to_path(uri), "rb") as f:
        return base64.b64encode(f.read()).decode("ascii")


def decode_base64(data: str) -> bytes:
    return base64.b64decode(data, validate=True)


def decode_image_bgr(raw: bytes) -> np.ndarray:
    """Decode encoded image bytes (JPEG/PNG/...) into a HxWx3 uint8 BGR array."""
    if not raw:
        raise ValueError("empty image buffer")
    buf = np.frombuffer(raw, dtype=np.uint8)
    img = cv2.imdecode(buf, cv2.IMREAD_COLOR)
    if img is not None:
        return img
    # formats OpenCV cannot read: use Pillow
    try:
        with Image.open(io.BytesIO(raw)) as im:
            rgb = ImageOps.exif_transpose(im).convert("RGB")
            arr = np.array(rgb)
    except Exception as e:
        raise ValueError(f"could not decode image: {e}") from e
    return arr[:, :, ::-1].copy()  # to BGR


def write_jpeg(path: str, frame: np.ndarray, quality: int = 92) -> None:
    ok = cv2.imwrite(path, frame, [cv2.IMWRITE_JPEG_QUALITY, quality])
    if not ok:
        raise RuntimeError(f"could not write {path}")
