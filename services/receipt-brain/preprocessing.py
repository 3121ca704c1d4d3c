"""Receipt photo preparation before vision model inference.

Phone photos of receipts are large, often slightly rotated and unevenly
lit. The pipeline straightens, evens out lighting and shrinks the image so
the model sees legible text at a bounded token cost. Any step that fails
hands its input to the next one; undecodable input is passed through as is.
"""

import logging

import cv2
import numpy as np

from config import settings

logger = logging.getLogger(__name__)

JPEG_MIME = "image/jpeg"
MIN_SKEW_DEGREES = 3.0


def prepare_image(
    image_bytes: bytes,
    mime_type: str,
    max_side: int | None = None,
    quality: int | None = None,
) -> tuple[bytes, str]:
    """Return (bytes, mime_type) ready for the model.

    Output is JPEG whenever the input decodes; otherwise the original bytes
    and MIME type come back untouched.
    """
    img = decode(image_bytes)
    if img is None:
        logger.warning("preprocessing: could not decode %s image, sending original", mime_type)
        return image_bytes, mime_type

    img = straighten(img)
    img = even_lighting(img)
    img = limit_size(img, max_side or settings.MAX_IMAGE_SIDE)

    encoded = encode_jpeg(img, quality or settings.JPEG_QUALITY)
    if encoded is None:
        return image_bytes, mime_type
    return encoded, JPEG_MIME


def decode(image_bytes: bytes) -> np.ndarray | None:
    if not image_bytes:
        return None
    buf = np.frombuffer(image_bytes, dtype=np.uint8)
    return cv2.imdecode(buf, cv2.IMREAD_COLOR)


def straighten(img: np.ndarray) -> np.ndarray:
    """Rotate by the median angle of near-horizontal text lines."""
    try:
        gray = cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)
        edges = cv2.Canny(gray, 50, 150, apertureSize=3)
        lines = cv2.HoughLinesP(edges, 1, np.pi / 180, threshold=80, minLineLength=40, maxLineGap=8)
        if lines is None or len(lines) < 3:
            return img

        angles = []
        for x1, y1, x2, y2 in lines.reshape(-1, 4):
            angle = float(np.degrees(np.arctan2(y2 - y1, x2 - x1)))
            # Text baselines only; ignore receipt edges and table rules
            if abs(angle) < 30:
                angles.append(angle)
        if not angles:
            return img

        skew = float(np.median(angles))
        if abs(skew) < MIN_SKEW_DEGREES:
            return img

        logger.debug("preprocessing: straightening by %.1f degrees", skew)
        h, w = img.shape[:2]
        matrix = cv2.getRotationMatrix2D((w / 2, h / 2), skew, 1.0)
        return cv2.warpAffine(img, matrix, (w, h), flags=cv2.INTER_LINEAR, borderMode=cv2.BORDER_REPLICATE)

    except Exception as e:
        logger.warning("preprocessing: straighten failed: %s", e)
        return img


def even_lighting(img: np.ndarray) -> np.ndarray:
    """CLAHE on the lightness channel; thermal paper photos are often patchy."""
    try:
        lab = cv2.cvtColor(img, cv2.COLOR_BGR2LAB)
        lightness, a_channel, b_channel = cv2.split(lab)
        lightness = cv2.createCLAHE(clipLimit=2.0, tileGridSize=(8, 8)).apply(lightness)
        return cv2.cvtColor(cv2.merge([lightness, a_channel, b_channel]), cv2.COLOR_LAB2BGR)
    except cv2.error as e:
        logger.warning("preprocessing: lighting normalization failed: %s", e)
        return img


def limit_size(img: np.ndarray, max_side: int) -> np.ndarray:
    """Downscale so the longest side is at most max_side, keeping aspect ratio."""
    h, w = img.shape[:2]
    longest = max(h, w)
    if longest <= max_side:
        return img
    scale = max_side / longest
    size = (max(1, round(w * scale)), max(1, round(h * scale)))
    return cv2.resize(img, size, interpolation=cv2.INTER_AREA)


def encode_jpeg(img: np.ndarray, quality: int) -> bytes | None:
    try:
        success, buf = cv2.imencode(".jpg", img, [cv2.IMWRITE_JPEG_QUALITY, quality])
    except cv2.error as e:
        logger.warning("preprocessing: JPEG encode failed: %s", e)
        return None
    return buf.tobytes() if success else None
