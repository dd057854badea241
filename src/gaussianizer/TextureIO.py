# External package imports
from pathlib import Path
from typing import Union
import numpy as np
from PIL import Image
import cv2

# TIFF compression tag value for PackBits
TIFF_PACKBITS = 32773


def load_texture(image_path: Union[str, Path]) -> np.ndarray:
    """ Load a texture from a file path as an (H, W, 3) uint8 RGB array. """
    image_path = Path(image_path)
    if not image_path.is_file():
        raise FileNotFoundError(f"Input texture not found: {image_path}")
    try:
        with Image.open(image_path) as pil_image:
            # Alpha is dropped; grayscale and palette images are expanded to RGB
            pil_image = pil_image.convert('RGB')
            image = np.array(pil_image, dtype=np.uint8)
    except (IOError, ValueError) as e:
        raise IOError(f"Failed to load image from {image_path}: {e}")
    return image


def write_rgb8(image_path: Union[str, Path], image: np.ndarray) -> Path:
    """Write an (H, W, 3) uint8 array as a PackBits-compressed RGB TIFF.

    Args:
        image_path (Union[str, Path]): Destination file.
        image (np.ndarray): Array of shape (H, W, 3), or a flat interleaved buffer of
            length 3*W which is written as a W x 1 image.

    Returns:
        Path: The written file.
    """
    image_path = Path(image_path)
    image = np.asarray(image)
    if image.ndim == 1:
        image = image.reshape(1, -1, 3)
    if image.dtype != np.uint8 or image.ndim != 3 or image.shape[2] != 3:
        raise TypeError(f"Expected an (H, W, 3) uint8 array; got {image.dtype} {image.shape}")
    try:
        Image.fromarray(image).save(image_path, format='TIFF', compression='packbits')
    except (IOError, ValueError) as e:
        raise IOError(f"Failed to save RGB8 image to {image_path}: {e}")
    return image_path


def write_rgb32f(image_path: Union[str, Path], image: np.ndarray) -> Path:
    """Write an (H, W, 3) float32 array as a PackBits-compressed RGB TIFF.

    Pillow has no 3-channel float mode, so the file is encoded with OpenCV.
    OpenCV expects BGR channel order.
    """
    image_path = Path(image_path)
    image = np.asarray(image)
    if image.ndim != 3 or image.shape[2] != 3 or not np.issubdtype(image.dtype, np.floating):
        raise TypeError(f"Expected an (H, W, 3) float array; got {image.dtype} {image.shape}")
    bgr = np.ascontiguousarray(image[:, :, ::-1], dtype=np.float32)
    try:
        ok = cv2.imwrite(str(image_path), bgr, [cv2.IMWRITE_TIFF_COMPRESSION, TIFF_PACKBITS])
    except cv2.error as e:
        raise IOError(f"Failed to save RGB32F image to {image_path}: {e}") from e
    if not ok:
        raise IOError(f"Failed to save RGB32F image to {image_path}")
    return image_path


def read_rgb32f(image_path: Union[str, Path]) -> np.ndarray:
    """ Read back an RGB float TIFF written by `write_rgb32f`. """
    image_path = Path(image_path)
    bgr = cv2.imread(str(image_path), cv2.IMREAD_UNCHANGED)
    if bgr is None:
        raise IOError(f"Failed to load image from {image_path}")
    return np.ascontiguousarray(bgr[:, :, ::-1])


def read_rgb8(image_path: Union[str, Path]) -> np.ndarray:
    """ Read back an RGB8 TIFF as an (H, W, 3) uint8 array. """
    with Image.open(image_path) as pil_image:
        return np.array(pil_image.convert('RGB'), dtype=np.uint8)
