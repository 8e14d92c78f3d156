"""
Media storage and the image derivative pipeline.
Turns uploaded bytes into a re-encoded original plus fixed-width variants that share one
storage key, and resolves stored relative paths back to disk locations.
"""
import os
import io
import uuid
import asyncio
from pathlib import Path
from typing import Optional, Dict, Any, List, Tuple
import logging
from PIL import Image, ImageOps, UnidentifiedImageError

from services.exceptions import UnsupportedMediaType
from services.security import security_config

logger = logging.getLogger(__name__)

# Declared mimetype -> storage key extension. Anything else is rejected before any I/O.
ALLOWED_MIME_TYPES = {
    'image/jpeg': 'jpg',
    'image/png': 'png'
}

# Pillow format name expected after decoding each allowed mimetype
DECODED_FORMATS = {
    'image/jpeg': 'JPEG',
    'image/png': 'PNG'
}

# Breakpoint widths, ascending
IMAGE_SIZES = (320, 768, 1280)

ORIGINALS_DIR = 'originals'

MAX_IMAGE_DIMENSION = 20000  # px, either side

# Fixed re-encoding policy per format; not adjustable per upload
ENCODER_SETTINGS = {
    'JPEG': {
        'quality': 82,
        'optimize': True,
        'progressive': True
    },
    'PNG': {
        'compress_level': 9
    }
}

def size_dir(width: int) -> str:
    return f"size_{width}"

# Public size label -> storage subdirectory
SIZE_DIRECTORIES = {'original': ORIGINALS_DIR}
SIZE_DIRECTORIES.update({str(width): size_dir(width) for width in IMAGE_SIZES})

class FileValidationError(Exception):
    """Uploaded bytes are not an acceptable image."""
    pass

class StorageError(Exception):
    """Encoding or writing a variant failed."""
    pass

class ImageProcessor:
    """
    Decodes uploads and produces re-encoded variants.
    Instances hold no per-image state, so one processor serves concurrent uploads.
    """

    def decode(self, data: bytes, mimetype: str) -> Image.Image:
        """
        Decode, check that the content matches the declared type, and apply
        EXIF orientation so the pixels match the intended display orientation.
        """
        try:
            with Image.open(io.BytesIO(data)) as probe:
                probe.verify()

            img = Image.open(io.BytesIO(data))
            img.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as e:
            raise FileValidationError(f"Invalid image file: {str(e)}")

        expected_format = DECODED_FORMATS[mimetype]
        if img.format != expected_format:
            raise FileValidationError(
                f"File content ({img.format}) does not match declared type {mimetype}"
            )

        width, height = img.size
        if width < 1 or height < 1:
            raise FileValidationError("Image has no pixels")
        if width > MAX_IMAGE_DIMENSION or height > MAX_IMAGE_DIMENSION:
            raise FileValidationError(f"Image too large. Max dimensions: {MAX_IMAGE_DIMENSION}px")

        oriented = self._normalize_mode(ImageOps.exif_transpose(img), expected_format)
        # Pillow encoders fall back to info for comment, ICC and EXIF; variants carry none of it
        oriented.info = {}
        return oriented

    def _normalize_mode(self, img: Image.Image, image_format: str) -> Image.Image:
        if image_format == 'JPEG':
            if img.mode in ('RGBA', 'LA', 'P'):
                # Flatten transparency onto white
                rgba = img.convert('RGBA')
                rgb_img = Image.new('RGB', rgba.size, (255, 255, 255))
                rgb_img.paste(rgba, mask=rgba.split()[-1])
                return rgb_img
            if img.mode not in ('RGB', 'L'):
                return img.convert('RGB')
            return img

        if img.mode not in ('RGB', 'RGBA', 'L', 'LA'):
            return img.convert('RGBA')
        return img

    def resize_to_width(self, img: Image.Image, max_width: int) -> Image.Image:
        """Aspect-preserving resize to max_width. Never enlarges."""
        width, height = img.size
        if width <= max_width:
            return img.copy()
        new_height = max(1, round(height * max_width / width))
        return img.resize((max_width, new_height), Image.Resampling.LANCZOS)

    def encode_to(self, img: Image.Image, image_format: str, destination: Path):
        """
        Re-encode without carrying over EXIF or text metadata. Written to a temp
        file first and renamed so a retry for the same key replaces atomically.
        """
        tmp_path = destination.with_name(f".{destination.name}.{uuid.uuid4().hex}.tmp")
        try:
            img.save(tmp_path, format=image_format, **ENCODER_SETTINGS[image_format])
            os.replace(tmp_path, destination)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()

class MediaStore:
    """
    Media root holding originals/ and one size_<width>/ directory per breakpoint.
    Every variant of a photo uses the same basename, its storage key.
    """

    def __init__(self, base_storage_path: str = None, delivery: str = None):
        self.base_path = Path(base_storage_path or security_config.media_root)
        self.delivery = delivery or security_config.media_delivery
        self.processor = ImageProcessor()

    def ensure_directories(self):
        """Create-if-absent; safe to race across concurrent uploads."""
        for directory in SIZE_DIRECTORIES.values():
            (self.base_path / directory).mkdir(parents=True, exist_ok=True)

    @staticmethod
    def extension_for(mimetype: Optional[str]) -> str:
        ext = ALLOWED_MIME_TYPES.get((mimetype or '').lower())
        if not ext:
            raise UnsupportedMediaType()
        return ext

    def variant_paths(self, storage_key: str) -> Dict[str, str]:
        """Relative path of every variant, keyed by public size label."""
        return {label: f"{directory}/{storage_key}" for label, directory in SIZE_DIRECTORIES.items()}

    async def process_upload(self, data: bytes, storage_key: str, mimetype: str) -> Dict[str, Any]:
        """
        Write the original and every size variant for storage_key.

        Returns:
            Dict with final width, height and the relative path of each variant

        Raises:
            UnsupportedMediaType: declared mimetype outside the allow-list
            FileValidationError: bytes do not decode to the declared format
            StorageError: any encode or write failed; nothing is left on disk
        """
        mimetype = (mimetype or '').lower()
        self.extension_for(mimetype)
        image_format = DECODED_FORMATS[mimetype]

        image = await asyncio.to_thread(self.processor.decode, data, mimetype)
        width, height = image.size

        self.ensure_directories()

        jobs: List[Tuple[str, Optional[int]]] = [('original', None)]
        jobs.extend((str(size), size) for size in IMAGE_SIZES)

        # Variants are independent transforms of the same decoded source.
        # return_exceptions keeps every thread joined before any cleanup runs.
        results = await asyncio.gather(
            *(
                asyncio.to_thread(self._write_variant, image, image_format, storage_key, label, target)
                for label, target in jobs
            ),
            return_exceptions=True
        )

        failures = [result for result in results if isinstance(result, BaseException)]
        if failures:
            logger.error(f"Derivative generation failed for {storage_key}: {failures[0]}")
            self.delete_variants(storage_key)
            raise StorageError(f"Image processing failed: {str(failures[0])}") from failures[0]

        return {
            'width': width,
            'height': height,
            'sizes': dict(results)
        }

    def _write_variant(self, image: Image.Image, image_format: str, storage_key: str,
                       label: str, target_width: Optional[int]) -> Tuple[str, str]:
        relative_path = f"{SIZE_DIRECTORIES[label]}/{storage_key}"
        output = image if target_width is None else self.processor.resize_to_width(image, target_width)
        self.processor.encode_to(output, image_format, self.base_path / relative_path)
        return label, relative_path

    def delete_variants(self, storage_key: str):
        """Remove every variant of storage_key. Missing files are ignored."""
        for relative_path in self.variant_paths(storage_key).values():
            try:
                (self.base_path / relative_path).unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Failed to cleanup variant {relative_path}: {e}")

    def resolve_path(self, relative_path: str) -> Path:
        """Absolute path for a stored relative path; refuses to leave the media root."""
        base = self.base_path.resolve()
        full_path = (base / relative_path).resolve()
        if base not in full_path.parents:
            raise StorageError("Path escapes media root")
        return full_path

# Global storage instance
storage = MediaStore()

def get_media_store() -> MediaStore:
    """FastAPI dependency; tests override it with a temporary media root."""
    return storage
