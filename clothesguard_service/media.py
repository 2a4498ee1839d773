"""Almacenamiento validado de imágenes subidas (fotos de perfil)."""

import os
import time
import random
import logging
from typing import Optional

from dotenv import load_dotenv
from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool

from .exceptions import InvalidMediaType, PayloadTooLarge, ValidationError

load_dotenv()

logger = logging.getLogger(__name__)

UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", 5 * 1024 * 1024))
READ_CHUNK_BYTES = 64 * 1024
UPLOAD_URL_PREFIX = "/uploads"

ALLOWED_EXTENSIONS = {".jpeg", ".jpg", ".png", ".gif"}
ALLOWED_MIME_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif"}


def init_upload_dir(path: str) -> str:
    """Crea la carpeta de subidas si no existe. Se llama una sola vez al arrancar."""
    if os.path.isdir(path):
        logger.info(f"Carpeta de subidas '{path}' ya existe.")
    else:
        os.makedirs(path, exist_ok=True)
        logger.info(f"Carpeta de subidas '{path}' creada correctamente.")
    return path


def generate_filename(extension: str) -> str:
    """Nombre único: marca de tiempo + componente aleatorio + extensión original."""
    return f"{time.time_ns()}-{random.randint(0, 10**9)}{extension}"


class MediaStore:
    """
    Valida y guarda archivos de imagen bajo una carpeta administrada.

    No modifica ninguna entidad: devuelve una referencia relativa
    (ej. /uploads/1700000000000-123.png) que el llamador asocia.
    """

    def __init__(self, root: str, max_bytes: int = MAX_UPLOAD_BYTES):
        self.root = root
        self.max_bytes = max_bytes

    async def accept(self, upload: Optional[UploadFile]) -> str:
        if upload is None or not upload.filename:
            raise ValidationError("No se subió ninguna imagen.")

        extension = os.path.splitext(upload.filename)[1].lower()
        content_type = (upload.content_type or "").lower()
        if extension not in ALLOWED_EXTENSIONS or content_type not in ALLOWED_MIME_TYPES:
            logger.warning(f"Archivo rechazado por tipo: {upload.filename} ({content_type})")
            raise InvalidMediaType()

        data = await self._read_limited(upload)

        filename = await run_in_threadpool(self._write, data, extension)
        logger.info(f"Imagen guardada como {filename}")
        return f"{UPLOAD_URL_PREFIX}/{filename}"

    async def _read_limited(self, upload: UploadFile) -> bytes:
        # Lectura por bloques; se corta en cuanto se pasa del límite
        chunks = []
        total = 0
        while True:
            chunk = await upload.read(READ_CHUNK_BYTES)
            if not chunk:
                return b"".join(chunks)
            total += len(chunk)
            if total > self.max_bytes:
                logger.warning(f"Archivo rechazado por tamaño: {upload.filename}")
                raise PayloadTooLarge(f"La imagen supera el tamaño máximo de {self.max_bytes // (1024 * 1024)} MB.")
            chunks.append(chunk)

    def _write(self, data: bytes, extension: str) -> str:
        # "xb" nunca sobrescribe: ante una colisión se genera otro nombre
        while True:
            filename = generate_filename(extension)
            try:
                with open(os.path.join(self.root, filename), "xb") as f:
                    f.write(data)
                return filename
            except FileExistsError:
                continue

    def discard(self, reference: str) -> None:
        """Elimina un archivo previamente aceptado (compensación)."""
        path = os.path.join(self.root, os.path.basename(reference))
        try:
            os.remove(path)
            logger.info(f"Imagen {reference} eliminada.")
        except FileNotFoundError:
            logger.warning(f"La imagen {reference} ya no existe.")
