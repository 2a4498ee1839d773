"""Flujos compuestos de identidad: login y actualización de la foto de perfil."""

import logging
from typing import Dict, Optional

from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool
from prometheus_client import Counter
from sqlalchemy.orm import Session

from .dao import UserDAO
from .exceptions import NotFound, Unauthorized
from .media import MediaStore
from .models import User
from .utils import create_access_token, verify_password

logger = logging.getLogger(__name__)

LOGIN_COUNT = Counter("clothesguard_logins_total", "Intentos de login por resultado", ["outcome"])
UPLOAD_COUNT = Counter("clothesguard_uploads_total", "Subidas de imagen de perfil por resultado", ["outcome"])

# Mismo mensaje para usuario inexistente y contraseña incorrecta
INVALID_CREDENTIALS = "Credenciales inválidas"


def login(db: Session, name: str, password: str) -> Dict[str, str]:
    """
    Autentica por nombre y contraseña.

    Returns:
        {"token": <JWT>, "userId": <user_id>} si las credenciales son correctas.

    Raises:
        Unauthorized: usuario desconocido o contraseña incorrecta.
    """
    logger.info(f"Intento de login para el usuario: {name}")
    try:
        user = UserDAO(db).get_by_name(name)
    except NotFound:
        logger.warning(f"Login fallido: usuario {name} no existe.")
        LOGIN_COUNT.labels(outcome="unknown_user").inc()
        raise Unauthorized(INVALID_CREDENTIALS) from None

    if not verify_password(password, user.password):
        logger.warning(f"Login fallido: contraseña incorrecta para {name}.")
        LOGIN_COUNT.labels(outcome="bad_password").inc()
        raise Unauthorized(INVALID_CREDENTIALS)

    token = create_access_token(user.user_id)
    LOGIN_COUNT.labels(outcome="success").inc()
    logger.info(f"Login exitoso para user_id: {user.user_id}")
    return {"token": token, "userId": user.user_id}


async def update_avatar(db: Session, store: MediaStore, user_id: str, upload: Optional[UploadFile]) -> User:
    """
    Guarda la imagen y la asocia como foto de perfil del usuario.

    Los errores de validación de la imagen se propagan sin cambios. Si el
    usuario no existe, la imagen recién guardada se elimina antes de lanzar NotFound.
    """
    try:
        image_ref = await store.accept(upload)
    except Exception:
        UPLOAD_COUNT.labels(outcome="rejected").inc()
        raise

    try:
        user = await run_in_threadpool(UserDAO(db).update_profile_image, user_id, image_ref)
    except Exception:
        await run_in_threadpool(store.discard, image_ref)
        UPLOAD_COUNT.labels(outcome="orphan_discarded").inc()
        raise

    UPLOAD_COUNT.labels(outcome="accepted").inc()
    logger.info(f"Imagen de perfil actualizada para {user_id}: {image_ref}")
    return user
