"""Funciones de utilidad para autenticación: hash de contraseñas y manejo de JWT."""

import os
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from dotenv import load_dotenv
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from .exceptions import Unauthorized

# Carga variables de entorno desde .env
load_dotenv()

logger = logging.getLogger(__name__)

# --- Configuración de Seguridad ---
# La clave de firma se lee una sola vez al arrancar; no hay valor por defecto.
SECRET_KEY = os.getenv("JWT_SECRET_KEY")
if not SECRET_KEY:
    logger.critical("JWT_SECRET_KEY no está definida en las variables de entorno.")
    raise EnvironmentError("Falta la variable de entorno JWT_SECRET_KEY")

ALGORITHM = "HS256"

ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60))

BCRYPT_ROUNDS = 10

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=BCRYPT_ROUNDS,
)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/users/login", auto_error=False)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verifica una contraseña plana contra un hash almacenado."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Genera el hash de una contraseña plana usando bcrypt."""
    return pwd_context.hash(password)


# --- Utilidades para Tokens JWT ---
def create_access_token(subject_id: str) -> str:
    """
    Genera un token de acceso JWT ligado a la identidad del usuario.

    Args:
        subject_id: Identificador externo del usuario (user_id).

    Returns:
        String del JWT codificado. Sólo contiene 'sub' y 'exp', sin roles.
    """
    expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = {"sub": str(subject_id), "exp": expire}
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[Dict]:
    """
    Decodifica y valida un token JWT (firma y expiración).

    Returns:
        El payload si el token es válido y no ha expirado; None en caso contrario.
    """
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"Fallo en decodificación de token: {e}")
        return None

    if not payload.get("sub"):
        logger.warning("Token sin 'sub' rechazado.")
        return None
    return payload


def get_current_user_id(token: Optional[str] = Depends(oauth2_scheme)) -> str:
    """
    Dependencia de FastAPI para las rutas protegidas.
    Devuelve el user_id del token Bearer o lanza Unauthorized.
    """
    if not token:
        raise Unauthorized("Cabecera Authorization ausente o inválida")

    payload = decode_token(token)
    if payload is None:
        raise Unauthorized("Token inválido o expirado")
    return payload["sub"]
