"""Configuración de la conexión a la base de datos usando SQLAlchemy."""

import os
import logging
from sqlalchemy import create_engine, exc
from sqlalchemy.orm import sessionmaker, declarative_base
from dotenv import load_dotenv

from .exceptions import StorageFailure

# Configuración del logger
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# Carga variables de entorno desde el archivo .env
load_dotenv()

# Tiempo máximo (segundos) para conectar, leer o escribir en la base de datos
DB_TIMEOUT_SECONDS = int(os.getenv("DB_TIMEOUT_SECONDS", 10))

SQLALCHEMY_DATABASE_URL = os.getenv("DATABASE_URL")

if not SQLALCHEMY_DATABASE_URL:
    # Sin URL completa se arma la de MariaDB a partir de las credenciales
    DB_USER = os.getenv("DB_USER")
    DB_PASS = os.getenv("DB_PASS")
    DB_HOST = os.getenv("DB_HOST")
    DB_NAME = os.getenv("DB_NAME")

    required_db_vars = {"DB_USER", "DB_PASS", "DB_HOST", "DB_NAME"}
    missing_vars = required_db_vars - set(os.environ)
    if missing_vars:
        logger.error(f"Faltan variables de entorno para la base de datos: {', '.join(sorted(missing_vars))}")

    SQLALCHEMY_DATABASE_URL = f"mysql+pymysql://{DB_USER}:{DB_PASS}@{DB_HOST}/{DB_NAME}"


def _engine_options(url: str) -> dict:
    """Opciones del motor según el driver; todas imponen un timeout explícito."""
    if url.startswith("sqlite"):
        return {"connect_args": {"timeout": DB_TIMEOUT_SECONDS, "check_same_thread": False}}

    options = {"pool_pre_ping": True, "pool_timeout": DB_TIMEOUT_SECONDS}
    if url.startswith("mysql+pymysql"):
        options["connect_args"] = {
            "connect_timeout": DB_TIMEOUT_SECONDS,
            "read_timeout": DB_TIMEOUT_SECONDS,
            "write_timeout": DB_TIMEOUT_SECONDS,
        }
    return options


# Crea el motor (Engine) de SQLAlchemy y verifica la conexión al inicio.
try:
    engine = create_engine(SQLALCHEMY_DATABASE_URL, **_engine_options(SQLALCHEMY_DATABASE_URL))
    with engine.connect() as connection:
        logger.info("Conexión a la base de datos establecida exitosamente.")
except exc.SQLAlchemyError as e:
    logger.error(f"Error al conectar con la base de datos: {e}", exc_info=True)
    engine = None

# Cada petición web usa su propia sesión.
# expire_on_commit=False permite devolver entidades ya eliminadas o confirmadas.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine) if engine else None

Base = declarative_base()


def get_db():
    """
    Dependencia de FastAPI que entrega una sesión de base de datos.
    Revierte la transacción si la petición falla y cierra la sesión al terminar.
    """
    if SessionLocal is None:
        logger.error("La fábrica de sesiones de base de datos no está inicializada.")
        raise StorageFailure("Servicio de base de datos no disponible.")

    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
