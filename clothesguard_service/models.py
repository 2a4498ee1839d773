"""Define las tablas 'users', 'sensores', 'stories' y 'notificaciones' usando SQLAlchemy ORM."""

import enum
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, JSON, Enum as SQLEnum
from .db import Base


def utcnow() -> datetime:
    """Hora actual en UTC sin zona horaria (formato en que se guardan las fechas)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TimestampMixin:
    """Fechas de creación y actualización mantenidas automáticamente."""
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class User(TimestampMixin, Base):
    """
    Modelo SQLAlchemy que representa la tabla 'users'.
    Almacena la información de cuenta y de autenticación de los usuarios.
    """
    __tablename__ = "users"

    # Identidad interna asignada por la base de datos
    id = Column(Integer, primary_key=True, index=True)

    # Identificador externo visible para los clientes; no cambia una vez asignado
    user_id = Column(String(64), unique=True, index=True, nullable=False)

    # Nombre de usuario, usado para el login
    name = Column(String(255), unique=True, index=True, nullable=False)

    email = Column(String(255), unique=True, index=True, nullable=False)

    # Hash bcrypt de la contraseña; nunca se guarda el texto plano
    password = Column(String(255), nullable=False)

    # Sub-registro opcional {"state": ..., "municipality": ...}
    address = Column(JSON, nullable=True)

    # Referencia relativa a la imagen de perfil (ej. /uploads/123-456.png)
    profile_image = Column(String(512), nullable=False, default="")


class SensorReading(TimestampMixin, Base):
    """
    Lectura de un sensor o comando de un actuador.
    Los registros no se modifican una vez insertados.
    """
    __tablename__ = "sensores"

    id = Column(Integer, primary_key=True, index=True)
    tipo = Column(String(50), nullable=False)
    nombre = Column(String(255), nullable=False)
    # Valor escalar sin esquema fijo: número, texto o booleano
    valor = Column(JSON, nullable=False)
    unidad = Column(String(50), nullable=False, default="")
    accion = Column(String(255), nullable=False, default="")
    fecha_hora = Column(DateTime, nullable=False, default=utcnow, index=True)


class Story(TimestampMixin, Base):
    """Registro de uso (historial) identificado externamente por 'story_id'."""
    __tablename__ = "stories"

    id = Column(Integer, primary_key=True, index=True)
    story_id = Column(String(64), unique=True, index=True, nullable=False)
    title = Column(String(255), nullable=True, index=True)
    content = Column(Text, nullable=True)
    dia = Column(DateTime, nullable=False)
    horas_uso = Column(String(100), nullable=False)
    indicaciones = Column(Text, nullable=True)
    dias_activos = Column(DateTime, nullable=False)


class Prioridad(str, enum.Enum):
    """Urgencia de una notificación."""
    BAJA = "baja"
    MEDIA = "media"
    ALTA = "alta"


class Notification(TimestampMixin, Base):
    """
    Modelo SQLAlchemy de la tabla 'notificaciones'.
    'usuario_id' guarda el user_id del destinatario sin clave foránea:
    borrar un usuario no borra sus notificaciones.
    """
    __tablename__ = "notificaciones"

    id = Column(Integer, primary_key=True, index=True)
    descripcion = Column(Text, nullable=False)
    fecha_hora = Column(DateTime, nullable=False, default=utcnow)
    tipo = Column(String(50), nullable=False)
    leida = Column(Boolean, nullable=False, default=False)
    usuario_id = Column(String(64), nullable=True, index=True)
    prioridad = Column(
        SQLEnum(Prioridad, values_callable=lambda enum_cls: [p.value for p in enum_cls]),
        nullable=False,
        default=Prioridad.MEDIA,
    )
