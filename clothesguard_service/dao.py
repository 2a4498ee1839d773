"""
Acceso a datos: un DAO por entidad con la misma interfaz CRUD.

Cada operación es una sola llamada al almacén. Los fallos se traducen a
excepciones de dominio: NotFound, DuplicateKey, StorageFailure o
ValidationError cuando falta un campo obligatorio.
"""

import uuid
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List

from pydantic import TypeAdapter, ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .exceptions import DuplicateKey, InvalidDate, NotFound, StorageFailure, ValidationError
from .models import Notification, SensorReading, Story, User
from .utils import get_password_hash

logger = logging.getLogger(__name__)

_datetime_adapter = TypeAdapter(datetime)

# SQLite: "NOT NULL constraint failed"; MariaDB: "Column 'x' cannot be null"
_NOT_NULL_MARKERS = ("not null constraint", "cannot be null")


def to_utc_naive(value: datetime) -> datetime:
    """Normaliza a UTC sin zona horaria, el formato en que se guardan las fechas."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_datetime(value: Any) -> datetime:
    """Convierte un valor recibido (datetime o texto ISO 8601) en fecha-hora; InvalidDate si no se puede."""
    if isinstance(value, datetime):
        return to_utc_naive(value)
    try:
        return to_utc_naive(_datetime_adapter.validate_python(value))
    except PydanticValidationError as e:
        raise InvalidDate(f"Fecha inválida: {value}") from e


class BaseDAO:
    """Operaciones comunes sobre una tabla. Las subclases fijan el modelo y los mensajes."""

    model = None
    not_found_message = "Registro no encontrado."

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _storage(self, action: str):
        try:
            yield
        except IntegrityError as e:
            self.db.rollback()
            if any(marker in str(e.orig).lower() for marker in _NOT_NULL_MARKERS):
                logger.warning(f"Campo obligatorio vacío al {action}: {e.orig}")
                raise ValidationError("Falta un campo obligatorio.") from e
            logger.warning(f"Clave duplicada al {action}: {e.orig}")
            raise DuplicateKey("Ya existe un registro con esos datos únicos.") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error de base de datos al {action}: {e}", exc_info=True)
            raise StorageFailure(f"Error al {action}.") from e

    def _first(self, *criteria):
        with self._storage(f"consultar {self.model.__tablename__}"):
            obj = self.db.query(self.model).filter(*criteria).first()
        if obj is None:
            raise NotFound(self.not_found_message)
        return obj

    def get_all(self) -> List:
        with self._storage(f"obtener {self.model.__tablename__}"):
            return self.db.query(self.model).all()

    def _insert(self, data: Dict[str, Any]):
        obj = self.model(**data)
        with self._storage(f"insertar en {self.model.__tablename__}"):
            self.db.add(obj)
            self.db.commit()
            self.db.refresh(obj)
        logger.info(f"Registro {obj.id} creado en {self.model.__tablename__}")
        return obj

    def _update(self, obj, fields: Dict[str, Any]):
        for key, value in fields.items():
            setattr(obj, key, value)
        with self._storage(f"actualizar {self.model.__tablename__}"):
            self.db.commit()
            self.db.refresh(obj)
        logger.info(f"Registro {obj.id} actualizado en {self.model.__tablename__}")
        return obj

    def _delete(self, obj):
        with self._storage(f"eliminar de {self.model.__tablename__}"):
            self.db.delete(obj)
            self.db.commit()
        logger.info(f"Registro {obj.id} eliminado de {self.model.__tablename__}")
        return obj


class UserDAO(BaseDAO):
    model = User
    not_found_message = "Usuario no encontrado."

    def get_one(self, user_id: str) -> User:
        return self._first(User.user_id == user_id)

    def get_by_name(self, name: str) -> User:
        return self._first(User.name == name)

    def insert(self, data: Dict[str, Any]) -> User:
        """Guarda un usuario con la contraseña convertida en hash."""
        data = dict(data)
        data["password"] = get_password_hash(data["password"])
        if not data.get("user_id"):
            data["user_id"] = str(uuid.uuid4())
        return self._insert(data)

    def update_one(self, user_id: str, fields: Dict[str, Any]) -> User:
        user = self.get_one(user_id)
        fields = {k: v for k, v in fields.items() if k not in ("id", "user_id")}
        if fields.get("password"):
            fields["password"] = get_password_hash(fields["password"])
        return self._update(user, fields)

    def update_profile_image(self, user_id: str, image_ref: str) -> User:
        return self._update(self.get_one(user_id), {"profile_image": image_ref})

    def delete_one(self, user_id: str) -> User:
        return self._delete(self.get_one(user_id))


class SensorDAO(BaseDAO):
    model = SensorReading
    not_found_message = "Lectura no encontrada."

    def get_all(self) -> List[SensorReading]:
        """Lecturas de la más reciente a la más antigua."""
        with self._storage("obtener sensores/actuadores"):
            return self.db.query(SensorReading).order_by(SensorReading.fecha_hora.desc(), SensorReading.id.desc()).all()

    def insert(self, data: Dict[str, Any]) -> SensorReading:
        data = dict(data)
        # Si no hay fecha_hora se deja que el modelo use la hora actual
        if data.get("fecha_hora") is None:
            data.pop("fecha_hora", None)
        else:
            data["fecha_hora"] = parse_datetime(data["fecha_hora"])
        return self._insert(data)


class StoryDAO(BaseDAO):
    """
    Historiales de uso.

    Ojo: la consulta, el reemplazo y el borrado usan el 'story_id' externo,
    mientras que el parche de contenido usa el id interno.
    """

    model = Story
    not_found_message = "Historial no encontrado."

    _date_fields = ("dia", "dias_activos")

    def _normalize(self, data: Dict[str, Any]) -> Dict[str, Any]:
        data = dict(data)
        for key in self._date_fields:
            if data.get(key) is not None:
                data[key] = parse_datetime(data[key])
        return data

    def get_one(self, story_id: str) -> Story:
        return self._first(Story.story_id == story_id)

    def get_by_title(self, title: str) -> Story:
        return self._first(Story.title == title)

    def insert(self, data: Dict[str, Any]) -> Story:
        data = self._normalize(data)
        if not data.get("story_id"):
            data["story_id"] = str(uuid.uuid4())
        return self._insert(data)

    def update_content(self, story_pk: int, content: str) -> Story:
        return self._update(self._first(Story.id == story_pk), {"content": content})

    def update_one(self, story_id: str, fields: Dict[str, Any]) -> Story:
        story = self.get_one(story_id)
        fields = {k: v for k, v in self._normalize(fields).items() if k not in ("id", "story_id")}
        return self._update(story, fields)

    def delete_one(self, story_id: str) -> Story:
        return self._delete(self.get_one(story_id))


class NotificationDAO(BaseDAO):
    model = Notification
    not_found_message = "Notificación no encontrada."

    def get_one(self, notification_id: int) -> Notification:
        return self._first(Notification.id == notification_id)

    def get_by_user(self, usuario_id: str) -> List[Notification]:
        with self._storage("obtener notificaciones del usuario"):
            return self.db.query(Notification).filter(Notification.usuario_id == usuario_id).all()

    def insert(self, data: Dict[str, Any]) -> Notification:
        data = dict(data)
        if data.get("fecha_hora") is None:
            data.pop("fecha_hora", None)
        else:
            data["fecha_hora"] = parse_datetime(data["fecha_hora"])
        return self._insert(data)

    def mark_as_read(self, notification_id: int) -> Notification:
        """Marca como leída. Repetirlo sobre una ya leída no es un error."""
        return self._update(self.get_one(notification_id), {"leida": True})

    def delete_one(self, notification_id: int) -> Notification:
        return self._delete(self.get_one(notification_id))

    def delete_by_user(self, usuario_id: str) -> int:
        """Borra todas las notificaciones de un usuario y devuelve cuántas eran."""
        with self._storage("eliminar notificaciones del usuario"):
            deleted = (
                self.db.query(Notification)
                .filter(Notification.usuario_id == usuario_id)
                .delete(synchronize_session=False)
            )
            self.db.commit()
        logger.info(f"{deleted} notificaciones eliminadas para el usuario {usuario_id}")
        return deleted
