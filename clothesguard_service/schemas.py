"""Modelos Pydantic (schemas) para validación de datos de entrada/salida del servicio."""

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from .models import Prioridad


class _Schema(BaseModel):
    # Acepta tanto el nombre en camelCase del JSON como el del atributo Python
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


def _reject_null(value):
    # Un campo omitido no se toca; un null explícito no puede guardarse en una columna obligatoria
    if value is None:
        raise ValueError("no puede ser null")
    return value


class _Timestamps(_Schema):
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")


# --- Schemas de Usuario ---

class Address(_Schema):
    """Dirección opcional del usuario."""
    state: Optional[str] = None
    municipality: Optional[str] = None


class UserCreate(_Schema):
    """Datos para registrar un usuario. Si no se envía 'user_id' se genera uno."""
    user_id: Optional[str] = Field(None, min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=1)
    address: Optional[Address] = None
    profile_image: str = Field("", alias="profileImage")


class UserUpdate(_Schema):
    """Campos reemplazables de un usuario; 'user_id' no se puede cambiar."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=1)
    address: Optional[Address] = None
    profile_image: Optional[str] = Field(None, alias="profileImage")

    @field_validator("name", "email", "password", "profile_image", mode="before")
    @classmethod
    def not_null(cls, value):
        return _reject_null(value)


class UserResponse(_Timestamps):
    """Usuario devuelto por la API (excluye la contraseña)."""
    user_id: str
    name: str
    email: str
    address: Optional[Address] = None
    profile_image: str = Field("", alias="profileImage")


class LoginRequest(BaseModel):
    name: str
    password: str


class LoginResponse(_Schema):
    """Token de acceso devuelto tras un login exitoso."""
    message: str = "Inicio de sesión exitoso"
    token: str
    token_type: str = "bearer"
    user_id: str = Field(..., alias="userId")


class PhotoUploadResponse(_Schema):
    message: str = "Imagen de perfil actualizada correctamente"
    profile_image: str = Field(..., alias="profileImage")
    user: UserResponse


class ImageUploadResponse(_Schema):
    message: str = "Imagen subida con éxito"
    image_url: str = Field(..., alias="imageUrl")


# --- Schemas de Sensores/Actuadores ---

class SensorCreate(_Schema):
    """Lectura recibida. 'fechaHora' se valida en el DAO; si falta se usa la hora actual."""
    tipo: str = Field(..., min_length=1, description="sensor o actuador")
    nombre: str = Field(..., min_length=1)
    valor: Union[bool, int, float, str]
    unidad: str = ""
    accion: str = ""
    fecha_hora: Optional[str] = Field(None, alias="fechaHora")


class SensorResponse(_Timestamps):
    id: int
    tipo: str
    nombre: str
    valor: Union[bool, int, float, str]
    unidad: str
    accion: str
    fecha_hora: datetime = Field(..., alias="fechaHora")


# --- Schemas de Historiales ---

class StoryCreate(_Schema):
    story_id: Optional[str] = Field(None, min_length=1, max_length=64)
    title: Optional[str] = None
    content: Optional[str] = None
    dia: datetime
    horas_uso: str = Field(..., alias="horasUso")
    indicaciones: Optional[str] = None
    dias_activos: datetime = Field(..., alias="diasActivos")


class StoryUpdate(_Schema):
    """Actualización completa por 'story_id'; sólo se reemplazan los campos enviados."""
    title: Optional[str] = None
    content: Optional[str] = None
    dia: Optional[datetime] = None
    horas_uso: Optional[str] = Field(None, alias="horasUso")
    indicaciones: Optional[str] = None
    dias_activos: Optional[datetime] = Field(None, alias="diasActivos")

    @field_validator("dia", "horas_uso", "dias_activos", mode="before")
    @classmethod
    def not_null(cls, value):
        return _reject_null(value)


class StoryContentUpdate(BaseModel):
    content: str


class StoryResponse(_Timestamps):
    id: int
    story_id: str
    title: Optional[str] = None
    content: Optional[str] = None
    dia: datetime
    horas_uso: str = Field(..., alias="horasUso")
    indicaciones: Optional[str] = None
    dias_activos: datetime = Field(..., alias="diasActivos")


# --- Schemas de Notificaciones ---

class NotificationCreate(_Schema):
    descripcion: str = Field(..., min_length=1)
    fecha_hora: Optional[datetime] = Field(None, alias="fechaHora")
    tipo: str = Field(..., min_length=1, description='Ej. "informativa", "alerta", "error"')
    leida: bool = False
    usuario_id: Optional[str] = Field(None, alias="usuarioId")
    prioridad: Prioridad = Prioridad.MEDIA


class NotificationResponse(_Timestamps):
    id: int
    descripcion: str
    fecha_hora: datetime = Field(..., alias="fechaHora")
    tipo: str
    leida: bool
    usuario_id: Optional[str] = Field(None, alias="usuarioId")
    prioridad: Prioridad


class DeletedCount(_Schema):
    deleted_count: int = Field(..., alias="deletedCount")


