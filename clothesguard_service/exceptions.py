"""Excepciones de dominio del servicio y su correspondencia con códigos HTTP."""

from fastapi import status


class ServiceError(Exception):
    """Base de todos los errores que el servicio devuelve como JSON estructurado."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "INTERNAL_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"


class InvalidDate(ValidationError):
    code = "INVALID_DATE"

    def __init__(self, message: str = "Fecha inválida"):
        super().__init__(message)


class InvalidMediaType(ValidationError):
    code = "INVALID_MEDIA_TYPE"

    def __init__(self, message: str = "Solo se permiten imágenes en formato JPEG, JPG, PNG o GIF."):
        super().__init__(message)


class PayloadTooLarge(ValidationError):
    code = "PAYLOAD_TOO_LARGE"


class Unauthorized(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHORIZED"


class NotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class DuplicateKey(ServiceError):
    # Se responde como error de almacenamiento (500), igual que un fallo de escritura.
    code = "DUPLICATE_KEY"


class StorageFailure(ServiceError):
    code = "STORAGE_FAILURE"
