import os
import logging
import time
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Depends, File, HTTPException, Request, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from sqlalchemy import text
from sqlalchemy.orm import Session

# Importaciones locales
from . import schemas
from .auth import login as login_flow, update_avatar
from .dao import NotificationDAO, SensorDAO, StoryDAO, UserDAO
from .db import engine, Base, get_db, SessionLocal
from .exceptions import ServiceError
from .media import MediaStore, UPLOAD_DIR, MAX_UPLOAD_BYTES, UPLOAD_URL_PREFIX, init_upload_dir
from .utils import get_current_user_id

load_dotenv()

# Configura logger
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# Crea tablas si no existen al iniciar
try:
    Base.metadata.create_all(bind=engine)
    logger.info("Tablas de base de datos verificadas/creadas.")
except Exception as e:
    logger.error(f"Error al inicializar la base de datos: {e}", exc_info=True)

# La carpeta de imágenes se prepara una sola vez por proceso
init_upload_dir(UPLOAD_DIR)
media_store = MediaStore(UPLOAD_DIR, MAX_UPLOAD_BYTES)

app = FastAPI(
    title="ClothesGuard Service",
    description="Usuarios, sensores/actuadores, historiales de uso y notificaciones de ClothesGuard.",
    version="1.0.0"
)

# --- Configuración de CORS ---
origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials="*" not in origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Métricas Prometheus ---
REQUEST_COUNT = Counter(
    "clothesguard_requests_total",
    "Total requests processed by ClothesGuard Service",
    ["method", "endpoint", "status_code"]
)
REQUEST_LATENCY = Histogram(
    "clothesguard_request_latency_seconds",
    "Request latency in seconds for ClothesGuard Service",
    ["endpoint"]
)


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    start_time = time.time()
    response = None
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
    except Exception as exc:
        logger.error(f"Excepción no controlada en {request.url.path}: {exc}", exc_info=True)
        response = JSONResponse(status_code=500, content={"detail": "Internal Server Error"})
    finally:
        latency = time.time() - start_time
        # Se usa la plantilla de la ruta (/users/{user_id}) para no disparar la cardinalidad
        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)
        final_status_code = getattr(response, 'status_code', status_code)
        REQUEST_LATENCY.labels(endpoint=endpoint).observe(latency)
        REQUEST_COUNT.labels(method=request.method, endpoint=endpoint, status_code=final_status_code).inc()
    return response


# --- Manejadores de errores ---

@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} -> {exc.code}: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} -> {exc.code}: {exc.message}")

    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    problems = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{field}: {error.get('msg')}" if field else str(error.get("msg")))
    message = "Datos inválidos. " + "; ".join(problems)
    logger.warning(f"{request.method} {request.url.path} -> VALIDATION_ERROR: {message}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": message, "code": "VALIDATION_ERROR"},
    )


# --- Endpoints de Salud y Métricas ---
@app.get("/metrics", tags=["Monitoring"])
def metrics():
    """Expone métricas de la aplicación para Prometheus."""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/health", tags=["Monitoring"])
def health_check():
    """Verifica la salud del servicio y la conexión a la base de datos."""
    if SessionLocal is None:
        raise HTTPException(status_code=503, detail="Base de datos no configurada")
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Health check fallido - Error de BD: {e}", exc_info=True)
        raise HTTPException(status_code=503, detail="Database connection error")
    finally:
        db.close()
    return {"status": "ok", "service": "clothesguard_service", "database": "ok"}


# Servir imágenes subidas
app.mount(UPLOAD_URL_PREFIX, StaticFiles(directory=UPLOAD_DIR), name="uploads")


# --- Endpoints de Usuarios ---

@app.get("/users", response_model=List[schemas.UserResponse], tags=["Users"])
def get_users(db: Session = Depends(get_db)):
    return UserDAO(db).get_all()


@app.post("/users/login", response_model=schemas.LoginResponse, tags=["Authentication"])
def login(credentials: schemas.LoginRequest, db: Session = Depends(get_db)):
    """
    Autentica por nombre y contraseña (JSON).
    Devuelve un token JWT con validez de una hora y el user_id.
    """
    return login_flow(db, credentials.name, credentials.password)


@app.get("/users/{user_id}", response_model=schemas.UserResponse, tags=["Users"])
def get_user(user_id: str, db: Session = Depends(get_db)):
    return UserDAO(db).get_one(user_id)


@app.post("/users", response_model=schemas.UserResponse, status_code=status.HTTP_201_CREATED, tags=["Users"])
def create_user(user: schemas.UserCreate, db: Session = Depends(get_db)):
    """Registra un usuario. La contraseña se guarda sólo como hash bcrypt."""
    logger.info(f"Registro de usuario: {user.name}")
    return UserDAO(db).insert(user.model_dump())


@app.put("/users/{user_id}", response_model=schemas.UserResponse, tags=["Users"])
def update_user(
    user_id: str,
    user: schemas.UserUpdate,
    db: Session = Depends(get_db),
    current_user: str = Depends(get_current_user_id),
):
    """Reemplaza los campos enviados. El user_id no se puede modificar."""
    logger.info(f"Actualización del usuario {user_id} solicitada por {current_user}")
    return UserDAO(db).update_one(user_id, user.model_dump(exclude_unset=True))


@app.delete("/users/{user_id}", response_model=schemas.UserResponse, tags=["Users"])
def delete_user(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: str = Depends(get_current_user_id),
):
    """Elimina el usuario. Sus notificaciones NO se eliminan automáticamente."""
    logger.info(f"Eliminación del usuario {user_id} solicitada por {current_user}")
    return UserDAO(db).delete_one(user_id)


@app.post("/users/{user_id}/upload-photo", response_model=schemas.PhotoUploadResponse, tags=["Users"])
async def upload_photo(
    user_id: str,
    profileImage: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    current_user: str = Depends(get_current_user_id),
):
    """
    Reemplaza la foto de perfil (campo multipart 'profileImage').
    Acepta JPEG, JPG, PNG o GIF de hasta 5 MB.
    """
    logger.info(f"Subida de foto de perfil para {user_id} solicitada por {current_user}")
    user = await update_avatar(db, media_store, user_id, profileImage)
    return {"profileImage": user.profile_image, "user": user}


@app.post("/upload", response_model=schemas.ImageUploadResponse, tags=["Uploads"])
async def upload_image(
    request: Request,
    profileImage: Optional[UploadFile] = File(None),
    current_user: str = Depends(get_current_user_id),
):
    """Guarda una imagen suelta (campo 'profileImage') sin asociarla a ningún usuario."""
    image_ref = await media_store.accept(profileImage)
    logger.info(f"Imagen suelta {image_ref} subida por {current_user}")
    return {"imageUrl": str(request.base_url).rstrip("/") + image_ref}


# --- Endpoints de Sensores/Actuadores ---

@app.get("/sensores", response_model=List[schemas.SensorResponse], tags=["Sensores"])
def get_sensores(db: Session = Depends(get_db)):
    """Lecturas ordenadas de la más reciente a la más antigua."""
    return SensorDAO(db).get_all()


@app.post("/sensores", response_model=schemas.SensorResponse, status_code=status.HTTP_201_CREATED, tags=["Sensores"])
def create_sensor_reading(reading: schemas.SensorCreate, db: Session = Depends(get_db)):
    """Guarda una lectura; sin 'fechaHora' se usa la hora actual."""
    return SensorDAO(db).insert(reading.model_dump())


# --- Endpoints de Historiales ---

@app.get("/stories", response_model=List[schemas.StoryResponse], tags=["Stories"])
def get_stories(db: Session = Depends(get_db)):
    return StoryDAO(db).get_all()


@app.get("/stories/title/{title}", response_model=schemas.StoryResponse, tags=["Stories"])
def get_story_by_title(title: str, db: Session = Depends(get_db)):
    return StoryDAO(db).get_by_title(title)


@app.get("/stories/{story_id}", response_model=schemas.StoryResponse, tags=["Stories"])
def get_story(story_id: str, db: Session = Depends(get_db)):
    return StoryDAO(db).get_one(story_id)


@app.post("/stories", response_model=schemas.StoryResponse, status_code=status.HTTP_201_CREATED, tags=["Stories"])
def create_story(
    story: schemas.StoryCreate,
    db: Session = Depends(get_db),
    current_user: str = Depends(get_current_user_id),
):
    return StoryDAO(db).insert(story.model_dump())


@app.patch("/stories/{id}/content", response_model=schemas.StoryResponse, tags=["Stories"])
def update_story_content(
    id: int,
    body: schemas.StoryContentUpdate,
    db: Session = Depends(get_db),
    current_user: str = Depends(get_current_user_id),
):
    """Actualiza sólo el contenido. Usa el id interno, no el story_id."""
    return StoryDAO(db).update_content(id, body.content)


@app.put("/stories/{story_id}", response_model=schemas.StoryResponse, tags=["Stories"])
def update_story(
    story_id: str,
    story: schemas.StoryUpdate,
    db: Session = Depends(get_db),
    current_user: str = Depends(get_current_user_id),
):
    return StoryDAO(db).update_one(story_id, story.model_dump(exclude_unset=True))


@app.delete("/stories/{story_id}", response_model=schemas.StoryResponse, tags=["Stories"])
def delete_story(
    story_id: str,
    db: Session = Depends(get_db),
    current_user: str = Depends(get_current_user_id),
):
    return StoryDAO(db).delete_one(story_id)


# --- Endpoints de Notificaciones ---

@app.get("/notificaciones", response_model=List[schemas.NotificationResponse], tags=["Notificaciones"])
def get_notificaciones(db: Session = Depends(get_db)):
    return NotificationDAO(db).get_all()


@app.get("/notificaciones/user/{usuario_id}", response_model=List[schemas.NotificationResponse], tags=["Notificaciones"])
def get_notificaciones_by_user(usuario_id: str, db: Session = Depends(get_db)):
    return NotificationDAO(db).get_by_user(usuario_id)


@app.get("/notificaciones/{id}", response_model=schemas.NotificationResponse, tags=["Notificaciones"])
def get_notificacion(id: int, db: Session = Depends(get_db)):
    return NotificationDAO(db).get_one(id)


@app.post("/notificaciones", response_model=schemas.NotificationResponse, status_code=status.HTTP_201_CREATED, tags=["Notificaciones"])
def create_notificacion(
    notificacion: schemas.NotificationCreate,
    db: Session = Depends(get_db),
    current_user: str = Depends(get_current_user_id),
):
    return NotificationDAO(db).insert(notificacion.model_dump())


@app.patch("/notificaciones/{id}/read", response_model=schemas.NotificationResponse, tags=["Notificaciones"])
def mark_notificacion_as_read(
    id: int,
    db: Session = Depends(get_db),
    current_user: str = Depends(get_current_user_id),
):
    return NotificationDAO(db).mark_as_read(id)


@app.delete("/notificaciones/user/{usuario_id}", response_model=schemas.DeletedCount, tags=["Notificaciones"])
def delete_notificaciones_by_user(
    usuario_id: str,
    db: Session = Depends(get_db),
    current_user: str = Depends(get_current_user_id),
):
    """Borrado explícito de todas las notificaciones de un usuario (no hay cascada)."""
    return {"deletedCount": NotificationDAO(db).delete_by_user(usuario_id)}


@app.delete("/notificaciones/{id}", response_model=schemas.NotificationResponse, tags=["Notificaciones"])
def delete_notificacion(
    id: int,
    db: Session = Depends(get_db),
    current_user: str = Depends(get_current_user_id),
):
    return NotificationDAO(db).delete_one(id)
