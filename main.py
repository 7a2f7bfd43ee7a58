from fastapi import FastAPI, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from fastapi.middleware.cors import CORSMiddleware
from datetime import date, timedelta
from sqlalchemy.orm import Session
import logging
import os

import models
import schemas
import crud
import booking_service
from auth import ACCESS_TOKEN_EXPIRE_MINUTES, create_access_token, decode_access_token
from availability import find_available_cars
from database import SessionLocal, engine, get_db
from result import ErrorKind, Success

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Crear las tablas en la base de datos
models.Base.metadata.create_all(bind=engine)

# Flota de ejemplo si la tabla está vacía
if os.getenv("SEED_SAMPLE_CARS", "0") == "1":
    with SessionLocal() as seed_db:
        crud.seed_cars(seed_db)

app = FastAPI(title="Car Rental API")

# Configuración CORS (para desarrollo)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")

# Avisa a los observadores del catálogo después de cada escritura
change_feed = crud.ChangeFeed()

ERROR_STATUS = {
    ErrorKind.INVALID_RANGE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorKind.RESOURCE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.RESOURCE_UNAVAILABLE: status.HTTP_409_CONFLICT,
    ErrorKind.ALREADY_EXISTS: status.HTTP_409_CONFLICT,
    ErrorKind.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.PERSISTENCE_FAILURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.UNKNOWN_STATUS: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

def unwrap(result):
    """Devuelve el dato de un Success o lanza la HTTPException del error."""
    if isinstance(result, Success):
        return result.data
    status_code = ERROR_STATUS.get(result.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    # El detalle de los fallos internos queda en el log, no en la respuesta
    message = result.message if status_code < 500 else "Internal server error"
    raise HTTPException(status_code=status_code, detail={"kind": result.kind.value, "message": message})

async def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    email = decode_access_token(token)
    if email is None:
        raise credentials_exception
    result = crud.get_user_by_email(db, email=email)
    if not isinstance(result, Success):
        raise credentials_exception
    return result.data

async def get_admin_user(current_user: models.User = Depends(get_current_user)):
    if current_user.role != "Admin":
        raise HTTPException(status_code=403, detail="Administrator privileges required")
    return current_user

def check_range(start_date: date, end_date: date):
    if start_date > end_date:
        raise HTTPException(
            status_code=400,
            detail={"kind": ErrorKind.INVALID_RANGE.value, "message": "Start date cannot be after end date"},
        )

# Rutas de autenticación
@app.post("/token", response_model=schemas.Token)
async def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
):
    result = crud.authenticate_user(db, form_data.username, form_data.password)
    if not isinstance(result, Success):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    access_token_expires = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = create_access_token(
        data={"sub": result.data.email}, expires_delta=access_token_expires
    )
    return {"access_token": access_token, "token_type": "bearer"}

@app.post("/users/", response_model=schemas.User)
def create_user(user: schemas.UserCreate, db: Session = Depends(get_db)):
    return unwrap(crud.create_user(db=db, user=user))

@app.get("/users/me/", response_model=schemas.User)
async def read_users_me(current_user: models.User = Depends(get_current_user)):
    return current_user

@app.put("/users/me/profile", response_model=schemas.User)
def update_my_profile(
    profile: schemas.ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """Datos personales del segundo paso del registro"""
    return unwrap(crud.update_user_profile(db, current_user.id, profile))

# Rutas para vehículos
@app.get("/cars/", response_model=list[schemas.Car])
def read_cars(skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
    """Lista todos los vehículos"""
    return unwrap(crud.get_cars(db, skip=skip, limit=limit))

@app.get("/cars/available/", response_model=list[schemas.Car])
def read_available_cars(db: Session = Depends(get_db)):
    """Vehículos habilitados para alquilar"""
    return unwrap(crud.get_available_cars(db))

@app.get("/cars/available-between/", response_model=list[schemas.Car])
def read_cars_available_between(start_date: date, end_date: date, db: Session = Depends(get_db)):
    """Vehículos sin reservas activas en un rango de fechas"""
    check_range(start_date, end_date)
    return unwrap(find_available_cars(db, start_date, end_date))

@app.post("/cars/", response_model=schemas.Car)
def create_car(
    car: schemas.CarBase,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_admin_user)
):
    """Crea un nuevo vehículo (solo administradores)"""
    return unwrap(crud.create_car(db=db, car=car, feed=change_feed))

@app.get("/cars/{car_id}", response_model=schemas.Car)
def read_car(car_id: int, db: Session = Depends(get_db)):
    return unwrap(crud.get_car(db, car_id=car_id))

@app.put("/cars/{car_id}", response_model=schemas.Car)
def update_car(
    car_id: int,
    car: schemas.CarUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_admin_user)
):
    """Actualiza un vehículo (solo administradores)"""
    return unwrap(crud.update_car(db=db, car_id=car_id, car=car, feed=change_feed))

@app.delete("/cars/{car_id}")
def delete_car(
    car_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_admin_user)
):
    """Elimina un vehículo y sus reservas (solo administradores)"""
    unwrap(crud.delete_car(db=db, car_id=car_id, feed=change_feed))
    return {"message": "Car deleted"}

@app.get("/cars/{car_id}/price", response_model=schemas.PriceQuote)
def read_price_quote(car_id: int, start_date: date, end_date: date, db: Session = Depends(get_db)):
    """Precio estimado antes de reservar"""
    return unwrap(booking_service.preview_price(db, car_id, start_date, end_date))

@app.get("/cars/{car_id}/bookings/", response_model=list[schemas.Booking])
def read_car_bookings(
    car_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_admin_user)
):
    unwrap(crud.get_car(db, car_id))
    return unwrap(crud.get_bookings_by_car(db, car_id))

# Rutas para reservas
@app.post("/bookings/", response_model=schemas.Booking, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking: schemas.BookingBase,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """Crea una nueva reserva para el usuario actual"""
    result = await booking_service.create_reservation(
        db,
        renter_id=current_user.id,
        car_id=booking.car_id,
        start_date=booking.start_date,
        end_date=booking.end_date,
        feed=change_feed,
    )
    return unwrap(result)

@app.get("/bookings/", response_model=list[schemas.Booking])
def read_bookings(
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_admin_user)
):
    """Todas las reservas (solo administradores)"""
    return unwrap(crud.get_bookings(db, skip=skip, limit=limit))

@app.get("/bookings/me/", response_model=list[schemas.Booking])
def read_my_bookings(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    return unwrap(crud.get_bookings_by_renter(db, renter_id=current_user.id))

@app.get("/bookings/{booking_id}", response_model=schemas.Booking)
def read_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """Una reserva (solo si pertenece al usuario o es admin)"""
    db_booking = unwrap(crud.get_booking(db, booking_id=booking_id))
    if db_booking.renter_id != current_user.id and current_user.role != "Admin":
        raise HTTPException(status_code=403, detail="Not allowed to view this booking")
    return db_booking

@app.patch("/bookings/{booking_id}/status", response_model=schemas.Booking)
def update_booking_status(
    booking_id: int,
    update: schemas.BookingStatusUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_admin_user)
):
    """Cambia el estado de una reserva (solo administradores)"""
    return unwrap(crud.update_booking_status(db, booking_id, update.status, feed=change_feed))

# Configuración para producción
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
