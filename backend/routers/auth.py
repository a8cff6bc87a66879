import logging
from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from sqlalchemy.orm import Session
from datetime import datetime, timedelta, timezone
from jose import JWTError, jwt
from passlib.context import CryptContext
from db import get_db
from models.models import User, UserRole
from schemas.schemas import (Token, UserCreate, UserOut, LoginRequest, LoginResponse,
                             RegisterResponse)
from config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])
pwd_context = CryptContext(schemes=["sha256_crypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def create_access_token(data: dict) -> str:
    to_encode = data.copy()
    to_encode["exp"] = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def _token_for(user: User) -> str:
    return create_access_token({"sub": user.username, "id": user.id, "role": user.role.value})


def _authenticate(db: Session, username: str, password: str):
    user = db.query(User).filter(User.username == username).first()
    if not user or not verify_password(password, user.hashed_password):
        return None
    return user


async def get_current_user(token: str = Depends(oauth2_scheme),
                           db: Session = Depends(get_db)) -> User:
    exc = HTTPException(status_code=401, detail="Token inválido ou expirado",
                        headers={"WWW-Authenticate": "Bearer"})
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        username: str = payload.get("sub")
        if not username:
            raise exc
    except JWTError:
        raise exc
    user = db.query(User).filter(User.username == username).first()
    if not user:
        raise exc
    return user


async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != UserRole.admin:
        raise HTTPException(status_code=403, detail="Apenas administradores")
    return current_user


@router.post("/login", response_model=LoginResponse)
async def login(data: LoginRequest, db: Session = Depends(get_db)):
    if not data.username or not data.password:
        raise HTTPException(status_code=400, detail="Usuário e senha são obrigatórios")
    user = _authenticate(db, data.username, data.password)
    if not user:
        logger.info(f"Login recusado para '{data.username}'")
        raise HTTPException(status_code=401, detail="Usuário ou senha inválidos")
    return {"user": user, "token": _token_for(user)}


@router.post("/token", response_model=Token)
async def login_form(form: OAuth2PasswordRequestForm = Depends(),
                     db: Session = Depends(get_db)):
    user = _authenticate(db, form.username, form.password)
    if not user:
        raise HTTPException(status_code=401, detail="Usuário ou senha inválidos")
    return {"access_token": _token_for(user), "token_type": "bearer"}


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(data: LoginRequest, db: Session = Depends(get_db)):
    if not data.username or not data.password:
        raise HTTPException(status_code=400, detail="Usuário e senha são obrigatórios")
    if db.query(User).filter(User.username == data.username).first():
        raise HTTPException(status_code=400, detail="Este usuário já existe")
    user = User(username=data.username,
                hashed_password=get_password_hash(data.password),
                role=UserRole.viewer)
    db.add(user)
    db.commit()
    db.refresh(user)
    return {"message": "Usuário criado com sucesso", "user": user}


@router.post("/users", response_model=UserOut, status_code=201)
async def create_user(data: UserCreate, db: Session = Depends(get_db),
                      _: User = Depends(require_admin)):
    if db.query(User).filter(User.username == data.username).first():
        raise HTTPException(status_code=400, detail="Este usuário já existe")
    user = User(username=data.username,
                hashed_password=get_password_hash(data.password),
                role=data.role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@router.get("/me", response_model=UserOut)
async def me(current: User = Depends(get_current_user)):
    return current
