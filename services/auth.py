from datetime import datetime, timedelta
from typing import Optional, Tuple
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from models.user import User, UserRole
from models.refresh_token import RefreshToken
from schemas.user import TokenData, TokenPair
from core.config import settings
from core.exceptions import AuthenticationError, AuthorizationError, ConflictError
import logging
import uuid

logger = logging.getLogger(__name__)

# Password hashing context
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.PASSWORD_HASH_ROUNDS
)

# JWT settings
SECRET_KEY = settings.SECRET_KEY
ALGORITHM = settings.ALGORITHM
TOKEN_ISSUER = "delivery-api"

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(password)

def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed JWT access token carrying the user's id, email and role."""
    now = datetime.utcnow()
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))

    to_encode = {
        "sub": str(user.id),
        "email": user.email,
        "role": UserRole(user.role).value,
        "exp": expire,
        "iat": now,
        "iss": TOKEN_ISSUER,
        "type": "access"
    }

    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    logger.info(f"Access token created for user: {user.id}")
    return encoded_jwt

def _create_refresh_token_value(user: User, expires_at: datetime) -> str:
    to_encode = {
        "sub": str(user.id),
        "exp": expires_at,
        "iat": datetime.utcnow(),
        "iss": TOKEN_ISSUER,
        "type": "refresh",
        # Keeps tokens issued within the same second distinct
        "jti": uuid.uuid4().hex
    }
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)

def verify_token(token: str) -> Optional[TokenData]:
    """Verify and decode an access token; None when invalid or expired."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM], issuer=TOKEN_ISSUER)
    except JWTError as e:
        logger.warning(f"JWT verification failed: {str(e)}")
        return None

    if payload.get("type") != "access":
        logger.warning("Token is not an access token")
        return None

    subject = payload.get("sub")
    if subject is None or not str(subject).isdigit():
        logger.warning("Token missing required claims")
        return None

    role = payload.get("role")
    return TokenData(
        user_id=int(subject),
        email=payload.get("email"),
        role=UserRole(role) if role in {r.value for r in UserRole} else None
    )

def generate_token_pair(db: Session, user: User) -> TokenPair:
    """Issue an access token and persist a fresh refresh token."""
    expires_at = datetime.utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    refresh_value = _create_refresh_token_value(user, expires_at)

    db.add(RefreshToken(token=refresh_value, user_id=user.id, expires_at=expires_at))
    db.commit()

    return TokenPair(
        access_token=create_access_token(user),
        refresh_token=refresh_value
    )

def get_user_by_email(db: Session, email: str) -> Optional[User]:
    email = email.lower().strip()
    return db.query(User).filter(User.email == email).first()

def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()

def create_user(db: Session, email: str, password: str, name: str,
                role: Optional[UserRole] = None) -> User:
    """Create a new user with a hashed password."""
    if get_user_by_email(db, email):
        logger.warning(f"Attempt to create user with existing email: {email}")
        raise ConflictError("User with this email already exists")

    db_user = User(
        email=email.lower().strip(),
        name=name,
        password_hash=get_password_hash(password),
        role=role or UserRole.DELIVERY_PERSON,
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow()
    )

    try:
        db.add(db_user)
        db.commit()
        db.refresh(db_user)
    except IntegrityError as e:
        db.rollback()
        logger.error(f"Database integrity error creating user {email}: {str(e)}")
        raise ConflictError("User with this email already exists")

    logger.info(f"User created successfully: {db_user.email} with role {db_user.role.value}")
    return db_user

def register_user(db: Session, email: str, password: str, name: str,
                  role: Optional[UserRole] = None) -> Tuple[User, TokenPair]:
    """Self-service registration; admins are only created by other admins."""
    if role == UserRole.ADMIN:
        logger.warning(f"Self-registration as admin refused for: {email}")
        raise AuthorizationError("Administrator accounts cannot be self-registered")

    user = create_user(db, email=email, password=password, name=name, role=role)
    return user, generate_token_pair(db, user)

def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    """Authenticate a user with email and password."""
    user = get_user_by_email(db, email)
    if not user:
        logger.warning(f"Authentication attempt with non-existent email: {email}")
        return None

    if not verify_password(password, user.password_hash):
        logger.warning(f"Authentication attempt with invalid password for user: {email}")
        return None

    logger.info(f"Successful authentication for user: {email}")
    return user

def login_user(db: Session, email: str, password: str) -> Tuple[User, TokenPair]:
    user = authenticate_user(db, email, password)
    if not user:
        raise AuthenticationError("Invalid credentials")
    return user, generate_token_pair(db, user)

def refresh_tokens(db: Session, refresh_token: str) -> TokenPair:
    """Rotate a refresh token: the presented token is consumed and a new pair issued."""
    token_record = db.query(RefreshToken).filter(
        RefreshToken.token == refresh_token,
        RefreshToken.is_revoked == False  # noqa: E712
    ).first()

    if not token_record:
        logger.warning("Refresh attempted with unknown or revoked token")
        raise AuthenticationError("Invalid refresh token")

    if token_record.is_expired():
        user_id = token_record.user_id
        db.delete(token_record)
        db.commit()
        logger.info(f"Expired refresh token removed for user: {user_id}")
        raise AuthenticationError("Refresh token expired")

    user = token_record.user
    db.delete(token_record)
    db.commit()

    logger.info(f"Refresh token rotated for user: {user.id}")
    return generate_token_pair(db, user)

def logout_user(db: Session, refresh_token: Optional[str]) -> None:
    if not refresh_token:
        return
    token_record = db.query(RefreshToken).filter(RefreshToken.token == refresh_token).first()
    if token_record:
        user_id = token_record.user_id
        db.delete(token_record)
        db.commit()
        logger.info(f"Refresh token removed on logout for user: {user_id}")
