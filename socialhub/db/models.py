import enum

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship

from socialhub.clock import utcnow
from socialhub.db.base import Base


class Platform(str, enum.Enum):
    FACEBOOK = "FACEBOOK"
    LINKEDIN = "LINKEDIN"

    @property
    def label(self) -> str:
        return "Facebook" if self is Platform.FACEBOOK else "LinkedIn"


class PostStatus(str, enum.Enum):
    PUBLISHED = "PUBLISHED"
    SCHEDULED = "SCHEDULED"


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(320), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(32), nullable=False, default="USER")
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    reset_password_token = Column(String(128), nullable=True, index=True)
    reset_password_expires = Column(DateTime, nullable=True)

    # Provider credentials; token columns hold Fernet ciphertext
    facebook_token = Column(Text, nullable=True)
    facebook_token_expiry = Column(DateTime, nullable=True)
    facebook_id = Column(String(64), nullable=True)
    linkedin_access_token = Column(Text, nullable=True)
    linkedin_refresh_token = Column(Text, nullable=True)
    linkedin_expires_at = Column(DateTime, nullable=True)
    linkedin_id = Column(String(64), nullable=True)

    posts = relationship("Post", back_populates="user", cascade="all, delete-orphan")
    refresh_tokens = relationship("RefreshToken", back_populates="user", cascade="all, delete-orphan")
    organizations = relationship("Organization", back_populates="user", cascade="all, delete-orphan")


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"
    id = Column(Integer, primary_key=True, index=True)
    token = Column(String(1024), unique=True, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    user = relationship("User", back_populates="refresh_tokens")


class Post(Base):
    __tablename__ = "posts"
    id = Column(Integer, primary_key=True, index=True)
    content = Column(Text, nullable=False)
    media_url = Column(String(2048), nullable=True)
    status = Column(Enum(PostStatus, native_enum=False, length=16), nullable=False)
    platform = Column(Enum(Platform, native_enum=False, length=16), nullable=False)
    platform_id = Column(String(255), nullable=True)  # provider-assigned id, null until published
    published_at = Column(DateTime, nullable=True)  # scheduled time for SCHEDULED rows
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow)

    user = relationship("User", back_populates="posts")


class Organization(Base):
    __tablename__ = "organizations"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    category = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    website = Column(String(1024), nullable=True)
    location = Column(String(255), nullable=True)
    size = Column(String(64), nullable=True)
    employees = Column(String(64), nullable=True)
    revenue = Column(String(64), nullable=True)
    market_area = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="organizations")


class OAuthState(Base):
    __tablename__ = "oauth_states"
    state = Column(String(128), primary_key=True)
    platform = Column(Enum(Platform, native_enum=False, length=16), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)  # null for anonymous initiators
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utcnow)
