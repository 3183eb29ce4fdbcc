import logging

from cryptography.fernet import Fernet, InvalidToken
from socialhub.config import settings

logger = logging.getLogger(__name__)


def _fernet() -> Fernet:
    if not settings.fernet_key:
        raise RuntimeError("FERNET_KEY is missing in .env")
    return Fernet(settings.fernet_key.encode())


def encrypt_token(plain: str) -> str:
    return _fernet().encrypt(plain.encode()).decode()


def decrypt_token(cipher: str) -> str:
    try:
        return _fernet().decrypt(cipher.encode()).decode()
    except (TypeError, InvalidToken) as e:
        # Log and propagate; the credential store turns this into "reconnect"
        logger.error("[token_crypto] decrypt error: %s", type(e).__name__)
        raise
