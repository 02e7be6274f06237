import base64
import hashlib
import secrets
from typing import Tuple

import bcrypt
from starlette.concurrency import run_in_threadpool

from classjournal.core.config import settings

TOKEN_LENGTH = 26


def hash_password(plain_password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.auth.bcrypt_rounds)
    hashed = bcrypt.hashpw(plain_password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # In case the stored hash is invalid/corrupted
        return False


async def hash_password_async(plain_password: str) -> str:
    return await run_in_threadpool(hash_password, plain_password)


async def verify_password_async(plain_password: str, password_hash: str) -> bool:
    return await run_in_threadpool(verify_password, plain_password, password_hash)


def hash_token(plaintext: str) -> bytes:
    return hashlib.sha256(plaintext.encode("utf-8")).digest()


def generate_session_token() -> Tuple[str, bytes]:
    """16 random bytes as unpadded base32 (26 chars) and the SHA-256 of that text."""
    plaintext = base64.b32encode(secrets.token_bytes(16)).decode("ascii").rstrip("=")
    return plaintext, hash_token(plaintext)
