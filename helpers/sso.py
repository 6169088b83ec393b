# helpers/sso.py
"""
GHL custom pages post the current user as an AES payload encrypted with the app's SSO key
(CryptoJS passphrase format: base64("Salted__" + salt + ciphertext), AES-256-CBC).
"""
import base64
import binascii
import hashlib
import json
from typing import Any, Dict

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from helpers.errors import BadRequest

_MAGIC = b"Salted__"


def _evp_bytes_to_key(passphrase: bytes, salt: bytes, key_len: int = 32, iv_len: int = 16):
    derived = b""
    block = b""
    while len(derived) < key_len + iv_len:
        block = hashlib.md5(block + passphrase + salt).digest()
        derived += block
    return derived[:key_len], derived[key_len:key_len + iv_len]


def decrypt_sso_payload(encrypted: str, sso_key: str) -> Dict[str, Any]:
    if not sso_key:
        raise BadRequest("GHL_SSO_KEY is not configured")
    try:
        raw = base64.b64decode(encrypted)
    except (binascii.Error, ValueError):
        raise BadRequest("SSO payload is not base64")
    if not raw.startswith(_MAGIC) or len(raw) < 32:
        raise BadRequest("SSO payload has an unexpected format")

    salt, ciphertext = raw[8:16], raw[16:]
    key, iv = _evp_bytes_to_key(sso_key.encode("utf-8"), salt)
    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    unpadder = padding.PKCS7(128).unpadder()
    try:
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        plain = unpadder.update(padded) + unpadder.finalize()
        return json.loads(plain.decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        raise BadRequest("Could not decrypt SSO payload")
