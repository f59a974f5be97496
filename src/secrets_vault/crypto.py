"""Cifragem autenticada AES-256-GCM.

Nonces de 96 bits são aleatórios a cada chamada; a probabilidade de colisão
no volume de operações de um cofre local é desprezível, então não há contador.
"""

import os
from typing import Optional, Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import AuthenticationFailed
from .keys import MasterKey

NONCE_SIZE = 12
TAG_SIZE = 16


def encrypt(
    plaintext: bytes, key: MasterKey, associated_data: Optional[bytes] = None
) -> Tuple[bytes, bytes]:
    """Criptografa dados com um nonce novo.

    Args:
        plaintext: Dados em texto plano
        key: Chave mestra
        associated_data: Dados autenticados mas não cifrados (opcional)

    Returns:
        Tuple[bytes, bytes]: (nonce, ciphertext seguido da tag de 16 bytes)

    Examples:
        >>> nonce, ciphertext = encrypt(b"sensitive data", key)
    """
    nonce = os.urandom(NONCE_SIZE)
    ciphertext = AESGCM(key.as_bytes()).encrypt(nonce, plaintext, associated_data)
    return nonce, ciphertext


def decrypt(
    nonce: bytes,
    ciphertext: bytes,
    key: MasterKey,
    associated_data: Optional[bytes] = None,
) -> bytes:
    """Descriptografa e verifica a tag de autenticação.

    Nunca retorna plaintext parcial: ou a tag confere e o plaintext completo
    é retornado, ou AuthenticationFailed é levantado.

    Raises:
        AuthenticationFailed: Chave errada, dados corrompidos ou adulterados
    """
    if len(nonce) != NONCE_SIZE or len(ciphertext) < TAG_SIZE:
        raise AuthenticationFailed()
    try:
        return AESGCM(key.as_bytes()).decrypt(nonce, ciphertext, associated_data)
    except InvalidTag:
        raise AuthenticationFailed() from None
