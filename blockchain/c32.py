"""
c32check encoding of Stacks principals (``ST...`` / ``SP...`` addresses)
"""

import hashlib
from typing import Tuple

from errors.exceptions import CodecError

C32_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"

VERSION_MAINNET_SINGLE_SIG = 22  # SP
VERSION_MAINNET_MULTI_SIG = 20   # SM
VERSION_TESTNET_SINGLE_SIG = 26  # ST
VERSION_TESTNET_MULTI_SIG = 21   # SN


def _checksum(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()[:4]


def _normalize(text: str) -> str:
    # c32 is case-insensitive and treats O as 0, I/L as 1
    return text.upper().replace("O", "0").replace("L", "1").replace("I", "1")


def c32_encode(data: bytes) -> str:
    """Base32 (Crockford variant) encode, one leading '0' per leading zero byte"""
    number = int.from_bytes(data, "big")
    digits = []
    while number > 0:
        number, rem = divmod(number, 32)
        digits.append(C32_ALPHABET[rem])
    leading_zeros = len(data) - len(data.lstrip(b"\x00"))
    return C32_ALPHABET[0] * leading_zeros + "".join(reversed(digits))


def c32_decode(text: str) -> bytes:
    text = _normalize(text)
    number = 0
    for char in text:
        index = C32_ALPHABET.find(char)
        if index < 0:
            raise CodecError(f"Invalid c32 character: {char!r}")
        number = number * 32 + index
    leading_zeros = len(text) - len(text.lstrip(C32_ALPHABET[0]))
    body = number.to_bytes((number.bit_length() + 7) // 8, "big") if number else b""
    return b"\x00" * leading_zeros + body


def c32check_encode(version: int, data: bytes) -> str:
    if not 0 <= version < 32:
        raise CodecError(f"Invalid c32check version: {version}")
    checksum = _checksum(bytes([version]) + data)
    return C32_ALPHABET[version] + c32_encode(data + checksum)


def c32check_decode(text: str) -> Tuple[int, bytes]:
    text = _normalize(text)
    if len(text) < 2:
        raise CodecError("c32check string too short")
    version = C32_ALPHABET.index(text[0]) if text[0] in C32_ALPHABET else -1
    if version < 0:
        raise CodecError(f"Invalid c32check version character: {text[0]!r}")
    decoded = c32_decode(text[1:])
    data, checksum = decoded[:-4], decoded[-4:]
    if _checksum(bytes([version]) + data) != checksum:
        raise CodecError(f"Invalid c32check checksum for {text}")
    return version, data


def address_to_bytes(address: str) -> Tuple[int, bytes]:
    """Split a Stacks address into (version, 20-byte hash160)"""
    if not address or address[0].upper() != "S":
        raise CodecError(f"Invalid Stacks address: {address!r}")
    version, hash160 = c32check_decode(address[1:])
    if len(hash160) != 20:
        raise CodecError(f"Invalid Stacks address length: {address!r}")
    return version, hash160


def bytes_to_address(version: int, hash160: bytes) -> str:
    if len(hash160) != 20:
        raise CodecError("hash160 must be 20 bytes")
    return "S" + c32check_encode(version, hash160)
