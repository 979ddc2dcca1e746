"""
Clarity value codec.

Encodes read-call arguments with the Stacks consensus serialization and
decodes call results into the tagged-value tree consumed by
``blockchain.normalizer``::

    {"type": "(tuple (prompt (string-utf8 5)) ...)",
     "value": {"prompt": {"type": "(string-utf8 5)", "value": "hello"}, ...}}
"""

import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Tuple

from blockchain.c32 import address_to_bytes, bytes_to_address
from errors.exceptions import CodecError

MAX_U128 = (1 << 128) - 1
MIN_I128 = -(1 << 127)
MAX_I128 = (1 << 127) - 1
MAX_CONTRACT_NAME_LENGTH = 128


class ClarityType(IntEnum):
    INT = 0x00
    UINT = 0x01
    BUFFER = 0x02
    BOOL_TRUE = 0x03
    BOOL_FALSE = 0x04
    PRINCIPAL_STANDARD = 0x05
    PRINCIPAL_CONTRACT = 0x06
    RESPONSE_OK = 0x07
    RESPONSE_ERR = 0x08
    OPTIONAL_NONE = 0x09
    OPTIONAL_SOME = 0x0a
    LIST = 0x0b
    TUPLE = 0x0c
    STRING_ASCII = 0x0d
    STRING_UTF8 = 0x0e


@dataclass(frozen=True)
class ClarityValue:
    """A single Clarity value.

    ``value`` holds an int (int/uint), bytes (buffer), str (strings and
    principals), a nested ClarityValue (some/ok/err), a list of values or a
    dict of named values (tuple). Booleans and ``none`` carry no payload.
    """
    type_id: ClarityType
    value: Any = field(default=None, compare=True)


# ────────────────────────────── constructors ──────────────────────────────

def uint_cv(value: int) -> ClarityValue:
    value = int(value)
    if not 0 <= value <= MAX_U128:
        raise CodecError(f"uint out of range: {value}")
    return ClarityValue(ClarityType.UINT, value)


def int_cv(value: int) -> ClarityValue:
    value = int(value)
    if not MIN_I128 <= value <= MAX_I128:
        raise CodecError(f"int out of range: {value}")
    return ClarityValue(ClarityType.INT, value)


def bool_cv(value: bool) -> ClarityValue:
    return ClarityValue(ClarityType.BOOL_TRUE if value else ClarityType.BOOL_FALSE)


def buffer_cv(value: bytes) -> ClarityValue:
    return ClarityValue(ClarityType.BUFFER, bytes(value))


def string_ascii_cv(value: str) -> ClarityValue:
    if not value.isascii():
        raise CodecError("string-ascii values must be ASCII")
    return ClarityValue(ClarityType.STRING_ASCII, value)


def string_utf8_cv(value: str) -> ClarityValue:
    return ClarityValue(ClarityType.STRING_UTF8, value)


def principal_cv(address: str) -> ClarityValue:
    if "." in address:
        owner, name = address.split(".", 1)
        address_to_bytes(owner)
        if not name or len(name) > MAX_CONTRACT_NAME_LENGTH or not name.isascii():
            raise CodecError(f"Invalid contract name: {name!r}")
        return ClarityValue(ClarityType.PRINCIPAL_CONTRACT, address)
    address_to_bytes(address)
    return ClarityValue(ClarityType.PRINCIPAL_STANDARD, address)


def none_cv() -> ClarityValue:
    return ClarityValue(ClarityType.OPTIONAL_NONE)


def some_cv(value: ClarityValue) -> ClarityValue:
    return ClarityValue(ClarityType.OPTIONAL_SOME, value)


def ok_cv(value: ClarityValue) -> ClarityValue:
    return ClarityValue(ClarityType.RESPONSE_OK, value)


def err_cv(value: ClarityValue) -> ClarityValue:
    return ClarityValue(ClarityType.RESPONSE_ERR, value)


def list_cv(values: List[ClarityValue]) -> ClarityValue:
    return ClarityValue(ClarityType.LIST, list(values))


def tuple_cv(data: Dict[str, ClarityValue]) -> ClarityValue:
    return ClarityValue(ClarityType.TUPLE, dict(sorted(data.items())))


# ────────────────────────────── serialization ──────────────────────────────

def serialize_cv(cv: ClarityValue) -> bytes:
    """Consensus-serialize a Clarity value"""
    t = cv.type_id
    prefix = bytes([t])

    if t == ClarityType.INT:
        return prefix + cv.value.to_bytes(16, "big", signed=True)
    if t == ClarityType.UINT:
        return prefix + cv.value.to_bytes(16, "big")
    if t == ClarityType.BUFFER:
        return prefix + struct.pack(">I", len(cv.value)) + cv.value
    if t in (ClarityType.BOOL_TRUE, ClarityType.BOOL_FALSE, ClarityType.OPTIONAL_NONE):
        return prefix
    if t == ClarityType.PRINCIPAL_STANDARD:
        version, hash160 = address_to_bytes(cv.value)
        return prefix + bytes([version]) + hash160
    if t == ClarityType.PRINCIPAL_CONTRACT:
        owner, name = cv.value.split(".", 1)
        version, hash160 = address_to_bytes(owner)
        encoded_name = name.encode("ascii")
        return prefix + bytes([version]) + hash160 + bytes([len(encoded_name)]) + encoded_name
    if t in (ClarityType.RESPONSE_OK, ClarityType.RESPONSE_ERR, ClarityType.OPTIONAL_SOME):
        return prefix + serialize_cv(cv.value)
    if t == ClarityType.LIST:
        return prefix + struct.pack(">I", len(cv.value)) + b"".join(serialize_cv(v) for v in cv.value)
    if t == ClarityType.TUPLE:
        out = prefix + struct.pack(">I", len(cv.value))
        for name in sorted(cv.value):
            encoded_name = name.encode("ascii")
            out += bytes([len(encoded_name)]) + encoded_name + serialize_cv(cv.value[name])
        return out
    if t == ClarityType.STRING_ASCII:
        data = cv.value.encode("ascii")
        return prefix + struct.pack(">I", len(data)) + data
    if t == ClarityType.STRING_UTF8:
        data = cv.value.encode("utf-8")
        return prefix + struct.pack(">I", len(data)) + data

    raise CodecError(f"Unknown Clarity type: {t}")


def _take(data: bytes, offset: int, length: int) -> Tuple[bytes, int]:
    end = offset + length
    if end > len(data):
        raise CodecError(f"Unexpected end of Clarity data at offset {offset}")
    return data[offset:end], end


def _read_u32(data: bytes, offset: int) -> Tuple[int, int]:
    raw, offset = _take(data, offset, 4)
    return struct.unpack(">I", raw)[0], offset


def _read_cv(data: bytes, offset: int) -> Tuple[ClarityValue, int]:
    raw, offset = _take(data, offset, 1)
    try:
        t = ClarityType(raw[0])
    except ValueError:
        raise CodecError(f"Unknown Clarity type prefix: 0x{raw[0]:02x}")

    if t == ClarityType.INT:
        raw, offset = _take(data, offset, 16)
        return ClarityValue(t, int.from_bytes(raw, "big", signed=True)), offset
    if t == ClarityType.UINT:
        raw, offset = _take(data, offset, 16)
        return ClarityValue(t, int.from_bytes(raw, "big")), offset
    if t == ClarityType.BUFFER:
        length, offset = _read_u32(data, offset)
        raw, offset = _take(data, offset, length)
        return ClarityValue(t, raw), offset
    if t in (ClarityType.BOOL_TRUE, ClarityType.BOOL_FALSE, ClarityType.OPTIONAL_NONE):
        return ClarityValue(t), offset
    if t == ClarityType.PRINCIPAL_STANDARD:
        raw, offset = _take(data, offset, 21)
        return ClarityValue(t, bytes_to_address(raw[0], raw[1:])), offset
    if t == ClarityType.PRINCIPAL_CONTRACT:
        raw, offset = _take(data, offset, 21)
        name_len, offset = _take(data, offset, 1)
        name, offset = _take(data, offset, name_len[0])
        address = bytes_to_address(raw[0], raw[1:])
        return ClarityValue(t, f"{address}.{name.decode('ascii')}"), offset
    if t in (ClarityType.RESPONSE_OK, ClarityType.RESPONSE_ERR, ClarityType.OPTIONAL_SOME):
        inner, offset = _read_cv(data, offset)
        return ClarityValue(t, inner), offset
    if t == ClarityType.LIST:
        count, offset = _read_u32(data, offset)
        items = []
        for _ in range(count):
            item, offset = _read_cv(data, offset)
            items.append(item)
        return ClarityValue(t, items), offset
    if t == ClarityType.TUPLE:
        count, offset = _read_u32(data, offset)
        fields = {}
        for _ in range(count):
            name_len, offset = _take(data, offset, 1)
            name, offset = _take(data, offset, name_len[0])
            fields[name.decode("ascii")], offset = _read_cv(data, offset)
        return ClarityValue(t, fields), offset
    if t in (ClarityType.STRING_ASCII, ClarityType.STRING_UTF8):
        length, offset = _read_u32(data, offset)
        raw, offset = _take(data, offset, length)
        encoding = "ascii" if t == ClarityType.STRING_ASCII else "utf-8"
        try:
            return ClarityValue(t, raw.decode(encoding)), offset
        except UnicodeDecodeError as e:
            raise CodecError(f"Invalid {encoding} string: {e}")

    raise CodecError(f"Unhandled Clarity type: {t}")


def deserialize_cv(data: bytes) -> ClarityValue:
    cv, offset = _read_cv(data, 0)
    if offset != len(data):
        raise CodecError(f"Trailing bytes after Clarity value: {len(data) - offset}")
    return cv


def cv_to_hex(cv: ClarityValue) -> str:
    return "0x" + serialize_cv(cv).hex()


def hex_to_cv(hex_str: str) -> ClarityValue:
    if hex_str.startswith("0x"):
        hex_str = hex_str[2:]
    try:
        data = bytes.fromhex(hex_str)
    except ValueError:
        raise CodecError("Clarity value is not valid hex")
    return deserialize_cv(data)


# ────────────────────────────── tagged tree ──────────────────────────────

def cv_type_string(cv: ClarityValue) -> str:
    t = cv.type_id
    if t in (ClarityType.BOOL_TRUE, ClarityType.BOOL_FALSE):
        return "bool"
    if t == ClarityType.INT:
        return "int"
    if t == ClarityType.UINT:
        return "uint"
    if t == ClarityType.BUFFER:
        return f"(buff {len(cv.value)})"
    if t == ClarityType.OPTIONAL_NONE:
        return "(optional none)"
    if t == ClarityType.OPTIONAL_SOME:
        return f"(optional {cv_type_string(cv.value)})"
    if t == ClarityType.RESPONSE_OK:
        return f"(response {cv_type_string(cv.value)} UnknownType)"
    if t == ClarityType.RESPONSE_ERR:
        return f"(response UnknownType {cv_type_string(cv.value)})"
    if t in (ClarityType.PRINCIPAL_STANDARD, ClarityType.PRINCIPAL_CONTRACT):
        return "principal"
    if t == ClarityType.LIST:
        inner = cv_type_string(cv.value[0]) if cv.value else "UnknownType"
        return f"(list {len(cv.value)} {inner})"
    if t == ClarityType.TUPLE:
        fields = " ".join(f"({k} {cv_type_string(v)})" for k, v in cv.value.items())
        return f"(tuple {fields})"
    if t == ClarityType.STRING_ASCII:
        return f"(string-ascii {len(cv.value.encode('ascii'))})"
    if t == ClarityType.STRING_UTF8:
        return f"(string-utf8 {len(cv.value.encode('utf-8'))})"
    raise CodecError(f"Unknown Clarity type: {t}")


def cv_to_json(cv: ClarityValue) -> Dict[str, Any]:
    """Tagged tree for one value; integers become decimal strings"""
    t = cv.type_id
    type_string = cv_type_string(cv)

    if t in (ClarityType.RESPONSE_OK, ClarityType.RESPONSE_ERR):
        return {
            "type": type_string,
            "value": cv_to_json(cv.value)["value"],
            "success": t == ClarityType.RESPONSE_OK,
        }
    if t == ClarityType.OPTIONAL_NONE:
        return {"type": type_string, "value": None}
    if t == ClarityType.OPTIONAL_SOME:
        return {"type": type_string, "value": cv_to_json(cv.value)}
    if t == ClarityType.TUPLE:
        return {"type": type_string, "value": {k: cv_to_json(v) for k, v in cv.value.items()}}
    if t == ClarityType.LIST:
        return {"type": type_string, "value": [cv_to_json(v) for v in cv.value]}
    return {"type": type_string, "value": cv_to_value(cv, strict_json=True)}


def cv_to_value(cv: ClarityValue, strict_json: bool = False) -> Any:
    """
    Shape of a read-call result.

    Responses are unwrapped, ``none`` becomes None, and compound values keep
    their children as tagged trees (one level of ``{"type", "value"}``).
    """
    t = cv.type_id

    if t == ClarityType.BOOL_TRUE:
        return True
    if t == ClarityType.BOOL_FALSE:
        return False
    if t in (ClarityType.INT, ClarityType.UINT):
        return str(cv.value) if strict_json else cv.value
    if t == ClarityType.BUFFER:
        return "0x" + cv.value.hex()
    if t == ClarityType.OPTIONAL_NONE:
        return None
    if t == ClarityType.OPTIONAL_SOME:
        return cv_to_json(cv.value)
    if t in (ClarityType.RESPONSE_OK, ClarityType.RESPONSE_ERR):
        return cv_to_value(cv.value, strict_json)
    if t in (ClarityType.PRINCIPAL_STANDARD, ClarityType.PRINCIPAL_CONTRACT,
             ClarityType.STRING_ASCII, ClarityType.STRING_UTF8):
        return cv.value
    if t == ClarityType.LIST:
        return [cv_to_json(v) for v in cv.value]
    if t == ClarityType.TUPLE:
        return {k: cv_to_json(v) for k, v in cv.value.items()}
    raise CodecError(f"Unknown Clarity type: {t}")


def cv_to_key_json(arg: Any) -> Any:
    """JSON-safe form of a call argument, used to build admission keys"""
    if isinstance(arg, ClarityValue):
        return cv_to_json(arg)
    if isinstance(arg, int) and not isinstance(arg, bool):
        return str(arg)
    return arg
