"""
Property Codec - Encode/decode single property values to canonical text

Pattern: Type-tag dispatch tables (one encoder and one decoder per tag)
No knowledge of entities: callers pass the raw value and its tag.

Canonical forms:
- Integer / ArraySize / LayerMask: decimal integer
- Float: shortest round-trip text, whole numbers without fraction ("1")
- Boolean: "true" / "false"
- Color, Vector2/3/4, Quaternion, Rect, Bounds: comma separated scalars
- AssetReference: asset path, else runtime id digits, else "null"
- Enum: symbolic name, else ordinal
- Unsupported: not encoded (property dropped)
"""

import enum
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from .exceptions import DecodeError


class PropertyTag(enum.Enum):
    """Closed set of property type tags. Values are the on-disk names."""
    INTEGER = "Integer"
    BOOLEAN = "Boolean"
    FLOAT = "Float"
    STRING = "String"
    COLOR = "Color"
    VECTOR2 = "Vector2"
    VECTOR3 = "Vector3"
    VECTOR4 = "Vector4"
    QUATERNION = "Quaternion"
    RECT = "Rect"
    BOUNDS = "Bounds"
    ASSET_REFERENCE = "AssetReference"
    ENUM = "Enum"
    ARRAY_SIZE = "ArraySize"
    LAYER_MASK = "LayerMask"
    UNSUPPORTED = "Unsupported"

    @classmethod
    def from_name(cls, name: str) -> 'PropertyTag':
        """
        Parse an on-disk tag name.

        Accepts the canonical names and the lowercase names written by the
        old single-file material bundle. Anything else is Unsupported.
        """
        if isinstance(name, PropertyTag):
            return name
        try:
            return cls(name)
        except ValueError:
            pass
        legacy = _LEGACY_TAG_NAMES.get(str(name).strip().lower())
        if legacy is not None:
            return legacy
        return cls.UNSUPPORTED

    @property
    def component_count(self) -> int:
        """Number of scalars for composite tags, 0 for scalar tags."""
        return COMPONENT_COUNTS.get(self, 0)

    @property
    def is_composite(self) -> bool:
        return self in COMPONENT_COUNTS


_LEGACY_TAG_NAMES = {
    'float': PropertyTag.FLOAT,
    'range': PropertyTag.FLOAT,
    'color': PropertyTag.COLOR,
    'vector': PropertyTag.VECTOR4,
    'texture': PropertyTag.ASSET_REFERENCE,
    'texenv': PropertyTag.ASSET_REFERENCE,
    'objectreference': PropertyTag.ASSET_REFERENCE,
    'int': PropertyTag.INTEGER,
    'integer': PropertyTag.INTEGER,
    'bool': PropertyTag.BOOLEAN,
    'boolean': PropertyTag.BOOLEAN,
    'string': PropertyTag.STRING,
}

# Fixed component order per composite tag
COMPONENT_COUNTS: Dict[PropertyTag, int] = {
    PropertyTag.COLOR: 4,        # r, g, b, a
    PropertyTag.VECTOR2: 2,      # x, y
    PropertyTag.VECTOR3: 3,      # x, y, z
    PropertyTag.VECTOR4: 4,      # x, y, z, w
    PropertyTag.QUATERNION: 4,   # x, y, z, w
    PropertyTag.RECT: 4,         # x, y, width, height
    PropertyTag.BOUNDS: 6,       # center xyz, size xyz
}

NULL_REFERENCE = "null"


@dataclass(frozen=True)
class AssetRef:
    """
    Reference to another entity.

    path is the stable identity (asset path). runtime_id is only valid in
    the session that produced it and cannot be resolved after a restart.
    """
    path: Optional[str] = None
    runtime_id: Optional[int] = None

    @property
    def is_portable(self) -> bool:
        return bool(self.path)


# ==================== SCALARS ====================

def format_float(value: float) -> str:
    """Locale-invariant, round-trip float text."""
    value = float(value)
    if math.isnan(value):
        return "nan"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    if value.is_integer() and abs(value) < 1e16:
        # -0.0 keeps its sign so it survives a round trip
        if value == 0 and math.copysign(1.0, value) < 0:
            return "-0"
        return str(int(value))
    return repr(value)


def parse_float(text: str) -> float:
    try:
        return float(text.strip())
    except (ValueError, AttributeError) as e:
        raise DecodeError(f"Not a float: {text!r}", details=str(e))


def parse_int(text: str) -> int:
    try:
        return int(text.strip())
    except (ValueError, AttributeError):
        pass
    # Integers written as whole floats ("3.0") by older tools
    number = parse_float(text)
    if not number.is_integer():
        raise DecodeError(f"Not an integer: {text!r}")
    return int(number)


def parse_bool(text: str) -> bool:
    lowered = text.strip().lower()
    if lowered in ('true', '1'):
        return True
    if lowered in ('false', '0'):
        return False
    raise DecodeError(f"Not a boolean: {text!r}")


# ==================== COMPOSITES ====================

def _encode_components(value: Any, tag: PropertyTag) -> str:
    components = tuple(value)
    expected = tag.component_count
    if len(components) != expected:
        raise ValueError(
            f"{tag.value} needs {expected} components, got {len(components)}"
        )
    return ",".join(format_float(c) for c in components)


def _strip_wrappers(text: str) -> str:
    """Drop RGBA(...) / (...) wrappers left by older snapshots."""
    text = text.strip()
    if text.upper().startswith("RGBA("):
        text = text[5:]
    if text.startswith("("):
        text = text[1:]
    if text.endswith(")"):
        text = text[:-1]
    return text


def _decode_components(text: str, tag: PropertyTag) -> Tuple[float, ...]:
    parts = _strip_wrappers(text).split(",")
    expected = tag.component_count
    if len(parts) != expected:
        raise DecodeError(
            f"{tag.value} needs {expected} components, got {len(parts)}",
            details=text,
        )
    return tuple(parse_float(p) for p in parts)


# ==================== REFERENCES / ENUMS ====================

def _encode_reference(value: Any) -> str:
    if value is None:
        return NULL_REFERENCE
    if isinstance(value, AssetRef):
        if value.path:
            return value.path
        if value.runtime_id is not None:
            return str(int(value.runtime_id))
        return NULL_REFERENCE
    if isinstance(value, str):
        return value or NULL_REFERENCE
    if isinstance(value, int):
        return str(value)
    raise ValueError(f"Cannot encode asset reference from {type(value).__name__}")


def _decode_reference(text: str) -> Optional[AssetRef]:
    text = text.strip()
    if not text or text == NULL_REFERENCE:
        return None
    if text.lstrip('-').isdigit():
        return AssetRef(runtime_id=int(text))
    return AssetRef(path=text)


def _encode_enum(value: Any) -> str:
    if isinstance(value, enum.Enum):
        return value.name
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and value:
        return value
    raise ValueError(f"Cannot encode enum from {value!r}")


def _decode_enum(text: str) -> Any:
    text = text.strip()
    if text.lstrip('-').isdigit():
        return int(text)
    if not text:
        raise DecodeError("Empty enum value")
    return text


def _encode_bool(value: Any) -> str:
    if isinstance(value, str):
        return "true" if parse_bool(value) else "false"
    return "true" if value else "false"


def _encode_int(value: Any) -> str:
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"Not an integer: {value}")
    return str(int(value))


_ENCODERS: Dict[PropertyTag, Callable[[Any], str]] = {
    PropertyTag.INTEGER: _encode_int,
    PropertyTag.ARRAY_SIZE: _encode_int,
    PropertyTag.LAYER_MASK: _encode_int,
    PropertyTag.BOOLEAN: _encode_bool,
    PropertyTag.FLOAT: format_float,
    PropertyTag.STRING: lambda v: "" if v is None else str(v),
    PropertyTag.ASSET_REFERENCE: _encode_reference,
    PropertyTag.ENUM: _encode_enum,
}

_DECODERS: Dict[PropertyTag, Callable[[str], Any]] = {
    PropertyTag.INTEGER: parse_int,
    PropertyTag.ARRAY_SIZE: parse_int,
    PropertyTag.LAYER_MASK: parse_int,
    PropertyTag.BOOLEAN: parse_bool,
    PropertyTag.FLOAT: parse_float,
    PropertyTag.STRING: lambda t: t,
    PropertyTag.ASSET_REFERENCE: _decode_reference,
    PropertyTag.ENUM: _decode_enum,
}


def encode(value: Any, tag: PropertyTag) -> Optional[str]:
    """
    Encode a raw value to its canonical string.

    Args:
        value: Raw value as returned by the host
        tag: Property tag

    Returns:
        Canonical string, or None for Unsupported (property is dropped)

    Raises:
        PropertyError: If the value does not fit the tag
    """
    tag = PropertyTag.from_name(tag)
    if tag is PropertyTag.UNSUPPORTED:
        return None
    try:
        if tag.is_composite:
            return _encode_components(value, tag)
        return _ENCODERS[tag](value)
    except DecodeError:
        raise
    except (TypeError, ValueError) as e:
        raise DecodeError(f"Cannot encode {tag.value} value", details=str(e))


def decode(text: str, tag: PropertyTag) -> Any:
    """
    Decode canonical text back to a raw value.

    Args:
        text: Encoded string
        tag: Property tag

    Returns:
        Raw value (tuple of floats for composites, AssetRef or None for
        references, int or name string for enums)

    Raises:
        DecodeError: On malformed text, wrong component count or Unsupported tag
    """
    tag = PropertyTag.from_name(tag)
    if tag is PropertyTag.UNSUPPORTED:
        raise DecodeError("Unsupported properties cannot be decoded")
    if text is None:
        raise DecodeError(f"Missing {tag.value} value")
    if tag.is_composite:
        return _decode_components(text, tag)
    return _DECODERS[tag](text)


__all__ = [
    'PropertyTag',
    'AssetRef',
    'COMPONENT_COUNTS',
    'NULL_REFERENCE',
    'encode',
    'decode',
    'format_float',
]
