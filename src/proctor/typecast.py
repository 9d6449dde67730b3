from __future__ import annotations

from dataclasses import MISSING, fields, is_dataclass
from pathlib import PurePath
from types import NoneType, UnionType
from typing import TYPE_CHECKING, Any, Literal, Protocol, TypeVar, Union

from typing_extensions import TypeAlias, get_args, get_origin, get_type_hints, overload

from .errors import ConfigError

if TYPE_CHECKING:
    from _typeshed import DataclassInstance

    T_Data = TypeVar("T_Data", bound=DataclassInstance)


T = TypeVar("T")

Primitive: TypeAlias = (
    "str | float | int | bool | None | list[Primitive] | dict[str, Primitive]"
)


def _build_obj_key(key: str, next_key: str) -> str:
    return f"{key}{'.' if key else ''}{next_key}"


def _coerce_dataclass(typ: type[T_Data], val: Primitive, *, key: str) -> T_Data:
    val = _coerce_type(dict, val, key=key)
    hints = get_type_hints(typ)
    all_fields = {f.name: hints.get(f.name, Any) for f in fields(typ) if f.init}

    unknown = sorted(set(val).difference(all_fields))
    missing = sorted(
        f.name
        for f in fields(typ)
        if f.init
        and f.default is MISSING
        and f.default_factory is MISSING
        and f.name not in val
    )
    msg_parts = []
    if missing:
        msg_parts.append(f"missing keys: {missing}")
    if unknown:
        msg_parts.append(f"unknown keys: {unknown}")
    if msg_parts:
        raise ConfigError(key, ", ".join(msg_parts))

    kwargs = {
        k: typecast(all_fields[k], v, key=_build_obj_key(key, k)) for k, v in val.items()
    }
    try:
        return typ(**kwargs)
    except ValueError as e:
        raise ConfigError(key, str(e)) from None


@overload
def _coerce_type(typ: type[T], val: Primitive, *, key: str) -> T: ...
@overload
def _coerce_type(typ: type[Any], val: Primitive, *, key: str) -> Any: ...
def _coerce_type(typ: type[Any], val: Primitive, *, key: str) -> Any:
    if typ is Any:
        return val

    if is_dataclass(typ):
        return _coerce_dataclass(typ, val, key=key)

    if issubclass(typ, PurePath):
        return typ(_coerce_type(str, val, key=key))

    # bool is an int subclass, but `stdin = true` is never a descriptor
    if typ is int and isinstance(val, bool):
        msg = "Value was bool, but expected int"
        raise ConfigError(key, msg)

    if not isinstance(val, typ):
        msg = f"Value was {type(val).__name__}, but expected {typ.__name__}"
        raise ConfigError(key, msg)
    return val


def _coerce_dict(typ: type[dict[str, T]], val: Primitive, *, key: str) -> dict[str, T]:
    val = _coerce_type(dict, val, key=key)

    kt, vt = get_args(typ)
    assert kt is str, "non-string dict keys are not supported"
    return {k: typecast(vt, v, key=_build_obj_key(key, k)) for k, v in val.items()}


def _coerce_list(typ: type[list[T]], val: Primitive, *, key: str) -> list[T]:
    val = _coerce_type(list, val, key=key)
    (it,) = get_args(typ)
    return [typecast(it, item, key=f"{key}[{index}]") for index, item in enumerate(val)]


def _coerce_tuple(typ: type[tuple[T, ...]], val: Primitive, *, key: str) -> tuple[T, ...]:
    val = _coerce_type(list, val, key=key)
    args = get_args(typ)
    if len(args) != 2 or args[1] is not Ellipsis:
        raise NotImplementedError(f"{typ} is not supported yet")
    return tuple(
        typecast(args[0], item, key=f"{key}[{index}]") for index, item in enumerate(val)
    )


def _coerce_literal(typ: Any, val: Primitive, *, key: str) -> Any:
    choices = get_args(typ)
    if val not in choices:
        msg = f"Value was {val!r}, but expected one of {list(choices)}"
        raise ConfigError(key, msg)
    return val


def _coerce_union(typ: type[T], val: Primitive, *, key: str) -> T:
    errors = []
    for ut in get_args(typ):
        if ut is NoneType:
            if val is None:
                return val  # type: ignore[return-value]
            continue
        try:
            return typecast(ut, val, key=key)
        except ConfigError as e:
            errors.append(f"- {e.message}")
    raise ConfigError(key, "\nPossible issues:\n" + "\n".join(errors))


_origin_mapper = {
    dict: _coerce_dict,
    list: _coerce_list,
    tuple: _coerce_tuple,
    Literal: _coerce_literal,
    Union: _coerce_union,
    UnionType: _coerce_union,
}


class Coercable(Protocol):
    def __call__(self, typ: Any, val: Primitive, *, key: str) -> Any: ...


@overload
def typecast(typ: type[T], val: Primitive, *, key: str = ...) -> T: ...
@overload
def typecast(typ: Any, val: Primitive, *, key: str = ...) -> Any: ...
def typecast(typ: Any, val: Primitive, *, key: str = "") -> Any:
    """Coerce parsed TOML data into ``typ``, reporting the offending key on failure."""
    coerce: Coercable
    if (origin := get_origin(typ)) in _origin_mapper:
        coerce = _origin_mapper[origin]
    elif typ is Any or isinstance(typ, type):
        coerce = _coerce_type
    else:
        raise NotImplementedError(f"{typ} is not supported yet")

    return coerce(typ, val, key=key)
