"""
Shapes: labeled groups of contract calls and literal metadata fields.

A shape maps a label to either a call or a literal string. Literal fields are
not sent anywhere; they are merged back into the decoded output, with the
`originAddress` literal replaced by the address the shape's calls target.
"""
from dataclasses import dataclass
from typing import Any, Mapping, NamedTuple, Optional, Union

from web3.contract.base_contract import BaseContractFunction

from core.errors import ShapeError, ShapeOriginMismatch
from core.network.calls import Call

ORIGIN_ADDRESS = "originAddress"


@dataclass(frozen=True)
class CallField:
    call: Call


@dataclass(frozen=True)
class LiteralField:
    value: str

    @property
    def is_origin_address(self) -> bool:
        return self.value == ORIGIN_ADDRESS


Field = Union[CallField, LiteralField]
Shape = dict[str, Field]


class ShapeResult(NamedTuple):
    """Decoded call values of one shape and the address they came from"""
    origin_address: Optional[str]
    data: dict[str, Any]


def to_field(label: str, value: Any) -> Field:
    if isinstance(value, (CallField, LiteralField)):
        return value
    if isinstance(value, Call):
        return CallField(value)
    if isinstance(value, str):
        return LiteralField(value)
    if isinstance(value, BaseContractFunction):
        return CallField(Call.from_function(value))
    raise ShapeError(
        f"Field '{label}' must be a contract call or a string, got {type(value).__name__}"
    )


def normalize_shape(shape: Mapping[str, Any]) -> Shape:
    return {label: to_field(label, value) for label, value in shape.items()}


def normalize_groups(groups: list[list[Mapping[str, Any]]]) -> list[list[Shape]]:
    return [[normalize_shape(shape) for shape in group] for group in groups]


def strip_literals(shape: Shape) -> dict[str, Call]:
    """Keep only the call fields, in their original order"""
    return {
        label: item.call
        for label, item in shape.items()
        if isinstance(item, CallField)
    }


def resolve_origin(calls: Mapping[str, Call]) -> Optional[str]:
    """The single target address shared by all calls of a shape"""
    addresses = [call.target for call in calls.values()]
    if not addresses:
        return None

    first = addresses[0].lower()
    if any(address.lower() != first for address in addresses):
        raise ShapeOriginMismatch(addresses)
    return addresses[0]


def recombine(original: Shape, result: ShapeResult) -> dict[str, Any]:
    """Merge literal fields back into a shape's decoded values"""
    output: dict[str, Any] = {}
    for label, item in original.items():
        if isinstance(item, CallField):
            output[label] = result.data[label]
        elif item.is_origin_address:
            output[label] = result.origin_address
        else:
            output[label] = item.value
    return output
