from contextlib import contextmanager
from typing import Union

import pytest
from eth_utils import decode_hex, encode_hex, is_address, to_checksum_address

from erc721_conformance.exceptions import ExecutionFault


class Address(str):
    """
    20-byte account or contract address, always held in its EIP-55 checksum form
    so that addresses coming from the node, from decoded logs and from the engine
    compare equal.
    """
    def __new__(cls, value: Union[str, bytes, 'Address']):
        if isinstance(value, (bytes, bytearray)):
            if len(value) != 20:
                raise ValueError(f'An address must be 20 bytes long. Got {len(value)} bytes: {value!r}')
            value = encode_hex(value)
        if not is_address(value):
            raise ValueError(f'Unable to handle address {value!r}')
        return super().__new__(cls, to_checksum_address(value))

    @classmethod
    def zero(cls) -> 'Address':
        return cls(b'\x00' * 20)

    def to_bytes(self) -> bytes:
        return decode_hex(self)

    def __repr__(self):
        return f'Address({str.__repr__(self)})'


ZERO_ADDRESS = Address.zero()
EMPTY_BYTES = b''


def to_int(quantity: Union[str, int]) -> int:
    """JSON-RPC quantities come as 0x-prefixed hex strings; the engine already uses ints."""
    if isinstance(quantity, int):
        return quantity
    return int(quantity, 16)


def to_bytes(value: Union[str, bytes]) -> bytes:
    if isinstance(value, str):
        return decode_hex(value)
    return bytes(value)


@contextmanager
def expect_throw():
    """
    The wrapped round-trip must be rejected. Only ExecutionFault counts as a rejection,
    so a broken test body never passes by accident.
    """
    with pytest.raises(ExecutionFault):
        yield
