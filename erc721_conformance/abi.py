"""
ERC-721 / ERC-165 ABI fragments and the encoding helpers shared by the RPC client and the
in-process engine. Events are encoded by the engine and decoded by both, so a log looks the
same whichever ledger produced it.
"""
from functools import reduce
from typing import Any, Dict, List, Sequence, Tuple

from eth_abi import decode, encode
from eth_utils import (decode_hex, encode_hex, event_abi_to_log_topic, function_signature_to_4byte_selector)

from erc721_conformance.utils import Address, to_bytes


def inputs_abi(*pairs: Tuple[str, str], indexed: Sequence[bool] = None) -> List[Dict[str, Any]]:
    fragments = [{'name': name, 'type': type_} for name, type_ in pairs]
    if indexed is not None:
        for fragment, flag in zip(fragments, indexed):
            fragment['indexed'] = flag
    return fragments


def function_abi(name: str, inputs: List[Dict[str, Any]], outputs: List[Dict[str, Any]] = None,
                 state_mutability: str = 'nonpayable') -> Dict[str, Any]:
    return {
        'type': 'function',
        'name': name,
        'inputs': inputs,
        'outputs': outputs or [],
        'stateMutability': state_mutability,
    }


def constructor_abi(inputs: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {'type': 'constructor', 'inputs': inputs, 'stateMutability': 'nonpayable'}


def event_abi(name: str, inputs: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {'type': 'event', 'name': name, 'inputs': inputs, 'anonymous': False}


TransferEvent = event_abi('Transfer', inputs_abi(
    ('_from', 'address'), ('_to', 'address'), ('_tokenId', 'uint256'), indexed=[True, True, True]))
ApprovalEvent = event_abi('Approval', inputs_abi(
    ('_owner', 'address'), ('_approved', 'address'), ('_tokenId', 'uint256'), indexed=[True, True, True]))
ApprovalForAllEvent = event_abi('ApprovalForAll', inputs_abi(
    ('_owner', 'address'), ('_operator', 'address'), ('_approved', 'bool'), indexed=[True, True, False]))

ERC165_ABI = [
    function_abi('supportsInterface', inputs_abi(('interfaceID', 'bytes4')), inputs_abi(('', 'bool')), 'view'),
]

ERC721_ABI = [
    TransferEvent,
    ApprovalEvent,
    ApprovalForAllEvent,
    function_abi('balanceOf', inputs_abi(('_owner', 'address')), inputs_abi(('', 'uint256')), 'view'),
    function_abi('ownerOf', inputs_abi(('_tokenId', 'uint256')), inputs_abi(('', 'address')), 'view'),
    function_abi('safeTransferFrom', inputs_abi(
        ('_from', 'address'), ('_to', 'address'), ('_tokenId', 'uint256'), ('data', 'bytes')), state_mutability='payable'),
    function_abi('safeTransferFrom', inputs_abi(
        ('_from', 'address'), ('_to', 'address'), ('_tokenId', 'uint256')), state_mutability='payable'),
    function_abi('transferFrom', inputs_abi(
        ('_from', 'address'), ('_to', 'address'), ('_tokenId', 'uint256')), state_mutability='payable'),
    function_abi('approve', inputs_abi(('_approved', 'address'), ('_tokenId', 'uint256')), state_mutability='payable'),
    function_abi('setApprovalForAll', inputs_abi(('_operator', 'address'), ('_approved', 'bool'))),
    function_abi('getApproved', inputs_abi(('_tokenId', 'uint256')), inputs_abi(('', 'address')), 'view'),
    function_abi('isApprovedForAll', inputs_abi(('_owner', 'address'), ('_operator', 'address')),
                 inputs_abi(('', 'bool')), 'view'),
]

ERC721_METADATA_ABI = [
    function_abi('name', [], inputs_abi(('_name', 'string')), 'view'),
    function_abi('symbol', [], inputs_abi(('_symbol', 'string')), 'view'),
    function_abi('tokenURI', inputs_abi(('_tokenId', 'uint256')), inputs_abi(('', 'string')), 'view'),
]

ERC721_TOKEN_RECEIVER_ABI = [
    function_abi('onERC721Received', inputs_abi(
        ('_operator', 'address'), ('_from', 'address'), ('_tokenId', 'uint256'), ('_data', 'bytes')),
        inputs_abi(('', 'bytes4'))),
]

# what a token contract is assumed to expose when no artifact was registered for it
DEFAULT_TOKEN_ABI = ERC165_ABI + ERC721_ABI + ERC721_METADATA_ABI


def input_types(abi_fragment: Dict[str, Any]) -> List[str]:
    return [i['type'] for i in abi_fragment.get('inputs', [])]


def output_types(abi_fragment: Dict[str, Any]) -> List[str]:
    return [o['type'] for o in abi_fragment.get('outputs', [])]


def signature(abi_fragment: Dict[str, Any]) -> str:
    return f"{abi_fragment['name']}({','.join(input_types(abi_fragment))})"


def selector(abi_fragment: Dict[str, Any]) -> bytes:
    return function_signature_to_4byte_selector(signature(abi_fragment))


def interface_id(abi: List[Dict[str, Any]]) -> bytes:
    """ERC-165: XOR of the selectors of every function of the interface."""
    selectors = [int.from_bytes(selector(f), 'big') for f in abi if f['type'] == 'function']
    return reduce(lambda a, b: a ^ b, selectors, 0).to_bytes(4, 'big')


ERC165_INTERFACE_ID = bytes.fromhex('01ffc9a7')
ERC721_INTERFACE_ID = bytes.fromhex('80ac58cd')
ERC721_METADATA_INTERFACE_ID = bytes.fromhex('5b5e139f')
INVALID_INTERFACE_ID = bytes.fromhex('ffffffff')
ERC721_RECEIVED = bytes.fromhex('150b7a02')  # bytes4(keccak256("onERC721Received(address,address,uint256,bytes)"))


def find_function(abi: List[Dict[str, Any]], name: str, arg_count: int) -> Dict[str, Any]:
    """Overloads (e.g. safeTransferFrom) are told apart by their number of arguments."""
    for fragment in abi:
        if fragment['type'] == 'function' and fragment['name'] == name and len(fragment['inputs']) == arg_count:
            return fragment
    raise ValueError(f'No function {name} taking {arg_count} arguments in the given ABI')


def find_constructor(abi: List[Dict[str, Any]]) -> Dict[str, Any]:
    for fragment in abi:
        if fragment['type'] == 'constructor':
            return fragment
    return {'type': 'constructor', 'inputs': []}


def normalize_input(type_: str, value: Any) -> Any:
    if type_ == 'address':
        return str(Address(value))
    if type_.startswith('bytes'):
        return to_bytes(value)
    return value


def normalize_output(type_: str, value: Any) -> Any:
    if type_ == 'address':
        return Address(value)
    return value


def encode_arguments(types: List[str], args: Sequence[Any]) -> bytes:
    if len(types) != len(args):
        raise ValueError(f'Expected {len(types)} arguments of types {types}. Got {len(args)}: {args}')
    return encode(types, [normalize_input(t, a) for t, a in zip(types, args)])


def encode_call(abi_fragment: Dict[str, Any], args: Sequence[Any]) -> str:
    return encode_hex(selector(abi_fragment) + encode_arguments(input_types(abi_fragment), args))


def decode_output(abi_fragment: Dict[str, Any], raw_result: str) -> Any:
    """A single return value is returned bare, several as a tuple, none as None."""
    types = output_types(abi_fragment)
    if not types:
        return None
    values = decode(types, decode_hex(raw_result))
    values = tuple(normalize_output(t, v) for t, v in zip(types, values))
    if len(values) == 1:
        return values[0]
    return values


def event_topic(event_abi: Dict[str, Any]) -> str:
    return encode_hex(event_abi_to_log_topic(event_abi))


def encode_log(event_abi: Dict[str, Any], values: Sequence[Any]) -> Tuple[List[str], str]:
    """:return: (topics, data) of a log, the way the EVM lays them out"""
    topics = [event_topic(event_abi)]
    data_types, data_values = [], []
    for fragment, value in zip(event_abi['inputs'], values):
        if fragment.get('indexed'):
            topics.append(encode_hex(encode_arguments([fragment['type']], [value])))
        else:
            data_types.append(fragment['type'])
            data_values.append(value)
    return topics, encode_hex(encode_arguments(data_types, data_values))


def decode_log(event_abi: Dict[str, Any], topics: Sequence[str], data: str) -> Tuple[Any, ...]:
    """:return: the event arguments in ABI order, indexed and non-indexed merged back together"""
    indexed_topics = list(topics[1:])
    data_types = [i['type'] for i in event_abi['inputs'] if not i.get('indexed')]
    data_values = list(decode(data_types, decode_hex(data))) if data_types else []
    values = []
    for fragment in event_abi['inputs']:
        type_ = fragment['type']
        if fragment.get('indexed'):
            value = decode([type_], decode_hex(indexed_topics.pop(0)))[0]
        else:
            value = data_values.pop(0)
        values.append(normalize_output(type_, value))
    return tuple(values)
