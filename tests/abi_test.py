import pytest
from eth_utils import encode_hex

from erc721_conformance.abi import (ApprovalForAllEvent, ERC165_ABI, ERC165_INTERFACE_ID, ERC721_ABI,
                                    ERC721_INTERFACE_ID, ERC721_METADATA_ABI, ERC721_METADATA_INTERFACE_ID,
                                    ERC721_RECEIVED, ERC721_TOKEN_RECEIVER_ABI, TransferEvent, decode_log,
                                    decode_output, encode_call, encode_log, event_topic, find_function,
                                    interface_id, selector)
from erc721_conformance.utils import Address, ZERO_ADDRESS

owner = Address('0x' + 'ab' * 20)
operator = Address('0x' + 'cd' * 20)


def test_interface_ids_are_the_xor_of_their_selectors():
    assert interface_id(ERC165_ABI) == ERC165_INTERFACE_ID
    assert interface_id(ERC721_ABI) == ERC721_INTERFACE_ID
    assert interface_id(ERC721_METADATA_ABI) == ERC721_METADATA_INTERFACE_ID


def test_receiver_magic_value_is_the_selector_of_on_erc721_received():
    assert selector(ERC721_TOKEN_RECEIVER_ABI[0]) == ERC721_RECEIVED


def test_transfer_topic():
    assert event_topic(TransferEvent) == '0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef'


def test_find_function_tells_overloads_apart():
    assert len(find_function(ERC721_ABI, 'safeTransferFrom', 3)['inputs']) == 3
    assert find_function(ERC721_ABI, 'safeTransferFrom', 4)['inputs'][3]['type'] == 'bytes'
    with pytest.raises(ValueError):
        find_function(ERC721_ABI, 'safeTransferFrom', 2)


def test_encode_call_accepts_hex_strings_for_bytes():
    supports_interface = find_function(ERC165_ABI, 'supportsInterface', 1)
    data = encode_call(supports_interface, ['0x80ac58cd'])
    assert data == '0x01ffc9a7' + '80ac58cd' + '00' * 28


def test_decode_output_returns_checksum_addresses():
    owner_of = find_function(ERC721_ABI, 'ownerOf', 1)
    raw = '0x' + '00' * 12 + 'ab' * 20
    decoded = decode_output(owner_of, raw)
    assert isinstance(decoded, Address)
    assert decoded == owner


def test_indexed_and_data_arguments_are_merged_in_abi_order():
    topics, data = encode_log(ApprovalForAllEvent, (owner, operator, True))
    assert len(topics) == 3
    assert data == encode_hex(b'\x00' * 31 + b'\x01')
    assert decode_log(ApprovalForAllEvent, topics, data) == (owner, operator, True)


def test_transfer_log_has_no_data():
    topics, data = encode_log(TransferEvent, (ZERO_ADDRESS, owner, 7))
    assert data == '0x'
    assert decode_log(TransferEvent, topics, data) == (ZERO_ADDRESS, owner, 7)
