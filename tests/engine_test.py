import pytest

from erc721_conformance.abi import ERC721_RECEIVED
from erc721_conformance.events import TransferEvent, minted_token_id
from erc721_conformance.exceptions import ExecutionFault
from erc721_conformance.utils import Address, ZERO_ADDRESS
from erc721_test_with_vm import TestEngine, VMState
from erc721_test_with_vm.fixtures import mint_erc721, reset_contracts
from erc721_test_with_vm.reference import CONTRACT_CLASSES, TestERC721TokenReceiver
from erc721_test_with_vm.test_engine import public


@pytest.fixture
def contracts():
    return reset_contracts()


def test_each_transaction_mines_one_block(contracts):
    engine = contracts.client
    creator, user1 = contracts.accounts[:2]
    block_number = engine.get_block_number()
    receipt = engine.tx(contracts.asset, 'mint', user1, sender=creator)
    assert engine.get_block_number() == block_number + 1
    assert int(receipt['blockNumber'], 16) == block_number + 1
    assert receipt['status'] == '0x1'
    assert minted_token_id(engine, contracts.asset, receipt) == engine.previous_result


def test_calls_do_not_mine_nor_persist(contracts):
    engine = contracts.client
    creator, user1 = contracts.accounts[:2]
    block_number = engine.get_block_number()
    token_id = engine.call(contracts.asset, 'mint', user1, sender=creator)
    assert engine.get_block_number() == block_number
    with pytest.raises(ExecutionFault):
        engine.call(contracts.asset, 'ownerOf', token_id)


def test_faulted_transaction_is_rolled_back(contracts):
    engine = contracts.client
    creator, user1 = contracts.accounts[:2]
    token_id = mint_erc721(contracts, creator)
    receiver = engine.deploy_contract(creator, 'TestERC721TokenReceiver', contracts.asset, True, False)
    block_number = engine.get_block_number()

    with pytest.raises(ExecutionFault):
        engine.tx(contracts.asset, 'safeTransferFrom', creator, receiver, token_id, sender=creator)
    assert engine.state == VMState.FAULT
    assert 'did not accept' in engine.exception_message
    assert engine.get_block_number() == block_number
    assert engine.call(contracts.asset, 'ownerOf', token_id) == creator
    assert engine.call(receiver, 'receivedCount') == 0
    assert engine.get_past_events(contracts.asset, TransferEvent, from_block=block_number + 1) == []


def test_safe_transfer_passes_operator_and_data_to_the_receiver(contracts):
    engine = contracts.client
    creator, user1 = contracts.accounts[:2]
    token_id = mint_erc721(contracts, creator)
    receiver = engine.deploy_contract(creator, 'TestERC721TokenReceiver', contracts.asset, True, True)
    engine.tx(contracts.asset, 'setApprovalForAll', user1, True, sender=creator)

    engine.tx(contracts.asset, 'safeTransferFrom', creator, receiver, token_id, '0xff56fe3422', sender=user1)
    assert engine.call(receiver, 'lastReceived') == (user1, creator, token_id, bytes.fromhex('ff56fe3422'))


def test_receiver_only_accepts_its_own_token(contracts):
    engine = contracts.client
    creator = contracts.accounts[0]
    receiver = engine.deploy_contract(creator, 'TestERC721TokenReceiver', contracts.asset, True, True)
    with pytest.raises(ExecutionFault):
        engine.tx(receiver, 'onERC721Received', creator, creator, 1, b'', sender=creator)


def test_only_the_deployer_can_mint(contracts):
    engine = contracts.client
    user1 = contracts.accounts[1]
    with pytest.raises(ExecutionFault):
        engine.tx(contracts.asset, 'mint', user1, sender=user1)


def test_private_and_unknown_methods_cannot_be_invoked(contracts):
    engine = contracts.client
    creator = contracts.accounts[0]
    with pytest.raises(ExecutionFault):
        engine.tx(contracts.asset, 'post_transfer', creator, creator, creator, 1, b'', sender=creator)
    with pytest.raises(ExecutionFault):
        engine.call(contracts.asset, 'totalSupply')
    with pytest.raises(ExecutionFault):
        engine.call(creator, 'balanceOf', creator)


def test_past_events_are_ordered_by_block(contracts):
    engine = contracts.client
    creator, user1, user2 = contracts.accounts[:3]
    first = mint_erc721(contracts, creator)
    second = mint_erc721(contracts, user1)
    engine.tx(contracts.asset, 'transferFrom', creator, user2, first, sender=creator)
    events = engine.get_past_events(contracts.asset, TransferEvent)
    assert [e.return_values for e in events] == [
        (ZERO_ADDRESS, creator, first),
        (ZERO_ADDRESS, user1, second),
        (creator, user2, first),
    ]
    assert events[0].block_number < events[1].block_number < events[2].block_number


def test_unknown_contract_class_cannot_be_deployed():
    engine = TestEngine(CONTRACT_CLASSES)
    with pytest.raises(ValueError):
        engine.deploy_contract(engine.get_accounts()[0], 'ERC20Fund')


def test_invoke_method_with_print(contracts, capsys):
    engine = contracts.client
    state = engine.invoke_method_with_print(contracts.asset, 'supportsInterface', ['0x80ac58cd'], commit=False)
    assert state == VMState.HALT
    assert engine.previous_processed_result is True
    state = engine.invoke_method_with_print(contracts.asset, 'ownerOf', [12345], commit=False)
    assert state == VMState.FAULT
    out = capsys.readouterr().out
    assert 'invoke method ownerOf:' in out
    assert 'engine fault from method "ownerOf"' in out


class DraftSignatureReceiver(TestERC721TokenReceiver):
    """Implements the hook with the draft signature that had no operator argument."""

    @public
    def onERC721Received(self, from_address: Address, token_id: int, data: bytes) -> bytes:
        return ERC721_RECEIVED


def test_a_crashing_contract_is_rolled_back_too(contracts):
    engine = contracts.client
    creator = contracts.accounts[0]
    engine.register_contract_class('DraftSignatureReceiver', DraftSignatureReceiver)
    token_id = mint_erc721(contracts, creator)
    receiver = engine.deploy_contract(creator, 'DraftSignatureReceiver', contracts.asset, True, True)
    block_number = engine.get_block_number()

    with pytest.raises(TypeError):
        engine.tx(contracts.asset, 'safeTransferFrom', creator, receiver, token_id, sender=creator)
    assert engine.state == VMState.FAULT
    assert engine.get_block_number() == block_number
    assert engine.call(contracts.asset, 'ownerOf', token_id) == creator
    assert engine.call(contracts.asset, 'balanceOf', receiver) == 0
    assert engine.get_past_events(contracts.asset, TransferEvent, from_block=block_number + 1) == []


def test_arguments_follow_the_abi_not_their_look(contracts):
    engine = contracts.client
    creator = contracts.accounts[0]
    token_id = mint_erc721(contracts, creator)
    receiver = engine.deploy_contract(creator, 'TestERC721TokenReceiver', contracts.asset, True, True)
    # 20 bytes of data, shaped like an address
    data = '0x' + 'ab' * 20
    engine.tx(contracts.asset, 'safeTransferFrom', creator, receiver, token_id, data, sender=creator)
    assert engine.call(receiver, 'lastReceived') == (creator, creator, token_id, bytes.fromhex('ab' * 20))


def test_methods_are_looked_up_by_argument_count(contracts):
    engine = contracts.client
    creator = contracts.accounts[0]
    with pytest.raises(ExecutionFault):
        engine.call(contracts.asset, 'balanceOf', creator, creator)
    with pytest.raises(ValueError):
        engine.deploy_contract(creator, 'TestERC721NonReceiver', contracts.asset, True)


def test_deploy_arguments_reach_the_contract():
    engine = TestEngine(CONTRACT_CLASSES)
    creator = engine.get_accounts()[0]
    asset = engine.deploy_contract(creator, 'ReferenceERC721', 'Kitties', 'KIT')
    assert engine.call(asset, 'name') == 'Kitties'
    assert engine.call(asset, 'symbol') == 'KIT'
    receiver = engine.deploy_contract(creator, 'TestERC721NonReceiver', asset.lower())
    assert engine.call(receiver, 'token') == asset
