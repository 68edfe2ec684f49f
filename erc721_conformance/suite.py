"""
The ERC-721 conformance battery.

    TestMyToken = make_erc721_tests('MyToken', reset_contracts, mint_erc721, burn_erc721)

in a test module lets pytest run every assertion below against the token returned by
`reset_contracts`. Each test starts from a fresh handle and three tokens minted to `creator`.
"""
from typing import Any, Callable, List, NamedTuple, Sequence

import pytest

from erc721_conformance import config
from erc721_conformance.abi import (ERC165_INTERFACE_ID, ERC721_INTERFACE_ID, ERC721_METADATA_INTERFACE_ID,
                                    INVALID_INTERFACE_ID)
from erc721_conformance.events import ApprovalEvent, ApprovalForAllEvent, TransferEvent
from erc721_conformance.shadow import ShadowLedger
from erc721_conformance.utils import Address, EMPTY_BYTES, ZERO_ADDRESS, expect_throw


class Contracts(NamedTuple):
    """
    What `reset_contracts` hands to every test case.

    :param client: a TestClient or TestEngine
    :param asset: the token under test
    :param minter: the contract the mint hook goes through. Often the token itself
    :param accounts: at least four externally owned accounts, the first one being `creator`
    """
    client: Any
    asset: Address
    minter: Address
    accounts: Sequence[Address]


NO_DATA = None
SAFE_TRANSFER_DATA = [NO_DATA, EMPTY_BYTES, bytes.fromhex('ff56fe3422')]
SAFE_TRANSFER_IDS = ['without data', 'with empty data', 'with data']

NON_EXISTING_TOKEN_ID = 1000000000


class ERC721Suite:
    """
    Base class of the generated test classes. Its name does not start with Test, so pytest only
    collects the subclasses produced by make_erc721_tests.
    """
    reset_contracts: Callable[[], Contracts] = None
    mint_erc721: Callable[[Contracts, Address], int] = None
    burn_erc721: Callable[[Contracts, Address, int], Any] = None
    receiver_contract = config.receiver_contract
    non_receiver_contract = config.non_receiver_contract
    gas = config.gas

    contracts: Contracts
    token_ids: List[int]
    token_id: int

    def setup_method(self, method):
        self.contracts = self.reset_contracts()
        self.client = self.contracts.client
        self.asset = self.contracts.asset
        self.creator, self.user1, self.user2, self.user3 = self.contracts.accounts[:4]
        self.token_ids = [self.mint_erc721(self.contracts, self.creator) for _ in range(3)]
        self.token_id = self.token_ids[0]

    def tx(self, method: str, *args, sender: Address):
        return self.client.tx(self.asset, method, *args, sender=sender, gas=self.gas)

    def call(self, method: str, *args):
        return self.client.call(self.asset, method, *args)

    def safe_transfer_from(self, data, operator: Address, from_address: Address, to_address: Address, token_id: int):
        if data is NO_DATA:
            return self.tx('safeTransferFrom', from_address, to_address, token_id, sender=operator)
        return self.tx('safeTransferFrom', from_address, to_address, token_id, data, sender=operator)

    def events(self, event_abi, receipt):
        return self.client.get_events_from_receipt(self.asset, event_abi, receipt)

    def deploy_receiver(self, allow_tokens_received: bool, return_correct_bytes: bool) -> Address:
        return self.client.deploy_contract(self.creator, self.receiver_contract, self.asset,
                                           allow_tokens_received, return_correct_bytes)

    # -------------------------------------------
    # invalid token
    # -------------------------------------------

    def test_transfering_a_non_existing_nft_fails(self):
        with expect_throw():
            self.tx('transferFrom', self.creator, self.user1, 10000000, sender=self.creator)

    def test_tx_balance_of_a_zero_owner_fails(self):
        with expect_throw():
            self.tx('balanceOf', ZERO_ADDRESS, sender=self.creator)

    def test_call_balance_of_a_zero_owner_fails(self):
        with expect_throw():
            self.call('balanceOf', ZERO_ADDRESS)

    def test_tx_owner_of_a_non_existing_nft_fails(self):
        with expect_throw():
            self.tx('ownerOf', NON_EXISTING_TOKEN_ID, sender=self.creator)

    def test_call_owner_of_a_non_existing_nft_fails(self):
        with expect_throw():
            self.call('ownerOf', NON_EXISTING_TOKEN_ID)

    def test_tx_get_approved_a_non_existing_nft_fails(self):
        with expect_throw():
            self.tx('getApproved', NON_EXISTING_TOKEN_ID, sender=self.creator)

    def test_call_get_approved_a_non_existing_nft_fails(self):
        with expect_throw():
            self.call('getApproved', NON_EXISTING_TOKEN_ID)

    # -------------------------------------------
    # balance
    # -------------------------------------------

    def test_balance_is_zero_for_new_user(self):
        assert self.call('balanceOf', self.user1) == 0

    def test_balance_return_correct_value(self):
        assert self.call('balanceOf', self.user1) == 0

        self.tx('transferFrom', self.creator, self.user1, self.token_ids[0], sender=self.creator)
        assert self.call('balanceOf', self.user1) == 1

        self.tx('transferFrom', self.creator, self.user1, self.token_ids[1], sender=self.creator)
        assert self.call('balanceOf', self.user1) == 2

        self.tx('transferFrom', self.user1, self.user2, self.token_ids[0], sender=self.user1)
        assert self.call('balanceOf', self.user1) == 1
        assert self.call('balanceOf', self.user2) == 1

    # -------------------------------------------
    # minting
    # -------------------------------------------

    def test_mint_result_in_a_transfer_from_0_event(self):
        block_number = self.client.get_block_number()
        new_token_id = self.mint_erc721(self.contracts, self.user1)
        events = self.client.get_past_events(self.asset, TransferEvent, from_block=block_number + 1)
        assert len(events) == 1
        assert events[0].return_values == (ZERO_ADDRESS, self.user1, new_token_id)

    def test_mint_for_gives_correct_owner(self):
        token_id = self.mint_erc721(self.contracts, self.user1)
        assert self.call('ownerOf', token_id) == self.user1

    def test_mint_gives_distinct_ids(self):
        assert len(set(self.token_ids)) == 3
        assert self.call('balanceOf', self.creator) >= 3

    # -------------------------------------------
    # burning
    # -------------------------------------------

    def require_burn(self):
        if self.burn_erc721 is None:
            pytest.skip('burning is not supported by this token')

    def test_burn_result_in_a_transfer_to_0_event(self):
        self.require_burn()
        token_id = self.mint_erc721(self.contracts, self.user1)
        block_number = self.client.get_block_number()
        self.burn_erc721(self.contracts, self.user1, token_id)
        events = self.client.get_past_events(self.asset, TransferEvent, from_block=block_number + 1)
        assert len(events) == 1
        assert events[0].return_values == (self.user1, ZERO_ADDRESS, token_id)

    def test_burnt_token_has_no_owner(self):
        self.require_burn()
        token_id = self.mint_erc721(self.contracts, self.user1)
        balance_before = self.call('balanceOf', self.user1)
        self.burn_erc721(self.contracts, self.user1, token_id)
        with expect_throw():
            self.call('ownerOf', token_id)
        assert self.call('balanceOf', self.user1) == balance_before - 1

    # -------------------------------------------
    # transfers
    # -------------------------------------------

    def test_transfering_one_nft_results_in_one_erc721_transfer_event(self):
        receipt = self.tx('transferFrom', self.creator, self.user1, self.token_id, sender=self.creator)
        events = self.events(TransferEvent, receipt)
        assert len(events) == 1
        assert events[0].return_values == (self.creator, self.user1, self.token_id)

    def test_transfering_one_nft_change_to_correct_owner(self):
        self.tx('transferFrom', self.creator, self.user1, self.token_id, sender=self.creator)
        assert self.call('ownerOf', self.token_id) == self.user1

    def test_transfering_one_nft_increase_new_owner_balance(self):
        balance_before = self.call('balanceOf', self.user1)
        self.tx('transferFrom', self.creator, self.user1, self.token_id, sender=self.creator)
        assert self.call('balanceOf', self.user1) == balance_before + 1

    def test_transfering_one_nft_decrease_past_owner_balance(self):
        balance_before = self.call('balanceOf', self.creator)
        self.tx('transferFrom', self.creator, self.user1, self.token_id, sender=self.creator)
        assert self.call('balanceOf', self.creator) == balance_before - 1

    def test_transfering_from_without_approval_should_fail(self):
        with expect_throw():
            self.tx('transferFrom', self.creator, self.user1, self.token_id, sender=self.user1)
        assert self.call('ownerOf', self.token_id) == self.creator

    def test_transfering_to_zero_address_should_fail(self):
        with expect_throw():
            self.tx('transferFrom', self.creator, ZERO_ADDRESS, self.token_id, sender=self.creator)

    def test_transfering_from_a_non_owner_should_fail(self):
        with expect_throw():
            self.tx('transferFrom', self.user1, self.user2, self.token_id, sender=self.creator)

    def test_transfering_to_a_contract_that_do_not_accept_erc721_token_should_not_fail(self):
        receiver = self.deploy_receiver(False, True)
        self.tx('transferFrom', self.creator, receiver, self.token_id, sender=self.creator)
        assert self.call('ownerOf', self.token_id) == receiver

    # -------------------------------------------
    # safe transfers, with each kind of payload
    # -------------------------------------------

    @pytest.mark.parametrize('data', SAFE_TRANSFER_DATA, ids=SAFE_TRANSFER_IDS)
    def test_safe_transfering_one_nft_results_in_one_erc721_transfer_event(self, data):
        receipt = self.safe_transfer_from(data, self.creator, self.creator, self.user1, self.token_id)
        events = self.events(TransferEvent, receipt)
        assert len(events) == 1
        assert events[0].return_values == (self.creator, self.user1, self.token_id)

    @pytest.mark.parametrize('data', SAFE_TRANSFER_DATA, ids=SAFE_TRANSFER_IDS)
    def test_safe_transfering_to_zero_address_should_fail(self, data):
        with expect_throw():
            self.safe_transfer_from(data, self.creator, self.creator, ZERO_ADDRESS, self.token_id)

    @pytest.mark.parametrize('data', SAFE_TRANSFER_DATA, ids=SAFE_TRANSFER_IDS)
    def test_safe_transfering_one_nft_change_to_correct_owner(self, data):
        self.safe_transfer_from(data, self.creator, self.creator, self.user1, self.token_id)
        assert self.call('ownerOf', self.token_id) == self.user1

    @pytest.mark.parametrize('data', SAFE_TRANSFER_DATA, ids=SAFE_TRANSFER_IDS)
    def test_safe_transfering_from_without_approval_should_fail(self, data):
        with expect_throw():
            self.safe_transfer_from(data, self.user1, self.creator, self.user1, self.token_id)

    @pytest.mark.parametrize('data', SAFE_TRANSFER_DATA, ids=SAFE_TRANSFER_IDS)
    def test_safe_transfering_to_a_contract_that_do_not_accept_erc721_token_should_fail(self, data):
        receiver = self.deploy_receiver(False, True)
        with expect_throw():
            self.safe_transfer_from(data, self.creator, self.creator, receiver, self.token_id)
        assert self.call('ownerOf', self.token_id) == self.creator

    @pytest.mark.parametrize('data', SAFE_TRANSFER_DATA, ids=SAFE_TRANSFER_IDS)
    def test_safe_transfering_to_a_contract_that_do_not_return_the_correct_bytes_should_fail(self, data):
        receiver = self.deploy_receiver(True, False)
        block_number = self.client.get_block_number()
        with expect_throw():
            self.safe_transfer_from(data, self.creator, self.creator, receiver, self.token_id)
        assert self.call('ownerOf', self.token_id) == self.creator
        assert self.client.get_past_events(self.asset, TransferEvent, from_block=block_number + 1) == []

    @pytest.mark.parametrize('data', SAFE_TRANSFER_DATA, ids=SAFE_TRANSFER_IDS)
    def test_safe_transfering_to_a_contract_that_do_not_implement_on_erc721_received_should_fail(self, data):
        receiver = self.client.deploy_contract(self.creator, self.non_receiver_contract, self.asset)
        with expect_throw():
            self.safe_transfer_from(data, self.creator, self.creator, receiver, self.token_id)
        assert self.call('ownerOf', self.token_id) == self.creator

    @pytest.mark.parametrize('data', SAFE_TRANSFER_DATA, ids=SAFE_TRANSFER_IDS)
    def test_safe_transfering_to_a_contract_that_return_the_correct_bytes_should_succeed(self, data):
        receiver = self.deploy_receiver(True, True)
        self.safe_transfer_from(data, self.creator, self.creator, receiver, self.token_id)
        assert self.call('ownerOf', self.token_id) == receiver

    # -------------------------------------------
    # supportsInterface
    # -------------------------------------------

    def test_claim_to_support_erc165(self):
        assert self.call('supportsInterface', ERC165_INTERFACE_ID) is True

    def test_claim_to_support_base_erc721_interface(self):
        assert self.call('supportsInterface', ERC721_INTERFACE_ID) is True

    def test_claim_to_support_erc721_metadata_interface(self):
        assert self.call('supportsInterface', ERC721_METADATA_INTERFACE_ID) is True

    def test_does_not_claim_to_support_random_interface(self):
        assert self.call('supportsInterface', '0x88888888') is False

    def test_does_not_claim_to_support_the_invalid_interface(self):
        assert self.call('supportsInterface', INVALID_INTERFACE_ID) is False

    # -------------------------------------------
    # metadata
    # -------------------------------------------

    def test_metadata_name_and_symbol_are_readable(self):
        assert isinstance(self.call('name'), str)
        assert isinstance(self.call('symbol'), str)

    def test_token_uri_of_a_non_existing_nft_fails(self):
        with expect_throw():
            self.call('tokenURI', NON_EXISTING_TOKEN_ID)

    # -------------------------------------------
    # approvals
    # -------------------------------------------

    def test_approving_emit_approval_event(self):
        receipt = self.tx('approve', self.user1, self.token_id, sender=self.creator)
        events = self.events(ApprovalEvent, receipt)
        assert len(events) == 1
        assert events[0].return_values == (self.creator, self.user1, self.token_id)

    def test_removing_approval_emit_approval_event(self):
        self.tx('approve', self.user1, self.token_id, sender=self.creator)
        receipt = self.tx('approve', ZERO_ADDRESS, self.token_id, sender=self.creator)
        events = self.events(ApprovalEvent, receipt)
        assert len(events) == 1
        assert events[0].return_values == (self.creator, ZERO_ADDRESS, self.token_id)

    def test_approving_update_the_approval_status(self):
        self.tx('approve', self.user1, self.token_id, sender=self.creator)
        assert self.call('getApproved', self.token_id) == self.user1

    def test_removing_approval_update_the_approval_status(self):
        self.tx('approve', self.user1, self.token_id, sender=self.creator)
        self.tx('approve', ZERO_ADDRESS, self.token_id, sender=self.creator)
        assert self.call('getApproved', self.token_id) == ZERO_ADDRESS

    def test_cant_approve_if_not_owner_or_operator(self):
        self.tx('transferFrom', self.creator, self.user1, self.token_id, sender=self.creator)
        with expect_throw():
            self.tx('approve', self.user1, self.token_id, sender=self.creator)

    def test_approving_allows_transfer_from_the_approved_party(self):
        self.tx('approve', self.user1, self.token_id, sender=self.creator)
        self.tx('transferFrom', self.creator, self.user2, self.token_id, sender=self.user1)
        assert self.call('ownerOf', self.token_id) == self.user2

    def test_transfering_the_approved_nft_results_in_approval_reset_for_it(self):
        self.tx('approve', self.user2, self.token_id, sender=self.creator)
        self.tx('transferFrom', self.creator, self.user1, self.token_id, sender=self.user2)
        assert self.call('getApproved', self.token_id) == ZERO_ADDRESS

    def test_transfering_the_approved_nft_results_in_approval_reset_for_it_but_no_approval_event(self):
        self.tx('approve', self.user2, self.token_id, sender=self.creator)
        receipt = self.tx('transferFrom', self.creator, self.user1, self.token_id, sender=self.user2)
        assert self.events(ApprovalEvent, receipt) == []

    def test_transfering_the_approved_nft_again_will_fail(self):
        self.tx('approve', self.user2, self.token_id, sender=self.creator)
        self.tx('transferFrom', self.creator, self.user1, self.token_id, sender=self.user2)
        assert self.call('ownerOf', self.token_id) == self.user1
        with expect_throw():
            self.tx('transferFrom', self.user1, self.creator, self.token_id, sender=self.user2)

    def test_approval_by_operator_works(self):
        self.tx('setApprovalForAll', self.user1, True, sender=self.creator)
        self.tx('approve', self.user2, self.token_id, sender=self.user1)
        self.tx('transferFrom', self.creator, self.user3, self.token_id, sender=self.user2)
        assert self.call('ownerOf', self.token_id) == self.user3

    # -------------------------------------------
    # setApprovalForAll
    # -------------------------------------------

    def test_approving_all_emit_approval_for_all_event(self):
        receipt = self.tx('setApprovalForAll', self.user1, True, sender=self.creator)
        events = self.events(ApprovalForAllEvent, receipt)
        assert len(events) == 1
        assert events[0].return_values == (self.creator, self.user1, True)

    def test_approving_all_update_the_approval_status(self):
        self.tx('setApprovalForAll', self.user1, True, sender=self.creator)
        assert self.call('isApprovedForAll', self.creator, self.user1) is True

    def test_unsetting_approval_for_all_should_update_the_approval_status(self):
        self.tx('setApprovalForAll', self.user1, True, sender=self.creator)
        self.tx('setApprovalForAll', self.user1, False, sender=self.creator)
        assert self.call('isApprovedForAll', self.creator, self.user1) is False

    def test_unsetting_approval_for_all_should_emit_approval_for_all_event(self):
        self.tx('setApprovalForAll', self.user1, True, sender=self.creator)
        receipt = self.tx('setApprovalForAll', self.user1, False, sender=self.creator)
        events = self.events(ApprovalForAllEvent, receipt)
        assert len(events) == 1
        assert events[0].return_values == (self.creator, self.user1, False)

    def test_approving_all_again_still_emits_approval_for_all_event(self):
        self.tx('setApprovalForAll', self.user1, True, sender=self.creator)
        receipt = self.tx('setApprovalForAll', self.user1, True, sender=self.creator)
        events = self.events(ApprovalForAllEvent, receipt)
        assert len(events) == 1
        assert events[0].return_values == (self.creator, self.user1, True)
        assert self.call('isApprovedForAll', self.creator, self.user1) is True

    def test_approving_for_all_allows_transfer_from_the_approved_party(self):
        self.tx('setApprovalForAll', self.user1, True, sender=self.creator)
        self.tx('transferFrom', self.creator, self.user2, self.token_id, sender=self.user1)
        assert self.call('ownerOf', self.token_id) == self.user2

    def test_transfering_one_nft_do_not_results_in_approval_for_all_reset(self):
        self.tx('setApprovalForAll', self.user2, True, sender=self.creator)
        self.tx('transferFrom', self.creator, self.user1, self.token_id, sender=self.creator)
        assert self.call('isApprovedForAll', self.creator, self.user2) is True

    def test_approval_for_all_does_not_grant_approval_on_a_transfered_nft(self):
        self.tx('setApprovalForAll', self.user2, True, sender=self.creator)
        self.tx('transferFrom', self.creator, self.user1, self.token_id, sender=self.creator)
        with expect_throw():
            self.tx('transferFrom', self.user1, self.user2, self.token_id, sender=self.user2)

    def test_approval_for_all_set_before_will_work_on_a_transfered_nft(self):
        self.tx('setApprovalForAll', self.user2, True, sender=self.user1)
        self.tx('transferFrom', self.creator, self.user1, self.token_id, sender=self.creator)
        self.tx('transferFrom', self.user1, self.user2, self.token_id, sender=self.user2)
        assert self.call('ownerOf', self.token_id) == self.user2

    def test_approval_for_all_allow_to_set_individual_nft_approve(self):
        self.tx('setApprovalForAll', self.user1, True, sender=self.creator)
        self.tx('approve', self.user2, self.token_id, sender=self.user1)
        assert self.call('getApproved', self.token_id) == self.user2
        self.tx('transferFrom', self.creator, self.user3, self.token_id, sender=self.user2)
        assert self.call('ownerOf', self.token_id) == self.user3

    # -------------------------------------------
    # the token against the model
    # -------------------------------------------

    def test_random_operations_agree_with_the_model(self):
        accounts = [self.creator, self.user1, self.user2, self.user3]
        shadow = ShadowLedger(self.contracts, accounts, self.token_ids, gas=self.gas)
        shadow.random_walk(config.random_walk_steps, seed=config.random_walk_seed)
        shadow.model.check_invariants()


def make_erc721_tests(title: str, reset_contracts: Callable[[], Contracts],
                      mint_erc721: Callable[[Contracts, Address], int],
                      burn_erc721: Callable[[Contracts, Address, int], Any] = None, **options) -> type:
    """
    Build the test class of the battery for one token implementation. Assign the result to a
    module-level name starting with Test so pytest collects it.

    :param title: names the generated class, e.g. 'Asset' gives TestAssetAsERC721
    :param reset_contracts: called before every test. Returns a fresh Contracts handle
    :param mint_erc721: mint_erc721(contracts, to) mints a new token to `to` and returns its id
    :param burn_erc721: burn_erc721(contracts, owner, token_id), sent by `owner`. The burning tests
        are skipped when it is None
    :param options: overrides of ERC721Suite attributes: receiver_contract, non_receiver_contract, gas
    """
    unknown = set(options) - {'receiver_contract', 'non_receiver_contract', 'gas'}
    if unknown:
        raise ValueError(f'Unknown options {sorted(unknown)}')
    attributes = dict(options)
    attributes['reset_contracts'] = staticmethod(reset_contracts)
    attributes['mint_erc721'] = staticmethod(mint_erc721)
    attributes['burn_erc721'] = staticmethod(burn_erc721) if burn_erc721 else None
    class_name = 'Test' + ''.join(part[:1].upper() + part[1:] for part in title.split()) + 'AsERC721'
    return type(class_name, (ERC721Suite,), attributes)
