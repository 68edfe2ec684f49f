"""
Replays operations against a live token and an ERC721Model side by side, and fails as soon
as the two disagree on an outcome, an event or a read.
"""
import random
from typing import Any, List, Sequence

from erc721_conformance.abi import ApprovalEvent, ApprovalForAllEvent, TransferEvent
from erc721_conformance.exceptions import ExecutionFault
from erc721_conformance.model import ERC721Model, ExpectedEvent
from erc721_conformance.utils import Address, ZERO_ADDRESS

WATCHED_EVENTS = (TransferEvent, ApprovalEvent, ApprovalForAllEvent)


class ShadowLedger:
    def __init__(self, contracts, accounts: Sequence[Address], token_ids: Sequence[int], gas: int = None):
        """
        :param contracts: the Contracts handle of the token under test
        :param accounts: the accounts allowed to act. Every token of `token_ids` must be owned by one of them
        :param token_ids: the tokens the walk moves around. They are read from the token to seed the model
        """
        self.client = contracts.client
        self.asset = contracts.asset
        self.accounts = [Address(a) for a in accounts]
        self.token_ids = list(token_ids)
        self.gas = gas
        self.model = ERC721Model()
        self.history: List[str] = []
        self.balance_offsets = {}
        for token_id in self.token_ids:
            owner = self.client.call(self.asset, 'ownerOf', token_id)
            self.model.mint(owner, token_id)
            approved = self.client.call(self.asset, 'getApproved', token_id)
            if approved != ZERO_ADDRESS:
                self.model.approve(owner, approved, token_id)
        for owner in self.accounts:
            for operator in self.accounts:
                if owner != operator and self.client.call(self.asset, 'isApprovedForAll', owner, operator):
                    self.model.set_approval_for_all(owner, operator, True)
        # tokens outside `token_ids` still count in the balances read from the token
        for owner in self.accounts:
            self.balance_offsets[owner] = self.client.call(self.asset, 'balanceOf', owner) - self.model.balance_of(owner)

    def events_of(self, receipt) -> List[ExpectedEvent]:
        records = []
        for event_abi in WATCHED_EVENTS:
            records.extend(self.client.get_events_from_receipt(self.asset, event_abi, receipt))
        records.sort(key=lambda r: r.log_index)
        return [ExpectedEvent.of(r) for r in records]

    def apply(self, description: str, model_transition, method: str, *args, sender: Address) -> bool:
        """
        Run `method` on the token and `model_transition` on a copy of the model.

        :return: whether the operation succeeded (both sides agree by construction, or this raises)
        """
        self.history.append(description)
        predicted = self.model.copy()
        try:
            expected_events = model_transition(predicted)
        except ExecutionFault:
            expected_events = None
        try:
            receipt = self.client.tx(self.asset, method, *args, sender=sender, gas=self.gas)
        except ExecutionFault as e:
            assert expected_events is None, \
                f'{description}: rejected by the token ({e}) but accepted by the model. History: {self.history}'
            return False
        assert expected_events is not None, \
            f'{description}: accepted by the token but rejected by the model. History: {self.history}'
        actual_events = self.events_of(receipt)
        assert actual_events == expected_events, \
            f'{description}: emitted {actual_events}, expected {expected_events}. History: {self.history}'
        self.model = predicted
        self.model.check_invariants()
        return True

    def transfer_from(self, operator: Address, from_address: Address, to_address: Address, token_id: int) -> bool:
        return self.apply(f'transferFrom by {operator}: {from_address} -> {to_address} #{token_id}',
                          lambda m: m.transfer_from(operator, from_address, to_address, token_id),
                          'transferFrom', from_address, to_address, token_id, sender=operator)

    def safe_transfer_from(self, operator: Address, from_address: Address, to_address: Address,
                           token_id: int) -> bool:
        """Only between accounts: receiving contracts are covered by the battery itself."""
        return self.apply(f'safeTransferFrom by {operator}: {from_address} -> {to_address} #{token_id}',
                          lambda m: m.transfer_from(operator, from_address, to_address, token_id),
                          'safeTransferFrom', from_address, to_address, token_id, sender=operator)

    def approve(self, operator: Address, spender: Address, token_id: int) -> bool:
        return self.apply(f'approve by {operator}: {spender} for #{token_id}',
                          lambda m: m.approve(operator, spender, token_id),
                          'approve', spender, token_id, sender=operator)

    def set_approval_for_all(self, owner: Address, operator: Address, approved: bool) -> bool:
        return self.apply(f'setApprovalForAll by {owner}: {operator} = {approved}',
                          lambda m: m.set_approval_for_all(owner, operator, approved),
                          'setApprovalForAll', operator, approved, sender=owner)

    def check_reads(self):
        """Every read of the token must match the model."""
        for token_id in self.token_ids:
            assert self.client.call(self.asset, 'ownerOf', token_id) == self.model.owner_of(token_id), \
                f'owner of #{token_id} diverged. History: {self.history}'
            assert self.client.call(self.asset, 'getApproved', token_id) == self.model.get_approved(token_id), \
                f'approval of #{token_id} diverged. History: {self.history}'
        for owner in self.accounts:
            assert self.client.call(self.asset, 'balanceOf', owner) == \
                self.model.balance_of(owner) + self.balance_offsets[owner], \
                f'balance of {owner} diverged. History: {self.history}'
            for operator in self.accounts:
                if owner == operator:
                    continue
                assert self.client.call(self.asset, 'isApprovedForAll', owner, operator) == \
                    self.model.is_approved_for_all(owner, operator), \
                    f'operator flag {owner} -> {operator} diverged. History: {self.history}'

    def random_step(self, rng: random.Random):
        """
        One random operation. Actors are drawn from all accounts, so most steps that are not
        by the owner exercise the rejection paths. Approving the owner itself and making an
        account its own operator are left out: the standard does not settle them.
        """
        token_id = rng.choice(self.token_ids)
        owner = self.model.owner_of(token_id)
        actor = rng.choice(self.accounts)
        others = [a for a in self.accounts if a != owner]
        kind = rng.choice(['transferFrom', 'safeTransferFrom', 'approve', 'revoke', 'setApprovalForAll'])
        if kind in ('transferFrom', 'safeTransferFrom'):
            # occasionally claim the wrong current owner
            from_address = owner if rng.random() < 0.8 else rng.choice(others)
            to_address = rng.choice([a for a in self.accounts if a != from_address])
            if kind == 'transferFrom':
                return self.transfer_from(actor, from_address, to_address, token_id)
            return self.safe_transfer_from(actor, from_address, to_address, token_id)
        if kind == 'approve':
            return self.approve(actor, rng.choice(others), token_id)
        if kind == 'revoke':
            return self.approve(actor, ZERO_ADDRESS, token_id)
        operator = rng.choice([a for a in self.accounts if a != actor])
        return self.set_approval_for_all(actor, operator, rng.random() < 0.6)

    def random_walk(self, steps: int, seed: Any = None) -> int:
        """
        :return: how many of the steps succeeded
        """
        rng = random.Random(seed)
        succeeded = 0
        for _ in range(steps):
            if self.random_step(rng):
                succeeded += 1
            self.check_reads()
        return succeeded
