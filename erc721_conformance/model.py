"""
Explicit state model of an ERC-721 ledger.

State is two maps: token id -> (owner, approved spender), and (owner, operator) -> flag. It changes
only through the transition methods below, each of which either raises ExecutionFault before
touching anything or applies the whole transition and returns the events the ledger must emit.
The reference token of the in-process engine stores its state in a model, and the random walk of
the conformance battery replays every operation against one to predict the contract under test.
"""
import copy
from collections import Counter
from typing import Dict, List, NamedTuple, Tuple

from erc721_conformance.exceptions import ExecutionFault
from erc721_conformance.utils import Address, ZERO_ADDRESS


class TokenState(NamedTuple):
    owner: Address
    approved: Address


class ExpectedEvent(NamedTuple):
    event: str
    return_values: Tuple

    @classmethod
    def of(cls, record) -> 'ExpectedEvent':
        """Drop the block coordinates of an EventRecord so it compares with the model's events."""
        return cls(record.event, tuple(record.return_values))


def Transfer(from_address: Address, to_address: Address, token_id: int) -> ExpectedEvent:
    return ExpectedEvent('Transfer', (from_address, to_address, token_id))


def Approval(owner: Address, approved: Address, token_id: int) -> ExpectedEvent:
    return ExpectedEvent('Approval', (owner, approved, token_id))


def ApprovalForAll(owner: Address, operator: Address, approved: bool) -> ExpectedEvent:
    return ExpectedEvent('ApprovalForAll', (owner, operator, approved))


def abort(message: str):
    raise ExecutionFault(message)


class ERC721Model:
    def __init__(self):
        self.tokens: Dict[int, TokenState] = {}
        self.balances: Dict[Address, int] = {}
        self.operators: Dict[Tuple[Address, Address], bool] = {}

    def copy(self) -> 'ERC721Model':
        return copy.deepcopy(self)

    # -------------------------------------------
    # Queries
    # -------------------------------------------

    def exists(self, token_id: int) -> bool:
        return token_id in self.tokens

    def owner_of(self, token_id: int) -> Address:
        if token_id not in self.tokens:
            abort(f'ownerOf: token {token_id} does not exist')
        return self.tokens[token_id].owner

    def balance_of(self, owner: Address) -> int:
        if owner == ZERO_ADDRESS:
            abort('balanceOf: the zero address owns nothing')
        return self.balances.get(Address(owner), 0)

    def get_approved(self, token_id: int) -> Address:
        if token_id not in self.tokens:
            abort(f'getApproved: token {token_id} does not exist')
        return self.tokens[token_id].approved

    def is_approved_for_all(self, owner: Address, operator: Address) -> bool:
        return self.operators.get((Address(owner), Address(operator)), False)

    def is_authorized(self, operator: Address, token_id: int) -> bool:
        """Owner, approved spender of the token, or approved operator of the owner."""
        owner, approved = self.tokens[token_id]
        return operator == owner or operator == approved or self.is_approved_for_all(owner, operator)

    # -------------------------------------------
    # Transitions
    # -------------------------------------------

    def mint(self, to_address: Address, token_id: int) -> List[ExpectedEvent]:
        to_address = Address(to_address)
        if to_address == ZERO_ADDRESS:
            abort('mint: cannot mint to the zero address')
        if token_id in self.tokens:
            abort(f'mint: token {token_id} already exists')
        self.tokens[token_id] = TokenState(to_address, ZERO_ADDRESS)
        self.balances[to_address] = self.balances.get(to_address, 0) + 1
        return [Transfer(ZERO_ADDRESS, to_address, token_id)]

    def burn(self, operator: Address, token_id: int) -> List[ExpectedEvent]:
        operator = Address(operator)
        owner = self.owner_of(token_id)
        if not self.is_authorized(operator, token_id):
            abort(f'burn: {operator} may not burn token {token_id}')
        del self.tokens[token_id]
        self._debit(owner)
        return [Transfer(owner, ZERO_ADDRESS, token_id)]

    def transfer_from(self, operator: Address, from_address: Address, to_address: Address,
                      token_id: int) -> List[ExpectedEvent]:
        """
        :return: exactly one Transfer. The approval of the token is cleared silently.
        """
        operator, from_address, to_address = Address(operator), Address(from_address), Address(to_address)
        owner = self.owner_of(token_id)
        if owner != from_address:
            abort(f'transferFrom: token {token_id} is not owned by {from_address}')
        if to_address == ZERO_ADDRESS:
            abort('transferFrom: cannot transfer to the zero address')
        if not self.is_authorized(operator, token_id):
            abort(f'transferFrom: {operator} may not transfer token {token_id}')
        self._debit(from_address)
        self.balances[to_address] = self.balances.get(to_address, 0) + 1
        self.tokens[token_id] = TokenState(to_address, ZERO_ADDRESS)
        return [Transfer(from_address, to_address, token_id)]

    def approve(self, operator: Address, spender: Address, token_id: int) -> List[ExpectedEvent]:
        operator, spender = Address(operator), Address(spender)
        owner = self.owner_of(token_id)
        if operator != owner and not self.is_approved_for_all(owner, operator):
            abort(f'approve: {operator} is neither the owner nor an operator of token {token_id}')
        self.tokens[token_id] = TokenState(owner, spender)
        return [Approval(owner, spender, token_id)]

    def set_approval_for_all(self, owner: Address, operator: Address, approved: bool) -> List[ExpectedEvent]:
        """Emits even when the flag already had this value."""
        owner, operator = Address(owner), Address(operator)
        self.operators[(owner, operator)] = bool(approved)
        return [ApprovalForAll(owner, operator, bool(approved))]

    def _debit(self, owner: Address):
        self.balances[owner] -= 1
        if self.balances[owner] == 0:
            del self.balances[owner]

    # -------------------------------------------
    # Invariants
    # -------------------------------------------

    def check_invariants(self):
        owned = Counter(state.owner for state in self.tokens.values())
        assert ZERO_ADDRESS not in owned, 'the zero address owns a token'
        assert dict(owned) == self.balances, f'balances {self.balances} do not match ownership {dict(owned)}'
        assert sum(self.balances.values()) == len(self.tokens)
