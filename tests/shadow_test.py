import pytest

from erc721_conformance.model import TokenState
from erc721_conformance.shadow import ShadowLedger
from erc721_conformance.suite import Contracts
from erc721_conformance.utils import Address, ZERO_ADDRESS
from erc721_test_with_vm import TestEngine
from erc721_test_with_vm.reference import CONTRACT_CLASSES, ReferenceERC721
from erc721_test_with_vm.test_engine import public


class StickyApprovalERC721(ReferenceERC721):
    """Forgets to clear the approval of a transferred token."""

    @public
    def transferFrom(self, from_address: Address, to_address: Address, token_id: int):
        approved = self.ledger.get_approved(token_id)
        super().transferFrom(from_address, to_address, token_id)
        self.ledger.tokens[token_id] = TokenState(self.ledger.owner_of(token_id), approved)


class QuietOperatorERC721(ReferenceERC721):
    """Skips ApprovalForAll when the flag does not change."""

    @public
    def setApprovalForAll(self, operator: Address, approved: bool):
        if self.ledger.is_approved_for_all(self.calling_script_hash, operator) == approved:
            return
        super().setApprovalForAll(operator, approved)


def deploy(token_class=ReferenceERC721, token_count=3):
    engine = TestEngine(CONTRACT_CLASSES)
    engine.register_contract_class('TokenUnderTest', token_class)
    creator = engine.get_accounts()[0]
    asset = engine.deploy_contract(creator, 'TokenUnderTest')
    contracts = Contracts(client=engine, asset=asset, minter=asset, accounts=engine.get_accounts())
    token_ids = []
    for _ in range(token_count):
        engine.tx(asset, 'mint', creator, sender=creator)
        token_ids.append(engine.previous_result)
    return contracts, token_ids


@pytest.mark.parametrize('seed', [1, 2, 721])
def test_reference_token_survives_random_walks(seed):
    contracts, token_ids = deploy()
    shadow = ShadowLedger(contracts, contracts.accounts[:4], token_ids)
    assert shadow.random_walk(60, seed=seed) > 0
    shadow.model.check_invariants()


def test_seeding_reads_existing_approvals_and_foreign_tokens():
    contracts, token_ids = deploy()
    engine = contracts.client
    creator, user1, user2 = contracts.accounts[:3]
    engine.tx(contracts.asset, 'approve', user1, token_ids[0], sender=creator)
    engine.tx(contracts.asset, 'setApprovalForAll', user2, True, sender=creator)

    shadow = ShadowLedger(contracts, contracts.accounts[:4], token_ids[:2])
    assert shadow.model.get_approved(token_ids[0]) == user1
    assert shadow.model.is_approved_for_all(creator, user2)
    # the third token is not walked but still counts in the balance of creator
    assert shadow.balance_offsets[creator] == 1
    shadow.check_reads()


def test_rejections_must_match():
    contracts, token_ids = deploy()
    creator, user1 = contracts.accounts[:2]
    shadow = ShadowLedger(contracts, contracts.accounts[:4], token_ids)
    assert shadow.transfer_from(user1, creator, user1, token_ids[0]) is False
    assert shadow.approve(creator, user1, token_ids[0]) is True
    assert shadow.transfer_from(user1, creator, user1, token_ids[0]) is True
    assert shadow.model.get_approved(token_ids[0]) == ZERO_ADDRESS
    shadow.check_reads()


def test_a_sticky_approval_is_caught():
    contracts, token_ids = deploy(StickyApprovalERC721)
    creator, user1, user2 = contracts.accounts[:3]
    shadow = ShadowLedger(contracts, contracts.accounts[:4], token_ids)
    shadow.approve(creator, user2, token_ids[0])
    shadow.transfer_from(creator, creator, user1, token_ids[0])
    with pytest.raises(AssertionError, match='accepted by the token but rejected by the model'):
        shadow.transfer_from(user2, user1, user2, token_ids[0])


def test_a_sticky_approval_is_caught_by_the_reads():
    contracts, token_ids = deploy(StickyApprovalERC721)
    creator, user1, user2 = contracts.accounts[:3]
    shadow = ShadowLedger(contracts, contracts.accounts[:4], token_ids)
    shadow.approve(creator, user2, token_ids[0])
    shadow.transfer_from(creator, creator, user1, token_ids[0])
    with pytest.raises(AssertionError, match='approval of'):
        shadow.check_reads()


def test_a_missing_approval_for_all_event_is_caught():
    contracts, token_ids = deploy(QuietOperatorERC721)
    creator, user1 = contracts.accounts[:2]
    shadow = ShadowLedger(contracts, contracts.accounts[:4], token_ids)
    assert shadow.set_approval_for_all(creator, user1, True)
    with pytest.raises(AssertionError, match='emitted'):
        shadow.set_approval_for_all(creator, user1, True)
