from erc721_conformance.suite import Contracts
from erc721_conformance.utils import Address
from erc721_test_with_vm.reference import CONTRACT_CLASSES
from erc721_test_with_vm.test_engine import TestEngine


def reset_contracts(token_contract: str = 'ReferenceERC721', *deploy_args) -> Contracts:
    """
    A new engine with `token_contract` deployed by the first account, which is also the minter.
    """
    engine = TestEngine(CONTRACT_CLASSES)
    creator = engine.get_accounts()[0]
    asset = engine.deploy_contract(creator, token_contract, *deploy_args)
    return Contracts(client=engine, asset=asset, minter=asset, accounts=engine.get_accounts())


def mint_erc721(contracts: Contracts, to_address: Address) -> int:
    creator = contracts.accounts[0]
    contracts.client.tx(contracts.minter, 'mint', to_address, sender=creator)
    return contracts.client.previous_result


def burn_erc721(contracts: Contracts, owner: Address, token_id: int):
    return contracts.client.tx(contracts.asset, 'burn', token_id, sender=owner)
