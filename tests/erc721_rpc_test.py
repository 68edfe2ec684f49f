"""
The battery against a token deployed on a node, e.g.

    anvil &
    forge build --contracts contracts --out build/contracts  # build/contracts/<name>.sol/<name>.json
    ERC721_RPC_URL=http://127.0.0.1:8545 ERC721_ARTIFACTS_DIR=build/contracts pytest tests/erc721_rpc_test.py

The node must hold at least four unlocked accounts.
"""
import pytest

from erc721_conformance import Contracts, make_erc721_tests
from erc721_conformance.events import minted_token_id
from erc721_test_with_rpc import TestClient
from tests.config import rpc_enabled, token_artifact, token_deploy_args

client = TestClient() if rpc_enabled else None


def reset_contracts() -> Contracts:
    accounts = client.get_accounts()
    asset = client.deploy_contract(accounts[0], token_artifact, *token_deploy_args)
    return Contracts(client=client, asset=asset, minter=asset, accounts=accounts)


def mint_erc721(contracts: Contracts, to_address) -> int:
    receipt = contracts.client.tx(contracts.minter, 'mint', to_address, sender=contracts.accounts[0])
    return minted_token_id(contracts.client, contracts.asset, receipt)


def burn_erc721(contracts: Contracts, owner, token_id: int):
    return contracts.client.tx(contracts.asset, 'burn', token_id, sender=owner)


TestDeployedERC721 = pytest.mark.skipif(not rpc_enabled, reason='ERC721_RPC_URL is not set')(
    make_erc721_tests('Deployed', reset_contracts, mint_erc721, burn_erc721))
