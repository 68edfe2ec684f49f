import os

# artifact names under erc721_conformance.config.artifacts_dir
token_artifact = os.environ.get('ERC721_TOKEN_ARTIFACT', 'ReferenceERC721')
token_deploy_args = []

# set ERC721_RPC_URL to run the battery against a node, e.g. a local anvil or hardhat node
rpc_enabled = 'ERC721_RPC_URL' in os.environ
