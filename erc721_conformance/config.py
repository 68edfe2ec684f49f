import os

target_url = os.environ.get('ERC721_RPC_URL', 'http://127.0.0.1:8545')
gas = int(os.environ.get('ERC721_GAS', 4_000_000))
request_timeout = float(os.environ.get('ERC721_REQUEST_TIMEOUT', 20))
receipt_timeout = float(os.environ.get('ERC721_RECEIPT_TIMEOUT', 60))
receipt_poll_interval = float(os.environ.get('ERC721_RECEIPT_POLL_INTERVAL', 0.2))
artifacts_dir = os.environ.get('ERC721_ARTIFACTS_DIR', os.path.join('build', 'contracts'))

receiver_contract = 'TestERC721TokenReceiver'
non_receiver_contract = 'TestERC721NonReceiver'

random_walk_seed = int(os.environ.get('ERC721_RANDOM_WALK_SEED', 721))
random_walk_steps = int(os.environ.get('ERC721_RANDOM_WALK_STEPS', 40))
