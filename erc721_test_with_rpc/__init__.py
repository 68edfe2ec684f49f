from erc721_test_with_rpc.test_client import TestClient
