from erc721_test_with_vm.test_engine import TestEngine, VMState
