from erc721_conformance.exceptions import ExecutionFault, RPCError
from erc721_conformance.model import ERC721Model
from erc721_conformance.shadow import ShadowLedger
from erc721_conformance.suite import Contracts, ERC721Suite, make_erc721_tests
from erc721_conformance.utils import Address, EMPTY_BYTES, ZERO_ADDRESS, expect_throw
