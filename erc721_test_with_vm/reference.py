'''
Contracts executed by the TestEngine.

ReferenceERC721 is a complete ERC-721 token with the metadata extension. Its ledger is an
ERC721Model, so it follows the transition rules the conformance battery expects.
The two receiver contracts are the counterparts of contracts/*.sol used against a live node.
'''
from typing import Any

from erc721_conformance.abi import (ApprovalEvent, ApprovalForAllEvent, DEFAULT_TOKEN_ABI, ERC165_INTERFACE_ID,
                                    ERC721_INTERFACE_ID, ERC721_METADATA_INTERFACE_ID, ERC721_RECEIVED,
                                    ERC721_TOKEN_RECEIVER_ABI, TransferEvent, constructor_abi, function_abi,
                                    inputs_abi)
from erc721_conformance.model import ERC721Model
from erc721_conformance.utils import Address
from erc721_test_with_vm.test_engine import EngineContract, abort, public


# -------------------------------------------
# TOKEN SETTINGS
# -------------------------------------------

LEDGER_KEY = 'LEDGER'
MINTER_KEY = 'MINTER'
NEXT_TOKEN_ID_KEY = 'NEXT_TOKEN_ID'
TOKEN_NAME_KEY = 'TOKEN_NAME'
TOKEN_SYMBOL_KEY = 'TOKEN_SYMBOL'
BASE_URI_KEY = 'BASE_URI'

SUPPORTED_INTERFACES = (ERC165_INTERFACE_ID, ERC721_INTERFACE_ID, ERC721_METADATA_INTERFACE_ID)

EVENTS = {
    'Transfer': TransferEvent,
    'Approval': ApprovalEvent,
    'ApprovalForAll': ApprovalForAllEvent,
}


REFERENCE_ERC721_ABI = DEFAULT_TOKEN_ABI + [
    constructor_abi(inputs_abi(('name', 'string'), ('symbol', 'string'), ('baseURI', 'string'))),
    function_abi('mint', inputs_abi(('to', 'address')), inputs_abi(('tokenId', 'uint256'))),
    function_abi('burn', inputs_abi(('tokenId', 'uint256'))),
]

TOKEN_RECEIVER_ABI = ERC721_TOKEN_RECEIVER_ABI + [
    constructor_abi(inputs_abi(('token', 'address'), ('allowTokensReceived', 'bool'),
                               ('returnCorrectBytes', 'bool'))),
    function_abi('receivedCount', [], inputs_abi(('', 'uint256')), 'view'),
    function_abi('lastReceived', [], inputs_abi(('', 'address'), ('', 'address'), ('', 'uint256'), ('', 'bytes')),
                 'view'),
]

NON_RECEIVER_ABI = [
    constructor_abi(inputs_abi(('token_', 'address'))),
    function_abi('token', [], inputs_abi(('', 'address')), 'view'),
]


class ReferenceERC721(EngineContract):
    abi = REFERENCE_ERC721_ABI

    def _deploy(self, name: str = 'Reference Token', symbol: str = 'REF',
                base_uri: str = 'https://tokens.example/ref/'):
        """
        The deployer becomes the only account allowed to mint.
        """
        self.storage[LEDGER_KEY] = ERC721Model()
        self.storage[MINTER_KEY] = self.calling_script_hash
        self.storage[NEXT_TOKEN_ID_KEY] = 1
        self.storage[TOKEN_NAME_KEY] = name
        self.storage[TOKEN_SYMBOL_KEY] = symbol
        self.storage[BASE_URI_KEY] = base_uri

    @property
    def ledger(self) -> ERC721Model:
        return self.storage[LEDGER_KEY]

    def on_events(self, events):
        for event in events:
            self.notify(EVENTS[event.event], *event.return_values)

    # -------------------------------------------
    # ERC-165
    # -------------------------------------------

    @public
    def supportsInterface(self, interface_id: bytes) -> bool:
        """
        :param interface_id: 4 bytes. 0xffffffff is never supported.
        """
        return bytes(interface_id) in SUPPORTED_INTERFACES

    # -------------------------------------------
    # ERC-721 metadata
    # -------------------------------------------

    @public
    def name(self) -> str:
        return self.storage[TOKEN_NAME_KEY]

    @public
    def symbol(self) -> str:
        return self.storage[TOKEN_SYMBOL_KEY]

    @public
    def tokenURI(self, token_id: int) -> str:
        """
        Throws if `token_id` does not exist.
        """
        self.ledger.owner_of(token_id)
        return f'{self.storage[BASE_URI_KEY]}{token_id}'

    # -------------------------------------------
    # ERC-721
    # -------------------------------------------

    @public
    def balanceOf(self, owner: Address) -> int:
        """
        :param owner: must not be the zero address
        :return: the number of tokens owned by `owner`
        """
        return self.ledger.balance_of(owner)

    @public
    def ownerOf(self, token_id: int) -> Address:
        return self.ledger.owner_of(token_id)

    @public
    def getApproved(self, token_id: int) -> Address:
        return self.ledger.get_approved(token_id)

    @public
    def isApprovedForAll(self, owner: Address, operator: Address) -> bool:
        return self.ledger.is_approved_for_all(owner, operator)

    @public
    def transferFrom(self, from_address: Address, to_address: Address, token_id: int):
        """
        Transfers the ownership of a token without checking whether the receiver accepts it.

        The caller must be the owner, the approved spender of `token_id`, or an operator of the owner.
        The approval of the token is cleared without an Approval event.

        :param from_address: current owner of the token
        :param to_address: new owner. Must not be the zero address
        :param token_id: the token to transfer
        """
        self.on_events(self.ledger.transfer_from(self.calling_script_hash, from_address, to_address, token_id))

    @public
    def safeTransferFrom(self, from_address: Address, to_address: Address, token_id: int, data: bytes = b''):
        """
        Same as transferFrom, then if `to_address` is a contract its onERC721Received must return
        the ERC721_RECEIVED magic value. Otherwise the whole transfer is aborted.

        :param data: passed unchanged to onERC721Received
        """
        operator = self.calling_script_hash
        self.on_events(self.ledger.transfer_from(operator, from_address, to_address, token_id))
        self.post_transfer(operator, from_address, to_address, token_id, data)

    def post_transfer(self, operator: Address, from_address: Address, to_address: Address, token_id: int,
                      data: bytes):
        if self.get_contract(to_address) is not None:
            result = self.call_contract(to_address, 'onERC721Received', [operator, from_address, token_id, data])
            if result != ERC721_RECEIVED:
                abort(f'{to_address} did not accept token {token_id}')

    @public
    def approve(self, approved: Address, token_id: int):
        """
        :param approved: the new approved spender. The zero address removes the approval
        """
        self.on_events(self.ledger.approve(self.calling_script_hash, approved, token_id))

    @public
    def setApprovalForAll(self, operator: Address, approved: bool):
        self.on_events(self.ledger.set_approval_for_all(self.calling_script_hash, operator, approved))

    # -------------------------------------------
    # Not in the ERC-721 standard
    # -------------------------------------------

    @public
    def mint(self, to_address: Address) -> int:
        """
        Mints the next token id to `to_address`. Only the deployer of the contract can mint.

        :return: the id of the new token
        """
        if self.calling_script_hash != self.storage[MINTER_KEY]:
            abort('only the minter can mint')
        token_id = self.storage[NEXT_TOKEN_ID_KEY]
        self.on_events(self.ledger.mint(to_address, token_id))
        self.storage[NEXT_TOKEN_ID_KEY] = token_id + 1
        return token_id

    @public
    def burn(self, token_id: int):
        self.on_events(self.ledger.burn(self.calling_script_hash, token_id))


class TestERC721TokenReceiver(EngineContract):
    __test__ = False
    abi = TOKEN_RECEIVER_ABI

    def _deploy(self, token: Address, allow_tokens_received: bool, return_correct_bytes: bool):
        self.storage['token'] = Address(token)
        self.storage['allow'] = allow_tokens_received
        self.storage['correct'] = return_correct_bytes
        self.storage['received'] = []

    @public
    def onERC721Received(self, operator: Address, from_address: Address, token_id: int, data: bytes) -> bytes:
        if self.calling_script_hash != self.storage['token']:
            abort('only accepts tokens from the token it was deployed for')
        if not self.storage['allow']:
            abort('receiving tokens is disabled')
        self.storage['received'].append((Address(operator), Address(from_address), token_id, bytes(data)))
        if self.storage['correct']:
            return ERC721_RECEIVED
        return b'\x00\x00\x00\x00'

    @public
    def receivedCount(self) -> int:
        return len(self.storage['received'])

    @public
    def lastReceived(self) -> Any:
        if not self.storage['received']:
            abort('nothing received')
        return self.storage['received'][-1]


class TestERC721NonReceiver(EngineContract):
    """A contract that can own tokens but has no onERC721Received."""
    __test__ = False
    abi = NON_RECEIVER_ABI

    def _deploy(self, token: Address):
        self.storage['token'] = Address(token)

    @public
    def token(self) -> Address:
        return self.storage['token']


CONTRACT_CLASSES = {
    'ReferenceERC721': ReferenceERC721,
    'TestERC721TokenReceiver': TestERC721TokenReceiver,
    'TestERC721NonReceiver': TestERC721NonReceiver,
}
