from typing import Any, Dict, Iterable, List, NamedTuple, Tuple

from erc721_conformance.abi import ApprovalEvent, ApprovalForAllEvent, TransferEvent, decode_log, event_topic
from erc721_conformance.utils import Address, ZERO_ADDRESS, to_int

__all__ = ['TransferEvent', 'ApprovalEvent', 'ApprovalForAllEvent', 'EventRecord', 'filter_logs', 'minted_token_id']


class EventRecord(NamedTuple):
    event: str
    return_values: Tuple[Any, ...]
    block_number: int
    transaction_hash: str
    log_index: int


def filter_logs(contract_address: str, event_abi: Dict[str, Any], logs: Iterable[Dict[str, Any]]) -> List[EventRecord]:
    """
    Decode the logs emitted by `contract_address` for `event_abi`, in the order they were emitted.

    :param logs: receipt['logs'] or the result of eth_getLogs
    """
    address = Address(contract_address)
    topic = event_topic(event_abi)
    records = []
    for log in logs:
        if Address(log['address']) != address:
            continue
        if not log['topics'] or log['topics'][0].lower() != topic:
            continue
        records.append(EventRecord(
            event=event_abi['name'],
            return_values=decode_log(event_abi, log['topics'], log['data']),
            block_number=to_int(log['blockNumber']),
            transaction_hash=log['transactionHash'],
            log_index=to_int(log['logIndex']),
        ))
    records.sort(key=lambda r: (r.block_number, r.log_index))
    return records


def minted_token_id(client, contract_address: str, receipt: Dict[str, Any]) -> int:
    """
    The id of the token a mint transaction created, read from its Transfer(zero, to, id) event.
    Mint functions of most tokens do not return the id to a transaction sender.
    """
    minted = [r for r in client.get_events_from_receipt(contract_address, TransferEvent, receipt)
              if r.return_values[0] == ZERO_ADDRESS]
    if len(minted) != 1:
        raise ValueError(f'Expected one Transfer from the zero address in the receipt. Got {minted}')
    return minted[0].return_values[2]
