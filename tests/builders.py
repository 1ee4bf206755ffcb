"""
Test Builders
=============

LedgerCloseMeta builders, hand-made frames, a simulated producer script
and in-memory sinks shared by the test modules.
"""

import asyncio
import struct
from typing import List, Optional

from stellar_sdk import xdr as x


# =============================================================================
# LedgerCloseMeta builders
# =============================================================================

def _changes(*changes) -> x.LedgerEntryChanges:
    return x.LedgerEntryChanges(list(changes))


def build_header_entry(ledger_seq: int) -> x.LedgerHeaderHistoryEntry:
    header = x.LedgerHeader(
        ledger_version=x.Uint32(21),
        previous_ledger_hash=x.Hash(bytes([ledger_seq % 256]) * 32),
        scp_value=x.StellarValue(
            tx_set_hash=x.Hash(b"\x02" * 32),
            close_time=x.TimePoint(x.Uint64(1_700_000_000 + ledger_seq * 5)),
            upgrades=[x.UpgradeType(b"\x00\x00\x00\x01\x00\x00\x00\x15")],
            ext=x.StellarValueExt(v=x.StellarValueType.STELLAR_VALUE_BASIC),
        ),
        tx_set_result_hash=x.Hash(b"\x03" * 32),
        bucket_list_hash=x.Hash(b"\x04" * 32),
        ledger_seq=x.Uint32(ledger_seq),
        total_coins=x.Int64(1_000_000_000_000_000_000),
        fee_pool=x.Int64(123_456_789),
        inflation_seq=x.Uint32(0),
        id_pool=x.Uint64(2 ** 60 + 1),
        base_fee=x.Uint32(100),
        base_reserve=x.Uint32(5_000_000),
        max_tx_set_size=x.Uint32(1000),
        skip_list=[x.Hash(bytes([i]) * 32) for i in range(4)],
        ext=x.LedgerHeaderExt(v=0),
    )
    return x.LedgerHeaderHistoryEntry(
        hash=x.Hash(b"\xab" * 32),
        header=header,
        ext=x.LedgerHeaderHistoryEntryExt(v=0),
    )


def build_entry_change(ledger_seq: int, sponsor: Optional[bytes] = None):
    sponsoring_id = None
    if sponsor is not None:
        sponsoring_id = x.AccountID(x.PublicKey(
            type=x.PublicKeyType.PUBLIC_KEY_TYPE_ED25519,
            ed25519=x.Uint256(sponsor),
        ))
    entry = x.LedgerEntry(
        last_modified_ledger_seq=x.Uint32(ledger_seq),
        data=x.LedgerEntryData(
            type=x.LedgerEntryType.TTL,
            ttl=x.TTLEntry(
                key_hash=x.Hash(b"\x09" * 32),
                live_until_ledger_seq=x.Uint32(ledger_seq + 1000),
            ),
        ),
        ext=x.LedgerEntryExt(
            v=1,
            v1=x.LedgerEntryExtensionV1(
                sponsoring_id=x.SponsorshipDescriptor(sponsoring_id),
                ext=x.LedgerEntryExtensionV1Ext(v=0),
            ),
        ),
    )
    return x.LedgerEntryChange(
        type=x.LedgerEntryChangeType.LEDGER_ENTRY_UPDATED,
        updated=entry,
    )


def build_result_pair(code: str = "txSUCCESS") -> x.TransactionResultPair:
    result_code = x.TransactionResultCode[code]
    if code in ("txSUCCESS", "txFAILED"):
        result = x.TransactionResultResult(
            code=result_code,
            results=[x.OperationResult(code=x.OperationResultCode.opBAD_AUTH)],
        )
    else:
        result = x.TransactionResultResult(code=result_code)
    return x.TransactionResultPair(
        transaction_hash=x.Hash(b"\x11" * 32),
        result=x.TransactionResult(
            fee_charged=x.Int64(100),
            result=result,
            ext=x.TransactionResultExt(v=0),
        ),
    )


def build_tx_meta(ledger_seq: int) -> x.TransactionMeta:
    return x.TransactionMeta(
        v=3,
        v3=x.TransactionMetaV3(
            ext=x.ExtensionPoint(v=0),
            tx_changes_before=_changes(build_entry_change(ledger_seq)),
            operations=[x.OperationMeta(
                changes=_changes(build_entry_change(ledger_seq, sponsor=b"\x07" * 32)),
            )],
            tx_changes_after=_changes(),
            soroban_meta=None,
        ),
    )


def build_generalized_tx_set() -> x.GeneralizedTransactionSet:
    return x.GeneralizedTransactionSet(
        v=1,
        v1_tx_set=x.TransactionSetV1(
            previous_ledger_hash=x.Hash(b"\x05" * 32),
            phases=[x.TransactionPhase(v=0, v0_components=[])],
        ),
    )


def build_scp_info(ledger_seq: int) -> list:
    return [x.SCPHistoryEntry(
        v=0,
        v0=x.SCPHistoryEntryV0(
            quorum_sets=[],
            ledger_messages=x.LedgerSCPMessages(
                ledger_seq=x.Uint32(ledger_seq),
                messages=[],
            ),
        ),
    )]


def build_meta(version: int = 1, ledger_seq: int = 100) -> x.LedgerCloseMeta:
    """Build a LedgerCloseMeta union of the given version."""
    if version == 0:
        return x.LedgerCloseMeta(v=0, v0=x.LedgerCloseMetaV0(
            ledger_header=build_header_entry(ledger_seq),
            tx_set=x.TransactionSet(
                previous_ledger_hash=x.Hash(b"\x05" * 32),
                txs=[],
            ),
            tx_processing=[x.TransactionResultMeta(
                result=build_result_pair("txFAILED"),
                fee_processing=_changes(build_entry_change(ledger_seq)),
                tx_apply_processing=x.TransactionMeta(v=0, operations=[]),
            )],
            upgrades_processing=[x.UpgradeEntryMeta(
                upgrade=x.LedgerUpgrade(
                    type=x.LedgerUpgradeType.LEDGER_UPGRADE_BASE_FEE,
                    new_base_fee=x.Uint32(100),
                ),
                changes=_changes(),
            )],
            scp_info=build_scp_info(ledger_seq),
        ))

    if version == 1:
        return x.LedgerCloseMeta(v=1, v1=x.LedgerCloseMetaV1(
            ext=x.LedgerCloseMetaExt(v=0),
            ledger_header=build_header_entry(ledger_seq),
            tx_set=build_generalized_tx_set(),
            tx_processing=[x.TransactionResultMeta(
                result=build_result_pair("txSUCCESS"),
                fee_processing=_changes(build_entry_change(ledger_seq)),
                tx_apply_processing=build_tx_meta(ledger_seq),
            )],
            upgrades_processing=[],
            scp_info=build_scp_info(ledger_seq),
            total_byte_size_of_live_soroban_state=x.Uint64(123_456_789),
            evicted_keys=[x.LedgerKey(
                type=x.LedgerEntryType.TTL,
                ttl=x.LedgerKeyTtl(key_hash=x.Hash(b"\x0a" * 32)),
            )],
            unused=[],
        ))

    if version == 2:
        return x.LedgerCloseMeta(v=2, v2=x.LedgerCloseMetaV2(
            ext=x.LedgerCloseMetaExt(v=0),
            ledger_header=build_header_entry(ledger_seq),
            tx_set=build_generalized_tx_set(),
            tx_processing=[x.TransactionResultMetaV1(
                ext=x.ExtensionPoint(v=0),
                result=build_result_pair("txBAD_SEQ"),
                fee_processing=_changes(),
                tx_apply_processing=build_tx_meta(ledger_seq),
                post_tx_apply_fee_processing=_changes(build_entry_change(ledger_seq)),
            )],
            upgrades_processing=[],
            scp_info=[],
            total_byte_size_of_live_soroban_state=x.Uint64(2 ** 40),
            evicted_keys=[x.LedgerKey(
                type=x.LedgerEntryType.CONTRACT_CODE,
                contract_code=x.LedgerKeyContractCode(hash=x.Hash(b"\x0b" * 32)),
            )],
        ))

    raise ValueError(f"no builder for version {version}")


def raw_frame(payload: bytes, last_fragment: bool = True) -> bytes:
    """Wrap arbitrary payload bytes in a record mark."""
    mark = len(payload) | (0x80000000 if last_fragment else 0)
    return struct.pack(">I", mark) + payload


def unknown_version_frame(version: int = 7) -> bytes:
    """A well-marked frame whose LedgerCloseMeta version has no arm."""
    return raw_frame(struct.pack(">i", version) + b"\x00" * 12)


# =============================================================================
# Simulated producer
# =============================================================================

PRODUCER_SCRIPT = """
import sys, time
data_path, exit_code, sleep_sec = sys.argv[1], int(sys.argv[2]), float(sys.argv[3])
for line in sys.argv[4:]:
    sys.stderr.write(line + "\\n")
sys.stderr.flush()
with open(data_path, "rb") as f:
    data = f.read()
for i in range(0, len(data), 97):
    sys.stdout.buffer.write(data[i:i + 97])
    sys.stdout.buffer.flush()
time.sleep(sleep_sec)
sys.exit(exit_code)
"""


# =============================================================================
# Sinks
# =============================================================================

class CollectingSink:
    """Keeps every line in memory."""

    def __init__(self, name: str = "collect") -> None:
        self.name = name
        self.lines: List[str] = []
        self.closed = False
        self.close_error: Optional[BaseException] = None

    async def put(self, line) -> None:
        self.lines.append(line)

    async def close(self, error: Optional[BaseException] = None) -> None:
        self.closed = True
        self.close_error = error


class GatedSink(CollectingSink):
    """Blocks every put until the gate is opened."""

    def __init__(self, name: str = "gated") -> None:
        super().__init__(name)
        self.gate = asyncio.Event()
        self.waiting = 0

    async def put(self, line) -> None:
        self.waiting += 1
        await self.gate.wait()
        await super().put(line)
