"""Circle CCTP V2 constants.

Cross-Chain Transfer Protocol V2 deployment addresses and protocol parameters.

CCTP enables burn-and-mint USDC transfers across chains:

1. Source chain: approve USDC and call ``depositForBurn`` on the token messenger to burn USDC
2. Circle's Iris attestation service signs the burn event
3. Destination chain: call ``receiveMessage`` on the message transmitter to mint USDC

Per-chain addresses (USDC, messenger, transmitter, domain) live in :py:mod:`cctp_bridge.chain`.

- `CCTP V2 documentation <https://developers.circle.com/cctp>`_
- `EVM contract addresses <https://developers.circle.com/cctp/evm-smart-contracts>`_
- `Solana programs <https://developers.circle.com/cctp/solana-programs>`_
"""

from decimal import Decimal

from eth_typing import HexAddress

#: CCTP V2 TokenMessengerV2 on EVM testnets.
#: Same address on all EVM testnets via CREATE2.
TOKEN_MESSENGER_V2_TESTNET: HexAddress = HexAddress("0x8FE6B999Dc680CcFDD5Bf7EB0974218be2542DAA")

#: CCTP V2 MessageTransmitterV2 on EVM testnets.
MESSAGE_TRANSMITTER_V2_TESTNET: HexAddress = HexAddress("0xE737e5cEBEEBa77EFE34D4aa090756590b1CE275")

#: CCTP V2 TokenMessengerMinterV2 Solana program.
#: Same program id on devnet and mainnet.
SOLANA_TOKEN_MESSENGER_MINTER_V2 = "CCTPV2vPZJS2u2BBsUoscuikbYjnpFmbFsvVuJdgUMQe"

#: CCTP V2 MessageTransmitterV2 Solana program.
SOLANA_MESSAGE_TRANSMITTER_V2 = "CCTPV2Sm4AdWt5296sk4P66VBZ7bEhcARwFaaS9YPbeC"

#: Circle Iris attestation API base URL (mainnet).
IRIS_API_BASE_URL = "https://iris-api.circle.com"

#: Circle Iris attestation API base URL (testnets).
IRIS_API_SANDBOX_URL = "https://iris-api-sandbox.circle.com"

#: Minimum finality threshold for standard (finalized) transfers.
FINALITY_THRESHOLD_STANDARD = 2000

#: Minimum finality threshold for fast (confirmed) transfers.
#: Uses lower block confirmation, may incur fees.
FINALITY_THRESHOLD_FAST = 1000

#: USDC uses 6 decimals on every chain CCTP supports
USDC_DECIMALS = 6

#: Arc uses USDC as its gas token, native balance is 18 decimals
NATIVE_EVM_DECIMALS = 18

#: 1 SOL = 10**9 lamports
SOLANA_NATIVE_DECIMALS = 9

#: Destination must hold at least this much native gas token before we try to mint
MIN_NATIVE_GAS_BALANCE = Decimal("0.01")

#: Seconds between Iris API polls
DEFAULT_ATTESTATION_POLL_INTERVAL = 5.0

#: Seconds for a single Iris API HTTP request
DEFAULT_ATTESTATION_REQUEST_TIMEOUT = 30.0

#: How many times ``receiveMessage`` is retried after a transient execution failure
DEFAULT_MINT_MAX_RETRIES = 3

#: Linear backoff step between mint retries, seconds.
#: Retry ``n`` waits ``n * DEFAULT_MINT_RETRY_BACKOFF``.
DEFAULT_MINT_RETRY_BACKOFF = 2.0

#: Gas estimate multiplier numerator for ``receiveMessage``, +20% safety margin
GAS_PADDING_PERCENT = 120

#: Seconds to wait for an EVM receipt
DEFAULT_RECEIPT_TIMEOUT = 180.0

#: Arc Testnet chain id, where carbon points are minted after a transfer
REWARDS_CHAIN_ID = 5042002

#: OffsetManager contract on Arc Testnet, ``buyOffsets(uint256)`` mints carbon points
CARBON_OFFSET_MANAGER: HexAddress = HexAddress("0x5d3E23605b0D5D1E9069AcE697Fa6ccEf8625F1E")

#: CarbonPoints ERC-20 on Arc Testnet
CARBON_POINTS_TOKEN: HexAddress = HexAddress("0x9Bd256d3E98d36463524e49553F382D637a4C689")
