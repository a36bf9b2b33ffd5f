"""Constants and protocol defaults for StakeVue state resolution."""

# Ordered for fallback: the first endpoint that answers pins the whole request.
DEFAULT_RPC_URLS = (
    "https://rpc.testnet.casperlabs.io/rpc",
    "https://node.testnet.cspr.cloud/rpc",
    "https://casper-testnet.make.services/rpc",
)

# V22 pool-based contract (U512 fix).
CONTRACT_PACKAGE_HASH = "2d6a399bca8c71bb007de1cbcd57c7d6a54dc0283376a08fe6024a33c02b0ad3"
# Main purse of the V22 contract, used for the direct balance query.
CONTRACT_PURSE_UREF = "uref-3e8ff29a521e5902bcfc106c2e1fe94aa29fa8a6246ed1fe375d350f5d34f6e2-007"

RATE_PRECISION = 10**9  # 9 decimal fixed point; also motes per CSPR
MOTES_PER_CSPR = 10**9

# Unbonding on testnet: 7 eras of roughly 2 hours each.
UNBONDING_ERAS = 7
ERA_DURATION_MS = 2 * 60 * 60 * 1000

DEFAULT_RPC_TIMEOUT_S = 5.0
DEFAULT_EXPLORER_TIMEOUT_S = 5.0
DEFAULT_WITHDRAWAL_SCAN_WINDOW = 50
DEFAULT_MAX_WORKERS = 4
# Upper bound on per-user index reads; a larger stored count is truncated.
MAX_USER_REQUESTS = 1000

# Storage key-naming conventions seen across contract versions.
# Odra stores Var<T> under the field name, sometimes behind a module prefix.
POOL_PATHS: tuple[tuple[str, ...], ...] = (
    ("total_cspr_pool",),
    ("state", "total_cspr_pool"),
)
# The stCSPR supply lives in the CEP-18 submodule.
SUPPLY_PATHS: tuple[tuple[str, ...], ...] = (
    ("token", "total_supply"),
    ("stcspr_token", "total_supply"),
)

# Substrings used by the named-key heuristic. Order within a tuple is irrelevant.
POOL_NAME_HINTS = ("pool", "cspr")
SUPPLY_NAME_HINTS = ("supply", "stcspr")

# Contract dictionaries (Odra Mapping<K, V>).
DICT_USER_REQUEST_COUNT = "user_request_count"
DICT_USER_REQUESTS = "user_requests"
DICT_WITHDRAWAL_REQUESTS = "withdrawal_requests"
VAR_NEXT_REQUEST_ID = "next_request_id"
MAPPING_DELEGATED_TO_VALIDATOR = "delegated_to_validator"

# Approved validators, in the order the dashboard shows them.
APPROVED_VALIDATORS = (
    "0106ca7c39cd272dbf21a86eeb3b36b7c26e2e9b94af64292419f7862936bca2ca",
    "017d96b9a63abcb61c870a4f55187a0a7ac24096bdb5fc585c12a686a4d892009e",
    "017d9aa0b86413d7ff9a9169182c53f0bacaa80d34c211adab007ed4876af17077",
    "012d58e05b2057a84115709e0a6ccf000c6a83b4e8dfa389a680c1ab001864f1f2",
    "0143345f0d7c6e8d1a8e70eecdc3b4801d6b8505cd56c422b56d806b3efd1ebfda",
    "012b365e09c5d75187b4abc25c4aa28109133bab6a256ef4abe24348073e590d80",
    "0153d98c835b493c76050735dc79e6702a17cd78ab69d5b0c3631e72f8f38bb095",
    "013584d18def5ee3ef33374b3e2c9056bbb7860c97044bd16b64d895f8aa073084",
    "01a4a5517e0b83b7cbccae0cc22fb4a03d5c5a3d15c6b6bd7a6f4747e541bea779",
    "01a7cfb168d2bc2f69f90627d5e7bc6cb019b1c52c8a374416fdb9c4cef0233611",
    "01f340df2c32f25391e8f7924a99e93cab3a6f230ff7af1cacbfc070772cbebd94",
)

# Delegations previously confirmed by the admin tooling (motes).
# The MAKE validator received the first 500 CSPR minimum delegation.
KNOWN_DELEGATIONS: dict[str, int] = {
    "0106ca7c39cd272dbf21a86eeb3b36b7c26e2e9b94af64292419f7862936bca2ca": 500_000_000_000,
}

# Block explorer REST APIs, tried in order.
DEFAULT_EXPLORER_URLS = (
    "https://api.testnet.cspr.live",
    "https://event-store-api-clarity-testnet.make.services",
)
EXPLORER_PATH_TEMPLATES = (
    "contract-packages/{package_hash}",
    "contracts/{package_hash}",
)
EXPLORER_USER_AGENT = "StakeVue/1.0"

# Provenance tag for responses built from the safe defaults.
SOURCE_DEFAULT = "default"
