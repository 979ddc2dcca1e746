import os

# Contract deployment
CONTRACT_ADDRESS = os.environ.get("CONTRACT_ADDRESS", "ST1VQMZKSFRW25H34XQS2KVDQ3FQEBFPWC2XM0ZYC")
CONTRACT_NAME = os.environ.get("CONTRACT_NAME", "Sonichain")
NETWORK = os.environ.get("STACKS_NETWORK", "testnet")
STACKS_API_URLS = {
    "testnet": "https://api.testnet.hiro.so",
    "mainnet": "https://api.hiro.so",
}
STACKS_API_URL = os.environ.get("STACKS_API_URL", STACKS_API_URLS.get(NETWORK, STACKS_API_URLS["testnet"]))
DEFAULT_FEE = int(os.environ.get("DEFAULT_FEE", "300"))  # microSTX
POST_CONDITION_MODE = "allow"

# Contract constants
VOTING_PERIOD_BLOCKS = 144
MIN_BLOCKS_TO_SEAL = 5
MAX_BLOCKS_PER_STORY = 50
PLATFORM_FEE_BPS = 250
DEFAULT_VOTING_WINDOW = 86400
FIRST_STORY_ID = int(os.environ.get("FIRST_STORY_ID", "1"))

# Read-only contract functions
FN_GET_STORY = "get-story"
FN_GET_STORY_COUNTER = "get-story-counter"
FN_GET_STORY_BLOCK = "get-story-block"
FN_GET_SUBMISSION = "get-submission"
FN_GET_ROUND = "get-round"
FN_GET_ROUND_SUBMISSIONS = "get-round-submissions"
FN_GET_USER = "get-user"
FN_HAS_VOTED = "has-voted"
FN_GET_CONTRIBUTOR_STATS = "get-contributor-stats"

# Public contract functions
FN_REGISTER_USER = "register-user"
FN_CREATE_STORY = "create-story"
FN_SUBMIT_BLOCK = "submit-block"
FN_VOTE_BLOCK = "vote-block"
FN_FINALIZE_ROUND = "finalize-round"
FN_FUND_BOUNTY = "fund-bounty"
FN_SEAL_STORY = "seal-story"

# Blob store keys
STORAGE_PATH = os.environ.get("STORAGE_PATH", "sonichain.rocksdb")
CACHE_PREFIX = "@sonichain_cache_"
TRANSACTIONS_KEY = "@sonichain_transactions"
APP_STATE_KEY = "@sonichain_app_state"

# Record defaults
DEFAULT_COVER_ART = "\U0001f3ad"
DEFAULT_CATEGORY = "Mystery"
DEFAULT_DESCRIPTION = "A collaborative voice story created on blockchain"
TITLE_MAX_LENGTH = 50
