"""Discovery strategies: independent paths from a query to candidate transfers."""

from backend_tokenflow.discovery.base import DiscoveryStrategy, sample_evenly
from backend_tokenflow.discovery.block_scan import BlockScanStrategy
from backend_tokenflow.discovery.indexed_search import IndexedSearchStrategy, transfers_from_search_tx
from backend_tokenflow.discovery.sampling import SamplingStrategy
from backend_tokenflow.discovery.wallet import SignedTransactionsStrategy, TokenAccountsStrategy

__all__ = [
    "BlockScanStrategy",
    "DiscoveryStrategy",
    "IndexedSearchStrategy",
    "SamplingStrategy",
    "SignedTransactionsStrategy",
    "TokenAccountsStrategy",
    "sample_evenly",
    "transfers_from_search_tx",
]
