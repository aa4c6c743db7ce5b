from publisher_royalties.models.contract import Contract, ContractTier, ContractFormat, ContractStatus, RateMode
from publisher_royalties.models.title_author import TitleAuthor
from publisher_royalties.models.sales import Sale, SalesReturn, ReturnStatus
from publisher_royalties.models.statement import Statement, StatementStatus
from publisher_royalties.models.advance_ledger import AdvanceLedgerEntry, LedgerEntryType
from publisher_royalties.models.isbn import IsbnPrefix, Isbn, GenerationStatus, IsbnStatus
from publisher_royalties.models import immutability  # noqa: F401  registers listeners

__all__ = [
    # Contract models
    "Contract",
    "ContractTier",
    "ContractFormat",
    "ContractStatus",
    "RateMode",
    "TitleAuthor",
    # Transaction models
    "Sale",
    "SalesReturn",
    "ReturnStatus",
    # Royalty models
    "Statement",
    "StatementStatus",
    "AdvanceLedgerEntry",
    "LedgerEntryType",
    # ISBN models
    "IsbnPrefix",
    "Isbn",
    "GenerationStatus",
    "IsbnStatus",
]
