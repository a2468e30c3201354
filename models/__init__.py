from .base import Base
from .currency import Currency
from .account import Account
from .swap import Swap, SwapStatus
from .transaction import Transaction
from .taxaccount import TaxAccount
from .tradelog import TradeLogEntry
from .apicredential import ApiCredential, ApiType
