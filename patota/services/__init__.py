"""
Services package for the Patota club bot.

Read-side views built on the shared session factory.
"""

from .base import BaseService
from .cash_ledger import CashLedgerService
from .configuration import ConfigurationService
from .finance import FinanceService
from .ranking import RankingService
from .reports import ReportService

__all__ = [
    'BaseService', 'CashLedgerService', 'ConfigurationService',
    'FinanceService', 'RankingService', 'ReportService',
]
