"""Repositories over the document store and the accounts database."""

from newsboard.repository.content import ContentRepo
from newsboard.repository.ticker import TickerRepo
from newsboard.repository.users import Account, AccountRepo

__all__ = ["Account", "AccountRepo", "ContentRepo", "TickerRepo"]
