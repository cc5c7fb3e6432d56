"""
School Library models.

Pydantic models for every entity the repositories and services return:

- User: staff accounts (admins, librarians)
- Person / PersonType: borrowers (students, teachers)
- Catalog lookups: resource types, categories, locations, authors,
  publishers and physical states
- Resource: inventory items with stock counters
- Loan: lending records and their aggregates
- Reports and SystemConfig
"""

from .catalog import Author, Category, Location, Publisher, ResourceState, ResourceType
from .loan import Loan, LoanStatus
from .person import Person, PersonType, PersonTypeName
from .report import LoanStatusFilter, PersonLoanSummary, PersonStatus
from .resource import Resource, StockInfo, StockStatistics
from .system_config import SystemConfig
from .user import User, UserRole

__all__ = [
    "Author",
    "Category",
    "Loan",
    "LoanStatus",
    "LoanStatusFilter",
    "Location",
    "Person",
    "PersonLoanSummary",
    "PersonStatus",
    "PersonType",
    "PersonTypeName",
    "Publisher",
    "Resource",
    "ResourceState",
    "ResourceType",
    "StockInfo",
    "StockStatistics",
    "SystemConfig",
    "User",
    "UserRole",
]
