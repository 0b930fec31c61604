"""
Dataset Models - what a phone number is authorized to query.
"""

from typing import Optional, List
from pydantic import BaseModel, Field


class DatasetGrant(BaseModel):
    """One dataset an authorized number may query, as configured by an admin."""
    connection_id: str
    connection_name: Optional[str] = None
    dataset_id: str
    dataset_name: Optional[str] = None
    context_id: Optional[str] = None
    context_name: Optional[str] = None


class AuthorizedNumber(BaseModel):
    """A phone number allowed to talk to the assistant."""
    id: str
    phone_number: str
    name: Optional[str] = None
    company_group_id: Optional[str] = None
    is_active: bool = True
    datasets: List[DatasetGrant] = Field(default_factory=list)

    @property
    def first_name(self) -> str:
        return (self.name or "").split(" ")[0]


class AvailableDataset(BaseModel):
    """A (phone number, dataset) pair with its 1-based menu position."""
    authorized_number_id: str
    phone_number: str
    user_name: Optional[str] = None
    company_group_id: Optional[str] = None
    connection_id: str
    connection_name: Optional[str] = None
    dataset_id: str
    dataset_name: Optional[str] = None
    context_id: Optional[str] = None
    context_name: Optional[str] = None
    option_number: int

    @property
    def display_name(self) -> str:
        return self.dataset_name or self.context_name or "Dataset"
