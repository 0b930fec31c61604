"""
Connection Model - credentials for one analytical backend workspace.
"""

from typing import Optional
from pydantic import BaseModel


class BackendConnection(BaseModel):
    """Service-principal credentials for a Power BI workspace."""
    id: str
    name: Optional[str] = None
    tenant_id: str
    client_id: str
    client_secret: str
    workspace_id: str
