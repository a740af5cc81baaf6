"""
Database Schemas

MongoDB collection schemas as Pydantic models. They document the stored
shape of each document and are exposed through the ``/schema`` endpoint.

Model name is converted to lowercase for the collection name:
- User -> "user" collection
- Progress -> "progress" collection
- Plan -> "plan" collection
- Alert -> "alert" collection

Timestamps are ISO-8601 UTC strings.
"""

from pydantic import BaseModel, Field
from typing import Optional, List


class ProgressSummary(BaseModel):
    trainingCompleted: int = 0
    plansCreated: int = 0
    preparednessScore: int = 0


class User(BaseModel):
    """
    Users collection schema
    Collection name: "user"
    """
    fullName: str = Field(..., description="Full name")
    email: str = Field(..., description="Email address, unique and case-sensitive")
    password: str = Field(..., description="bcrypt hash of the password")
    phone: Optional[str] = None
    region: Optional[str] = Field(None, description="Region used to scope alerts")
    createdAt: Optional[str] = None
    progress: ProgressSummary = Field(default_factory=ProgressSummary)


class Progress(BaseModel):
    """Training progress, one document per (userId, courseId)"""
    userId: str = Field(..., description="Owner user id (stringified ObjectId)")
    courseId: str
    courseName: Optional[str] = None
    progress: float = Field(0, description="Percent complete, 0-100 expected")
    completed: bool = False
    lastUpdated: Optional[str] = None


class Contact(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    relationship: Optional[str] = None


class Plan(BaseModel):
    """
    Emergency plans collection schema
    Collection name: "plan"
    """
    userId: str = Field(..., description="Owner user id")
    planName: Optional[str] = None
    planType: Optional[str] = None
    steps: List[str] = []
    supplies: List[str] = []
    contacts: List[Contact] = []
    completed: bool = False
    createdAt: Optional[str] = None


class Alert(BaseModel):
    """Region-scoped alerts, visible until expiresAt"""
    title: str
    description: Optional[str] = None
    type: Optional[str] = None
    severity: Optional[str] = None
    region: Optional[str] = None
    expiresAt: str = Field(..., description="ISO timestamp of expiration")
    createdAt: Optional[str] = None
