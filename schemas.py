"""
Database Schemas

Pydantic models for the MongoDB collections and the request bodies that feed
them. Stored field names are camelCase, the same as on the wire; Python
attributes are snake_case with aliases.

Request bodies keep every field optional: required-field presence is checked
by the repositories so a missing field answers 400 "All fields are required"
instead of a framework-level 422.

Collections:
- User    -> "users"
- Task    -> "Tasks"
- Comment -> "Comments"
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

TaskStatus = Literal["pending", "completed"]
TaskPriority = Literal["low", "medium", "high"]


class User(BaseModel):
    """
    Users collection schema
    Collection name: "users"
    """
    username: str = Field(..., description="Unique login name")
    password_hash: str = Field(..., alias="passwordHash", description="bcrypt hash of the password")


class Task(BaseModel):
    """
    Tasks collection schema
    Collection name: "Tasks"
    """
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., description="Title of the task")
    description: str = Field(..., description="Description of the task")
    status: TaskStatus = Field(..., description="pending or completed")
    assigned_to: str = Field(..., alias="assignedTo", description="The person assigned to the task")
    due_date: datetime = Field(..., alias="dueDate", description="Due date of the task")
    priority: TaskPriority = Field(..., description="low, medium or high")
    tags: List[str] = Field(default_factory=list, description="Tags associated with the task")
    comments: List[str] = Field(default_factory=list, description="Legacy comment references, never populated")
    created_by: str = Field(..., alias="createdBy", description="The creator of the task")
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")


class Comment(BaseModel):
    """
    Comments collection schema
    Collection name: "Comments"
    """
    model_config = ConfigDict(populate_by_name=True)

    task_id: str = Field(..., alias="taskId", description="The ID of the task, not checked")
    content: str = Field(..., description="The content of the comment")
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")


# Request bodies

class Credentials(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


class TaskIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    assigned_to: Optional[str] = Field(None, alias="assignedTo")
    due_date: Optional[datetime] = Field(None, alias="dueDate")
    priority: Optional[TaskPriority] = None
    tags: List[str] = Field(default_factory=list)
    comments: List[str] = Field(default_factory=list)
    created_by: Optional[str] = Field(None, alias="createdBy")

    def fields(self) -> dict:
        """Wire-named fields the client actually sent."""
        return self.model_dump(by_alias=True, exclude_unset=True)


class CommentIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    task_id: Optional[str] = Field(None, alias="taskId")
    content: Optional[str] = None

    def fields(self) -> dict:
        return self.model_dump(by_alias=True, exclude_unset=True)
