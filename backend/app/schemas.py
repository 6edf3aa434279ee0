from pydantic import BaseModel, EmailStr, Field
from typing import List, Optional
from datetime import datetime

from app.models import AccessType, PanelType, PaymentStatus, ResourceType, UserRole


# Identity
class UserRegisterRequest(BaseModel):
    email: EmailStr
    username: str = Field(..., min_length=3, max_length=30)
    display_name: Optional[str] = Field(default=None, max_length=100)


class AssignRoleRequest(BaseModel):
    role: UserRole


class UserInfo(BaseModel):
    id: str
    email: str
    username: str
    display_name: Optional[str] = None
    role: UserRole
    college_id: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Colleges
class CollegeCreateRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    email_domain: str = Field(..., min_length=3, max_length=255)
    logo_url: Optional[str] = None


class DomainRemoveRequest(BaseModel):
    email_domain: str


class CollegeInfo(BaseModel):
    id: str
    name: str
    email_domain: str
    logo_url: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CollegeList(BaseModel):
    colleges: List[CollegeInfo]


# Access evaluation
class AccessResult(BaseModel):
    can_access: bool
    requires_payment: bool
    is_unlocked: bool


# Hierarchy: College -> ResourceType -> Department -> Batch -> File
class FileNode(BaseModel):
    id: str
    name: str
    uploaded_by: str
    batch: str
    description: str
    upload_date: datetime
    is_locked: bool
    is_unlocked: bool


class BatchNode(BaseModel):
    name: str
    files: List[FileNode]


class DepartmentNode(BaseModel):
    name: str
    batches: List[BatchNode]


class ResourceTypeNode(BaseModel):
    name: ResourceType
    departments: List[DepartmentNode]


class ResourceHierarchy(BaseModel):
    college: CollegeInfo
    resource_types: List[ResourceTypeNode]


class ResourceView(BaseModel):
    message: str
    file: FileNode
    file_url: str
    can_download: bool = True


# Resources
class UploadResourceRequest(BaseModel):
    resource_type: str
    department: str = Field(default="", max_length=100)
    batch: str = Field(default="", max_length=50)
    file_name: str = Field(default="", max_length=255)
    file_url: str = ""
    description: Optional[str] = Field(default=None, max_length=1000)


class ResourceInfo(BaseModel):
    id: str
    college_id: str
    resource_type: ResourceType
    department: str
    batch: str
    file_name: str
    file_url: str
    description: str
    uploaded_by: str
    upload_date: datetime

    class Config:
        from_attributes = True


class ResourceAccessRecord(BaseModel):
    id: str
    user_id: str
    resource_id: str
    access_type: AccessType
    payment_amount: Optional[float] = None
    unlocked_at: datetime

    class Config:
        from_attributes = True


# Payments
class VerifyPaymentRequest(BaseModel):
    session_id: str = Field(..., min_length=1)


class PaymentSessionView(BaseModel):
    session_id: str
    resource_id: str
    user_id: str
    amount: float
    currency: str
    status: PaymentStatus
    created_at: datetime
    expires_at: datetime

    class Config:
        from_attributes = True


class PaymentResult(BaseModel):
    success: bool
    session_id: str
    resource_id: str = ""
    user_id: str = ""
    amount: Optional[float] = None
    message: str


# Moderators
class AssignModeratorRequest(BaseModel):
    user_id: str
    college_id: str


class ModeratorAssignment(BaseModel):
    id: str
    user_id: str
    username: str
    display_name: Optional[str] = None
    email: str
    college_id: str
    college_name: str
    email_domain: str
    assigned_by: str
    assigned_at: datetime


# Posts
class CreatePostRequest(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    content: str = Field(..., min_length=10, max_length=5000)


class CreateCommentRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=1000)
    parent_comment_id: Optional[str] = None


class ReportRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class PostInfo(BaseModel):
    id: str
    author_id: str
    author_name: str
    author_username: str
    author_role: UserRole
    college_id: Optional[str] = None
    panel_type: PanelType
    title: str
    content: str
    likes: int
    comment_count: int
    report_count: int
    is_liked: bool = False
    created_at: datetime
    updated_at: Optional[datetime] = None


class CommentInfo(BaseModel):
    id: str
    post_id: str
    author_id: str
    author_name: str
    author_username: str
    content: str
    likes: int
    parent_comment_id: Optional[str] = None
    is_liked: bool = False
    created_at: datetime


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class FeedPage(BaseModel):
    college: Optional[CollegeInfo] = None
    posts: List[PostInfo]
    pagination: Pagination


class LikeResult(BaseModel):
    liked: bool
