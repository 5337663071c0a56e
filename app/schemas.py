from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional, List
from datetime import datetime
from enum import Enum

# ============= DOCUMENT SCHEMAS =============
# stored documents use camelCase keys, python code uses snake_case


class DocumentModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class MaintenanceFlag(DocumentModel):
    is_active: bool = False
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None
    message: Optional[str] = None


class GeneralSettings(DocumentModel):
    site_name: str = "TruthBeacon"
    site_description: str = "Fact-checking for the digital age"
    contact_email: str = "contact@truthbeacon.com"
    enable_registration: bool = True
    maintenance_mode: bool = False
    maintenance_message: str = "The site is under maintenance. Please come back later."
    maintenance_updated_at: Optional[datetime] = None
    default_user_role: str = "user"
    max_articles_per_page: int = 10
    enable_comments: bool = True
    enable_social_sharing: bool = True
    theme: str = "system"


class ContentSettings(DocumentModel):
    default_verification_status: str = "partial"
    require_image_for_articles: bool = True
    max_article_length: int = 10000
    min_article_length: int = 100
    allowed_tags: List[str] = ["politics", "economy", "health", "environment", "technology", "society"]
    default_tags: List[str] = ["verification"]
    featured_articles_count: int = 5


class EmailTemplates(DocumentModel):
    welcome_email: str = "Welcome to TruthBeacon!"
    password_reset: str = "Reset your password"
    article_published: str = "A new article has been published"


class EmailSettings(DocumentModel):
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    enable_email_notifications: bool = False
    sender_name: str = "TruthBeacon"
    sender_email: str = "noreply@truthbeacon.com"
    email_templates: EmailTemplates = Field(default_factory=EmailTemplates)


class SecuritySettings(DocumentModel):
    password_min_length: int = 8
    require_password_complexity: bool = True
    session_timeout: int = 60
    max_login_attempts: int = 5
    enable_two_factor_auth: bool = False
    allowed_file_types: List[str] = ["jpg", "jpeg", "png", "gif"]
    max_file_size: int = 5


class SiteSettings(DocumentModel):
    general: GeneralSettings = Field(default_factory=GeneralSettings)
    content: ContentSettings = Field(default_factory=ContentSettings)
    email: EmailSettings = Field(default_factory=EmailSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    updated_at: Optional[datetime] = None


# ============= MAINTENANCE API SCHEMAS =============

class MaintenanceSource(str, Enum):
    GLOBAL = "global"
    SITE = "site"


class MaintenanceStatus(BaseModel):
    enabled: bool
    message: str
    phase: Optional[str] = None


class MaintenanceToggle(BaseModel):
    enabled: bool
    message: Optional[str] = Field(None, max_length=200)


class SynchronizeRequest(BaseModel):
    forced_source: Optional[MaintenanceSource] = None


class SynchronizeResult(BaseModel):
    enabled: bool
    source: MaintenanceSource
    diverged: bool


class ForceSetRequest(BaseModel):
    enabled: bool


class SiteMaintenanceCopy(BaseModel):
    is_active: bool
    updated_at: Optional[datetime] = None
    message: Optional[str] = None


class MaintenanceReport(BaseModel):
    global_copy: MaintenanceFlag
    site_copy: SiteMaintenanceCopy
    diverged: bool
    winner: MaintenanceSource
    resolved: bool
    context_enabled: bool
    context_phase: str
