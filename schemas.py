"""
Database Schemas for the LMS backend

Each Pydantic model represents a MongoDB collection.
Collection name is the lowercase of the class name (e.g., User -> "user").
References between documents are stored as id strings.
"""

from typing import List, Optional, Literal
from pydantic import BaseModel, Field, EmailStr
from datetime import datetime


Role = Literal["student", "instructor", "admin"]
Level = Literal["beginner", "intermediate", "advanced"]


class Profile(BaseModel):
    bio: str = Field("", max_length=500)
    areas_of_interest: List[str] = []
    skill_level: Level = "beginner"
    learning_goals: List[str] = []
    preferred_learning_style: Literal["visual", "auditory", "kinesthetic", "reading"] = "visual"
    is_profile_complete: bool = False


class User(BaseModel):
    name: str
    email: EmailStr
    password_hash: str
    role: Role = "student"
    photo_url: str = ""
    profile: Profile = Field(default_factory=Profile)


class Course(BaseModel):
    title: str
    subtitle: Optional[str] = None
    description: str
    category: str
    level: Optional[Level] = None
    lectures: List[str] = Field(default_factory=list, description="Lecture ids in sequence order")
    creator_id: Optional[str] = None
    is_published: bool = False
    playlist_id: Optional[str] = None


class Lecture(BaseModel):
    course_id: str
    title: str
    description: str = ""
    video_url: str
    youtube_video_id: str
    sequence: int = Field(..., ge=1)
    is_preview: bool = False


class CompletedLecture(BaseModel):
    lecture_id: str
    completed_at: datetime


class ProgressSummary(BaseModel):
    completed_lectures: List[CompletedLecture] = []
    progress_percentage: int = Field(0, ge=0, le=100)
    last_accessed_at: Optional[datetime] = None


class Enrollment(BaseModel):
    user_id: str
    course_id: str
    enrolled_at: datetime
    progress: ProgressSummary = Field(default_factory=ProgressSummary)


class Progress(BaseModel):
    user_id: str
    course_id: str
    lecture_id: str
    is_completed: bool = False
    completed_at: Optional[datetime] = None
    last_accessed_at: Optional[datetime] = None
    watch_time: int = 0  # seconds
    time_spent: int = 0  # minutes
    attempts: int = 1
