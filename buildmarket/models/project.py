"""
Project models - construction projects with weighted, ordered milestones
"""
from sqlalchemy import Column, Integer, String, Text, Date, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from buildmarket.database import Base
import enum


class ProjectStatus(str, enum.Enum):
    PLANNING = "planning"
    ACTIVE = "active"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MilestoneStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    OVERDUE = "overdue"  # derived at read time, never written


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    project_type = Column(String, nullable=False, default="General Construction")
    budget_range = Column(String, nullable=False, default="Not specified")
    timeline = Column(String, nullable=False, default="To be determined")
    location = Column(String, nullable=False, default="")
    status = Column(String, nullable=False, default=ProjectStatus.ACTIVE.value)

    # Denormalized cache of the progress aggregator, rewritten after every milestone mutation
    completion_percentage = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    owner = relationship("User")
    milestones = relationship(
        "ProjectMilestone",
        back_populates="project",
        order_by=lambda: [ProjectMilestone.order, ProjectMilestone.id],
        cascade="all, delete-orphan",
    )


class ProjectMilestone(Base):
    __tablename__ = "project_milestones"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    due_date = Column(Date, nullable=True)
    completed_date = Column(DateTime, nullable=True)
    status = Column(String, nullable=False, default=MilestoneStatus.PENDING.value)
    order = Column(Integer, nullable=False, default=0)
    progress_weight = Column(Integer, nullable=False, default=10)
    estimated_duration = Column(Integer, nullable=True)  # days, from timeline generation

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    project = relationship("Project", back_populates="milestones")
