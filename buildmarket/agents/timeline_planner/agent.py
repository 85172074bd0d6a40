"""
Timeline Planner Agent - proposes an ordered milestone set for a project
and persists it in one batch
"""
import asyncio
from typing import Any, Dict, List, Optional, Union

from anthropic import APIError
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError as SchemaError
from sqlalchemy.ext.asyncio import AsyncSession

from buildmarket.agents.base_agent import BaseAgent
from buildmarket.agents.timeline_planner.prompts import (
    SYSTEM_PROMPT,
    TIMELINE_PROMPT,
    TIMELINE_RESPONSE_FORMAT,
)
from buildmarket.config import get_settings
from buildmarket.models.project import Project
from buildmarket.models.user import User
from buildmarket.services import milestone_service
from buildmarket.utils.errors import GenerationError
from buildmarket.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)


# --- Response contract ---

class ProposedPhase(BaseModel):
    name: str = Field(min_length=1)
    duration: Optional[Union[str, int]] = None
    description: Optional[str] = None


class ProposedMilestone(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1)
    description: Optional[str] = None
    order: int
    progress_weight: int = Field(
        ge=1, le=100, validation_alias=AliasChoices("progress_weight", "progressWeight")
    )
    estimated_duration_days: Optional[int] = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices(
            "estimated_duration_days", "estimatedDurationDays", "estimatedDays"
        ),
    )


class TimelineProposal(BaseModel):
    total_duration: Optional[Union[str, int]] = Field(
        default=None, validation_alias=AliasChoices("total_duration", "totalDuration")
    )
    phases: List[ProposedPhase] = []
    milestones: List[ProposedMilestone]


class TimelinePlannerAgent(BaseAgent):
    """Turns a project's descriptive fields into persisted milestones"""

    def __init__(self):
        super().__init__(name="TimelinePlannerAgent")
        self.timeout = settings.AI_TIMEOUT_SECONDS

    def _build_prompt(self, project: Project) -> str:
        return TIMELINE_PROMPT.format(
            title=project.title,
            project_type=project.project_type or "General Construction",
            description=project.description or "",
            budget_range=project.budget_range or "Not specified",
            timeline=project.timeline or "To be determined",
            location=project.location or "Not specified",
        )

    async def propose_timeline(self, project: Project) -> TimelineProposal:
        """
        Ask Claude for a milestone proposal and validate it.
        Any failure (timeout, provider error, bad JSON, schema mismatch,
        empty list) becomes GenerationError.
        """
        try:
            raw = await asyncio.wait_for(
                self.generate_structured_response(
                    prompt=self._build_prompt(project),
                    system_prompt=SYSTEM_PROMPT,
                    response_format=TIMELINE_RESPONSE_FORMAT,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning(f"Timeline generation for project {project.id} timed out after {self.timeout}s")
            raise GenerationError("timeout") from e
        except (APIError, RuntimeError, ValueError) as e:
            logger.error(f"Timeline generation for project {project.id} failed: {e}")
            raise GenerationError(str(e)) from e

        try:
            proposal = TimelineProposal.model_validate(raw)
        except SchemaError as e:
            logger.error(f"Timeline proposal for project {project.id} is malformed: {e}")
            raise GenerationError("malformed proposal") from e

        if not proposal.milestones:
            logger.warning(f"Timeline proposal for project {project.id} has no milestones")
            raise GenerationError("empty proposal")

        proposal.milestones.sort(key=lambda m: m.order)
        return proposal

    async def generate_timeline(
        self,
        db: AsyncSession,
        principal: User,
        project: Project,
    ) -> Dict[str, Any]:
        """Propose a timeline and create every milestone in one transaction"""
        logger.info(f"Generating timeline for project {project.id}")
        proposal = await self.propose_timeline(project)

        milestones = await milestone_service.create_milestones_bulk(
            db,
            principal,
            project.id,
            [
                {
                    "title": m.title,
                    "description": m.description or "",
                    "order": m.order,
                    "progress_weight": m.progress_weight,
                    "estimated_duration": m.estimated_duration_days,
                }
                for m in proposal.milestones
            ],
        )

        logger.info(f"Created {len(milestones)} milestones for project {project.id}")
        return {
            "milestones_created": len(milestones),
            "total_duration": None if proposal.total_duration is None else str(proposal.total_duration),
            "phases": [p.model_dump() for p in proposal.phases],
            "milestones": milestones,
        }

    async def process(self, context: Dict[str, Any]) -> Dict[str, Any]:
        """Implementation of BaseAgent.process"""
        return await self.generate_timeline(
            context["db"], context["principal"], context["project"]
        )


timeline_planner = TimelinePlannerAgent()
